"""Camera module for primary ray generation.

Components:
    thin_lens: Look-at thin-lens camera with vertical FOV, focus distance and
        aperture (depth of field)
"""

from .thin_lens import get_camera_info, get_ray, setup_camera

__all__ = [
    "setup_camera",
    "get_ray",
    "get_camera_info",
]
