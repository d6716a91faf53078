"""Thin-lens camera model for perspective ray generation with depth of field.

The camera builds an orthonormal basis (u, v, w) from the view parameters:
- w: points from look_at toward eye (opposite view direction)
- u: points right in the image plane
- v: points up in the image plane

The viewport is placed at ``focal_length`` in front of the eye, so every point
on it is in perfect focus. Rays start from a random point on a lens disk of
diameter ``aperture_size`` centered at the eye and pass through the viewport
point. With ``aperture_size = 0`` this is a pinhole camera.

Example:
    >>> from src.pathtracer.config import CameraConfig
    >>> from src.pathtracer.camera.thin_lens import setup_camera
    >>> setup_camera(CameraConfig(eye=(0, 0, 3), look_at=(0, 0, 0)), aspect_ratio=1.0)
    >>> # Inside a Taichi kernel:
    >>> # state, ray = get_ray(state, 0.5, 0.5)  # ray through the image center
"""

import math

import numpy as np
import taichi as ti
import taichi.math as tm

from src.pathtracer.config import CameraConfig
from src.pathtracer.core.ray import Ray
from src.pathtracer.core.rng import random_in_unit_disk

vec3 = tm.vec3

# =============================================================================
# Taichi Fields for Camera State (GPU-accessible)
# =============================================================================

_camera_origin = ti.Vector.field(3, dtype=ti.f32, shape=())

# Orthonormal basis vectors
_camera_u = ti.Vector.field(3, dtype=ti.f32, shape=())  # Right
_camera_v = ti.Vector.field(3, dtype=ti.f32, shape=())  # Up
_camera_w = ti.Vector.field(3, dtype=ti.f32, shape=())  # Backward

# Viewport on the focus plane
_viewport_horizontal = ti.Vector.field(3, dtype=ti.f32, shape=())
_viewport_vertical = ti.Vector.field(3, dtype=ti.f32, shape=())
_lower_left_corner = ti.Vector.field(3, dtype=ti.f32, shape=())

_lens_radius = ti.field(dtype=ti.f32, shape=())


def setup_camera(camera: CameraConfig, aspect_ratio: float) -> None:
    """Initialize camera state from configuration.

    Args:
        camera: Camera position, orientation, FOV and lens parameters.
        aspect_ratio: Width divided by height of the output image.

    Raises:
        ValueError: If aspect_ratio is not positive.
    """
    if aspect_ratio <= 0.0:
        raise ValueError(f"aspect_ratio must be positive, got {aspect_ratio}")

    theta = math.radians(camera.fov_y)
    viewport_height = 2.0 * math.tan(theta / 2.0) * camera.focal_length
    viewport_width = aspect_ratio * viewport_height

    eye = np.array(camera.eye, dtype=np.float64)
    look_at = np.array(camera.look_at, dtype=np.float64)
    up = np.array(camera.up, dtype=np.float64)

    w = eye - look_at
    w = w / np.linalg.norm(w)
    u = np.cross(up, w)
    u = u / np.linalg.norm(u)
    v = np.cross(w, u)

    horizontal = viewport_width * u
    vertical = viewport_height * v
    lower_left = eye - camera.focal_length * w - horizontal / 2.0 - vertical / 2.0

    _camera_origin[None] = eye.tolist()
    _camera_u[None] = u.tolist()
    _camera_v[None] = v.tolist()
    _camera_w[None] = w.tolist()
    _viewport_horizontal[None] = horizontal.tolist()
    _viewport_vertical[None] = vertical.tolist()
    _lower_left_corner[None] = lower_left.tolist()
    _lens_radius[None] = camera.aperture_size / 2.0


@ti.func
def get_ray(state: ti.u32, s: ti.f32, t: ti.f32):
    """Generate a camera ray through normalized image coordinates (s, t).

    Args:
        state: RNG state (the lens sample draws from it).
        s: Horizontal coordinate, 0 = left edge, 1 = right edge.
        t: Vertical coordinate, 0 = bottom edge, 1 = top edge.

    Returns:
        A tuple (new_state, Ray) with a unit-length direction.
    """
    st, disk = random_in_unit_disk(state)
    lens = _lens_radius[None] * disk
    origin = _camera_origin[None] + lens.x * _camera_u[None] + lens.y * _camera_v[None]
    target = _lower_left_corner[None] + s * _viewport_horizontal[None] + t * _viewport_vertical[None]
    return st, Ray(origin=origin, direction=tm.normalize(target - origin))


def get_camera_info() -> dict[str, tuple[float, ...]]:
    """Get current camera state for debugging.

    Returns:
        Dictionary with origin, u, v, w, horizontal, vertical, lower_left and
        lens_radius.
    """
    info: dict[str, tuple[float, ...]] = {}
    for name, f in (
        ("origin", _camera_origin),
        ("u", _camera_u),
        ("v", _camera_v),
        ("w", _camera_w),
        ("horizontal", _viewport_horizontal),
        ("vertical", _viewport_vertical),
        ("lower_left", _lower_left_corner),
    ):
        vec = f[None]
        info[name] = (float(vec[0]), float(vec[1]), float(vec[2]))
    info["lens_radius"] = (float(_lens_radius[None]),)
    return info
