"""Render and camera configuration.

Both configs are plain dataclasses with ``validate()``, ``to_dict()`` and
``from_dict()``. Invalid values raise ValueError. Sample counts above the
supported limits are clamped with a warning instead of rejected.

Example:
    >>> from src.pathtracer.config import RenderConfig
    >>> config = RenderConfig.from_dict({"samples_per_pixel": 100})
    >>> config.samples_per_pixel
    64
"""

import logging
import math
from dataclasses import asdict, dataclass, fields
from typing import Any

import numpy as np

logger = logging.getLogger(__name__)

MAX_SAMPLES_PER_PIXEL = 64
MAX_SAMPLE_BATCHES = 32

PIXEL_FILTERS = ("box", "gaussian")


@dataclass
class RenderConfig:
    """Sampling settings for a render.

    Attributes:
        samples_per_pixel: Samples taken per pixel in each batch. Only
            floor(sqrt(samples_per_pixel))^2 are used, on a stratified grid.
        sample_batches: Number of batches averaged into the final image.
        max_ray_depth: Maximum number of bounces per path.
        pixel_filter: "box" (stratified jitter) or "gaussian".
    """

    samples_per_pixel: int = 16
    sample_batches: int = 8
    max_ray_depth: int = 8
    pixel_filter: str = "box"

    def __post_init__(self) -> None:
        self.validate()

    def validate(self) -> None:
        """Check values, clamping sample counts to the supported maximums.

        Raises:
            ValueError: If a count is below 1 or the pixel filter is unknown.
        """
        for name in ("samples_per_pixel", "sample_batches", "max_ray_depth"):
            value = getattr(self, name)
            if int(value) != value or value < 1:
                raise ValueError(f"{name} must be a positive integer, got {value}")
            setattr(self, name, int(value))

        if self.samples_per_pixel > MAX_SAMPLES_PER_PIXEL:
            logger.warning(
                "samples_per_pixel %d exceeds maximum %d, clamping",
                self.samples_per_pixel,
                MAX_SAMPLES_PER_PIXEL,
            )
            self.samples_per_pixel = MAX_SAMPLES_PER_PIXEL
        if self.sample_batches > MAX_SAMPLE_BATCHES:
            logger.warning(
                "sample_batches %d exceeds maximum %d, clamping",
                self.sample_batches,
                MAX_SAMPLE_BATCHES,
            )
            self.sample_batches = MAX_SAMPLE_BATCHES

        if self.pixel_filter not in PIXEL_FILTERS:
            raise ValueError(f"pixel_filter must be one of {PIXEL_FILTERS}, got {self.pixel_filter!r}")

    @property
    def strata_per_axis(self) -> int:
        """Side length of the stratified sample grid."""
        return math.isqrt(self.samples_per_pixel)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "RenderConfig":
        """Build a config from a dictionary, ignoring unknown keys."""
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in known})


@dataclass
class CameraConfig:
    """Thin-lens look-at camera.

    Attributes:
        eye: Camera position in world space.
        look_at: Point the camera is looking at.
        up: Up direction used to orient the camera.
        fov_y: Vertical field of view in degrees.
        focal_length: Distance from the lens to the plane in perfect focus.
        aperture_size: Lens diameter. 0 gives a pinhole camera.
    """

    eye: tuple[float, float, float] = (0.0, 0.0, 0.0)
    look_at: tuple[float, float, float] = (0.0, 0.0, -1.0)
    up: tuple[float, float, float] = (0.0, 1.0, 0.0)
    fov_y: float = 40.0
    focal_length: float = 1.0
    aperture_size: float = 0.0

    def __post_init__(self) -> None:
        self.eye = tuple(float(c) for c in self.eye)
        self.look_at = tuple(float(c) for c in self.look_at)
        self.up = tuple(float(c) for c in self.up)
        self.validate()

    def validate(self) -> None:
        """Check the camera parameters.

        Raises:
            ValueError: If the view is degenerate or a parameter is out of range.
        """
        for name in ("eye", "look_at", "up"):
            if len(getattr(self, name)) != 3:
                raise ValueError(f"{name} must have 3 components")
        if not 0.0 < self.fov_y < 180.0:
            raise ValueError(f"fov_y must be in (0, 180) degrees, got {self.fov_y}")
        if self.focal_length <= 0.0:
            raise ValueError(f"focal_length must be positive, got {self.focal_length}")
        if self.aperture_size < 0.0:
            raise ValueError(f"aperture_size must be non-negative, got {self.aperture_size}")

        view = np.subtract(self.eye, self.look_at, dtype=np.float64)
        if np.linalg.norm(view) < 1e-8:
            raise ValueError("eye and look_at must be distinct points")
        if np.linalg.norm(np.cross(np.asarray(self.up, dtype=np.float64), view)) < 1e-8:
            raise ValueError("up must not be parallel to the view direction")

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        for name in ("eye", "look_at", "up"):
            data[name] = list(data[name])
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CameraConfig":
        """Build a config from a dictionary, ignoring unknown keys."""
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in known})
