"""Progressive renderer: multi-batch frame accumulation.

Each batch renders ``samples_per_pixel`` samples for every pixel (one Taichi
thread per pixel) and folds the batch mean into a running per-pixel average:

    accum_0 = batch_0
    accum_b = (b * accum_{b-1} + batch_b) / (b + 1)

so after B batches every pixel holds the arithmetic mean of its B batch
means. Each batch is a separate kernel launch; a batch only starts once the
previous one has been written.

The accumulation buffer is preallocated at MAX_IMAGE_WIDTH x MAX_IMAGE_HEIGHT
to avoid kernel recompilation; ``setup_render_target`` selects the active size.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.gpu)
    >>> from src.pathtracer.core.progressive import ProgressiveRenderer
    >>> from src.pathtracer.scene.cornell_box import create_cornell_box_scene
    >>> from src.pathtracer.camera.thin_lens import setup_camera
    >>>
    >>> scene, camera = create_cornell_box_scene()
    >>> setup_camera(camera, aspect_ratio=1.0)
    >>>
    >>> renderer = ProgressiveRenderer(512, 512)
    >>> renderer.render()  # all configured batches
    >>> image = renderer.get_image_numpy()
"""

import logging
from collections.abc import Callable, Generator
from pathlib import Path

import numpy as np
import numpy.typing as npt
import taichi as ti
import taichi.math as tm
from PIL import Image

from src.pathtracer.config import RenderConfig
from src.pathtracer.core.integrator import render_sample_batch_impl, set_pixel_filter

logger = logging.getLogger(__name__)

vec3 = tm.vec3

# Callback receives (completed_batches, target_batches)
ProgressCallback = Callable[[int, int], None]

# =============================================================================
# Render Target (Accumulation Buffer)
# =============================================================================

# Maximum supported image dimensions (preallocated to avoid kernel recompilation)
MAX_IMAGE_WIDTH = 2048
MAX_IMAGE_HEIGHT = 2048

_image_width = ti.field(dtype=ti.i32, shape=())
_image_height = ti.field(dtype=ti.i32, shape=())

# Linear radiance, running mean over batches
_accumulation_buffer = ti.Vector.field(3, dtype=ti.f32, shape=(MAX_IMAGE_WIDTH, MAX_IMAGE_HEIGHT))

# Number of batches blended into the buffer so far
_batch_count = ti.field(dtype=ti.i32, shape=())

_render_target_initialized = ti.field(dtype=ti.i32, shape=())


def setup_render_target(width: int, height: int) -> None:
    """Set the active image size and clear the accumulation buffer.

    Raises:
        ValueError: If a dimension is below 1 or above the maximum.
    """
    if width < 1 or height < 1:
        raise ValueError(f"Image dimensions must be positive, got {width}x{height}")
    if width > MAX_IMAGE_WIDTH or height > MAX_IMAGE_HEIGHT:
        raise ValueError(
            f"Image dimensions ({width}x{height}) exceed maximum supported "
            f"({MAX_IMAGE_WIDTH}x{MAX_IMAGE_HEIGHT})"
        )

    _image_width[None] = width
    _image_height[None] = height
    _render_target_initialized[None] = 1
    clear_render_target()


def clear_render_target() -> None:
    """Zero the accumulation buffer and the batch count."""
    _accumulation_buffer.fill(0.0)
    _batch_count[None] = 0


def get_image_dimensions() -> tuple[int, int]:
    """Get the current render target dimensions as (width, height)."""
    return int(_image_width[None]), int(_image_height[None])


def get_batch_count() -> int:
    """Number of batches accumulated since the last clear."""
    return int(_batch_count[None])


def _check_render_target_initialized() -> None:
    """Check if render target is initialized and raise if not."""
    if _render_target_initialized[None] == 0:
        raise RuntimeError("Render target not set up. Call setup_render_target() first.")


@ti.func
def blend_batch(previous: vec3, new: vec3, batch: ti.i32) -> vec3:
    """Fold batch number ``batch`` (0-based) into the running mean."""
    result = new
    if batch > 0:
        b = ti.cast(batch, ti.f32)
        result = (b * previous + new) / (b + 1.0)
    return result


@ti.kernel
def _render_batch(
    width: ti.i32,
    height: ti.i32,
    sample_batch: ti.i32,
    samples_per_pixel: ti.i32,
    max_depth: ti.i32,
):
    for i, j in ti.ndrange(width, height):
        colour = render_sample_batch_impl(i, j, width, height, sample_batch, samples_per_pixel, max_depth)
        _accumulation_buffer[i, j] = blend_batch(_accumulation_buffer[i, j], colour, sample_batch)


def render_batch(config: RenderConfig) -> int:
    """Render and accumulate the next batch over the whole image.

    Returns:
        The number of batches accumulated after this one.

    Raises:
        RuntimeError: If render target has not been set up.
    """
    _check_render_target_initialized()

    width, height = get_image_dimensions()
    batch = get_batch_count()
    set_pixel_filter(config.pixel_filter)
    _render_batch(width, height, batch, config.samples_per_pixel, config.max_ray_depth)
    _batch_count[None] = batch + 1
    return batch + 1


def get_accumulated_image_numpy() -> npt.NDArray[np.float32]:
    """Get the accumulated linear radiance as a (height, width, 3) array.

    Row 0 is the top of the image. Values are not clamped.

    Raises:
        RuntimeError: If render target has not been set up.
    """
    _check_render_target_initialized()

    width, height = get_image_dimensions()
    image = _accumulation_buffer.to_numpy()[:width, :height, :]

    # (width, height, 3) with y up -> (height, width, 3) with row 0 at the top
    image = np.flipud(np.transpose(image, (1, 0, 2)))
    return np.ascontiguousarray(image, dtype=np.float32)


class ProgressiveRenderer:
    """A progressive renderer that accumulates sample batches over time.

    The renderer keeps the image size and render settings; the accumulation
    buffer itself is a module-level Taichi field shared by all instances.

    Attributes:
        width: Image width in pixels.
        height: Image height in pixels.
        config: Sampling settings used for every batch.
    """

    def __init__(self, width: int, height: int, config: RenderConfig | None = None) -> None:
        """Initialize the progressive renderer.

        Args:
            width: Image width in pixels (max 2048).
            height: Image height in pixels (max 2048).
            config: Sampling settings. Defaults to RenderConfig().

        Raises:
            ValueError: If dimensions are outside the supported range.
        """
        self._width = width
        self._height = height
        self.config = config if config is not None else RenderConfig()
        setup_render_target(width, height)

    @property
    def width(self) -> int:
        """Get the image width."""
        return self._width

    @property
    def height(self) -> int:
        """Get the image height."""
        return self._height

    @property
    def batch_count(self) -> int:
        """Get the number of accumulated batches."""
        return get_batch_count()

    def reset(self) -> None:
        """Clear the accumulated image without changing its size."""
        clear_render_target()

    def resize(self, width: int, height: int) -> None:
        """Resize the render target and reset the accumulator.

        Raises:
            ValueError: If dimensions are outside the supported range.
        """
        setup_render_target(width, height)
        self._width = width
        self._height = height

    def render_batch(self) -> int:
        """Render one more batch.

        Returns:
            The number of batches accumulated so far.
        """
        count = render_batch(self.config)
        logger.debug("Batch %d done (%dx%d)", count, self._width, self._height)
        return count

    def _target(self, num_batches: int | None) -> int:
        if num_batches is None:
            return max(self.config.sample_batches, self.batch_count)
        return self.batch_count + max(num_batches, 0)

    def render(
        self,
        num_batches: int | None = None,
        callback: ProgressCallback | None = None,
    ) -> None:
        """Render batches with an optional progress callback.

        Args:
            num_batches: Number of batches to add. None renders the batches
                still missing to reach ``config.sample_batches``.
            callback: Called after each batch with
                (completed_batches, target_batches).

        Example:
            >>> def progress(current, target):
            ...     print(f"Progress: {current}/{target} batches")
            >>> renderer.render(callback=progress)
        """
        for current, target in self.render_progressive(num_batches):
            if callback is not None:
                callback(current, target)

    def render_progressive(
        self,
        num_batches: int | None = None,
    ) -> Generator[tuple[int, int], None, None]:
        """Render batches, yielding progress after each one.

        Args:
            num_batches: As in ``render``.

        Yields:
            Tuple of (completed_batches, target_batches).
        """
        target = self._target(num_batches)
        if self.batch_count >= target:
            return

        logger.info(
            "Rendering %dx%d: batches %d-%d, %d spp per batch, depth %d",
            self._width,
            self._height,
            self.batch_count + 1,
            target,
            self.config.strata_per_axis ** 2,
            self.config.max_ray_depth,
        )
        while self.batch_count < target:
            current = self.render_batch()
            yield (current, target)

    def get_image_numpy(self, gamma: float = 1.0) -> npt.NDArray[np.float32]:
        """Get the rendered image as a NumPy array.

        Returns the accumulated image with values clamped to [0, 1] and
        optionally gamma corrected. The array shape is (height, width, 3).

        Args:
            gamma: Gamma correction value. Default 1.0 (linear).
                Use 2.2 for sRGB display.
        """
        image = np.clip(get_accumulated_image_numpy(), 0.0, 1.0)

        if gamma != 1.0:
            image = np.power(image, 1.0 / gamma)

        return image.astype(np.float32)

    def get_image_uint8(self, gamma: float = 2.2) -> npt.NDArray[np.uint8]:
        """Get the rendered image as an 8-bit NumPy array.

        Args:
            gamma: Gamma correction value. Default 2.2 for sRGB.
        """
        image = self.get_image_numpy(gamma=gamma)
        return (image * 255).astype(np.uint8)

    def save_image(self, filepath: str | Path, gamma: float = 2.2) -> None:
        """Save the rendered image to a file (format from the extension).

        Args:
            filepath: Path to save the image (e.g., "output.png").
            gamma: Gamma correction value. Default 2.2 for sRGB.
        """
        Image.fromarray(self.get_image_uint8(gamma=gamma)).save(filepath)
        logger.info("Saved %s", filepath)

    def __repr__(self) -> str:
        """Return a string representation of the renderer state."""
        return (
            f"ProgressiveRenderer(width={self.width}, height={self.height}, "
            f"batches={self.batch_count})"
        )
