"""Cornell box scene configuration.

This module provides a factory function to create the classic Cornell box scene,
a standard test scene used in computer graphics for evaluating global illumination
algorithms.

The Cornell box consists of:
- 5 walls forming an open box (left, right, back, floor, ceiling)
- Left wall: red diffuse
- Right wall: green diffuse
- Back, floor, ceiling: white diffuse
- A tall aluminium box rotated 15 degrees and a glass sphere
- Area light on the ceiling (DiffuseLight quad facing down)

The box spans 0 to 555 in each dimension, with the camera positioned outside
looking in through the open front.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.gpu)
    >>> from src.pathtracer.scene.cornell_box import create_cornell_box_scene
    >>> from src.pathtracer.camera.thin_lens import setup_camera
    >>>
    >>> scene, camera = create_cornell_box_scene()
    >>> setup_camera(camera, aspect_ratio=1.0)
"""

from dataclasses import dataclass

from src.pathtracer.config import CameraConfig
from src.pathtracer.geometry.mesh import make_transform
from src.pathtracer.scene.manager import SceneManager

# =============================================================================
# Cornell Box Parameters
# =============================================================================


@dataclass
class CornellBoxParams:
    """Parameters for configuring a Cornell box scene.

    Attributes:
        light_intensity: Scale applied to light_color for the emitted radiance.
        light_color: RGB color of the light.
        left_wall_color: RGB albedo of the left wall (red).
        right_wall_color: RGB albedo of the right wall (green).
        white_color: RGB albedo of the back wall, floor and ceiling.
        metal_fuzz: Fuzz of the tall aluminium box.
        glass_refraction_index: Refraction index of the sphere.
        sphere_rings: Tessellation rings of the glass sphere.
        sphere_segments: Tessellation segments of the glass sphere.
    """

    light_intensity: float = 15.0
    light_color: tuple[float, float, float] = (1.0, 1.0, 1.0)
    left_wall_color: tuple[float, float, float] = (0.65, 0.05, 0.05)
    right_wall_color: tuple[float, float, float] = (0.12, 0.45, 0.15)
    white_color: tuple[float, float, float] = (0.73, 0.73, 0.73)
    metal_fuzz: float = 0.0
    glass_refraction_index: float = 1.5
    sphere_rings: int = 12
    sphere_segments: int = 24


# =============================================================================
# Cornell Box Constants
# =============================================================================

# Classic Cornell box dimensions (approximately 555x555x555 units)
BOX_SIZE = 555.0

# Classic light size
LIGHT_WIDTH = 130.0
LIGHT_DEPTH = 105.0

ALUMINIUM_ALBEDO = (0.8, 0.85, 0.88)

TALL_BOX_SIZE = (165.0, 330.0, 165.0)
TALL_BOX_POSITION = (265.0, 0.0, 295.0)
TALL_BOX_ROTATION = 15.0

GLASS_SPHERE_CENTER = (190.0, 90.0, 190.0)
GLASS_SPHERE_RADIUS = 90.0


def get_light_quad_info(box_size: float = BOX_SIZE) -> dict[str, tuple[float, float, float]]:
    """Corner and edges of the ceiling light.

    The edges are ordered so that cross(edge_u, edge_v) points down into the
    box, which is the light's emitting side.
    """
    x0 = (box_size - LIGHT_WIDTH) / 2.0
    z0 = (box_size - LIGHT_DEPTH) / 2.0
    light_y = box_size - 1.0
    return {
        "corner": (x0, light_y, z0),
        "edge_u": (LIGHT_WIDTH, 0.0, 0.0),
        "edge_v": (0.0, 0.0, LIGHT_DEPTH),
        "center": (x0 + LIGHT_WIDTH / 2.0, light_y, z0 + LIGHT_DEPTH / 2.0),
    }


# =============================================================================
# Cornell Box Factory
# =============================================================================


def create_cornell_box_scene(
    box_size: float = BOX_SIZE,
    params: CornellBoxParams | None = None,
) -> tuple[SceneManager, CameraConfig]:
    """Create a Cornell box scene with standard configuration.

    The coordinate system places the box origin at (0, 0, 0) with:
    - X-axis: left to right (0 to box_size)
    - Y-axis: floor to ceiling (0 to box_size)
    - Z-axis: front to back (0 to box_size), camera looks toward +Z

    Args:
        box_size: The size of the box in each dimension.
        params: Optional CornellBoxParams. If None, uses CornellBoxParams().

    Returns:
        A tuple of (SceneManager, CameraConfig). The light table is already
        built.
    """
    if params is None:
        params = CornellBoxParams()

    scene = SceneManager()

    # =========================================================================
    # Materials
    # =========================================================================

    red_mat = scene.add_lambertian_material(albedo=params.left_wall_color)
    green_mat = scene.add_lambertian_material(albedo=params.right_wall_color)
    white_mat = scene.add_lambertian_material(albedo=params.white_color)
    emit = tuple(c * params.light_intensity for c in params.light_color)
    light_mat = scene.add_diffuse_light_material(emit=emit)
    metal_mat = scene.add_metal_material(albedo=ALUMINIUM_ALBEDO, fuzz=params.metal_fuzz)
    glass_mat = scene.add_dielectric_material(params.glass_refraction_index)

    # =========================================================================
    # Walls (5 quads forming the box)
    # =========================================================================

    s = box_size
    scene.add_quad((0.0, 0.0, 0.0), (0.0, s, 0.0), (0.0, 0.0, s), red_mat)  # Left, x=0
    scene.add_quad((s, 0.0, s), (0.0, s, 0.0), (0.0, 0.0, -s), green_mat)  # Right, x=s
    scene.add_quad((s, 0.0, s), (-s, 0.0, 0.0), (0.0, s, 0.0), white_mat)  # Back, z=s
    scene.add_quad((0.0, 0.0, 0.0), (0.0, 0.0, s), (s, 0.0, 0.0), white_mat)  # Floor, y=0
    scene.add_quad((0.0, s, 0.0), (s, 0.0, 0.0), (0.0, 0.0, s), white_mat)  # Ceiling, y=s

    # =========================================================================
    # Area Light (just below the ceiling, facing down)
    # =========================================================================

    light = get_light_quad_info(box_size)
    scene.add_quad(light["corner"], light["edge_u"], light["edge_v"], light_mat)

    # =========================================================================
    # Contents
    # =========================================================================

    scale = box_size / BOX_SIZE
    tall_box = make_transform(
        translate=tuple(c * scale for c in TALL_BOX_POSITION),
        rotate_axis=(0.0, 1.0, 0.0),
        rotate_degrees=TALL_BOX_ROTATION,
        scale=(scale, scale, scale),
    )
    scene.add_box((0.0, 0.0, 0.0), TALL_BOX_SIZE, metal_mat, transform=tall_box)

    scene.add_uv_sphere(
        center=tuple(c * scale for c in GLASS_SPHERE_CENTER),
        radius=GLASS_SPHERE_RADIUS * scale,
        material_id=glass_mat,
        rings=params.sphere_rings,
        segments=params.sphere_segments,
    )

    scene.build_light_table()

    # =========================================================================
    # Camera Setup
    # =========================================================================

    camera = CameraConfig(
        eye=(box_size / 2.0, box_size / 2.0, -800.0 * scale),
        look_at=(box_size / 2.0, box_size / 2.0, 0.0),
        up=(0.0, 1.0, 0.0),
        fov_y=40.0,
        focal_length=10.0 * scale,
        aperture_size=0.0,
    )

    return scene, camera
