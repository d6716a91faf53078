"""Scene manager: programmatic scene building.

The SceneManager fills every table the integrator reads from: texture tables,
per-kind material tables, meshes and instances in the geometry oracle, the
sky and the light alias table. It keeps a unified material_id space that maps
to (MaterialType, type-local index) pairs, which are what instances store.

Material parameters accept either a PropertyValue (from one of the texture
``add_*`` methods) or a plain RGB tuple, which is turned into a constant
colour.

After all instances are added, ``build_light_table()`` must be called so that
DiffuseLight instances can be sampled.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.gpu)
    >>> from src.pathtracer.scene.manager import SceneManager
    >>> scene = SceneManager()
    >>> red = scene.add_lambertian_material(albedo=(0.65, 0.05, 0.05))
    >>> light = scene.add_diffuse_light_material(emit=(15.0, 15.0, 15.0))
    >>> scene.add_quad((0, 0, 0), (1, 0, 0), (0, 0, 1), material_id=red)
    >>> scene.add_quad((0, 1, 0), (0, 0, 1), (1, 0, 0), material_id=light)
    >>> scene.build_light_table()
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import numpy.typing as npt

from src.pathtracer.geometry.mesh import (
    MeshData,
    box_mesh,
    quad_mesh,
    triangle_mesh,
    uv_sphere_mesh,
)
from src.pathtracer.lights.alias_table import (
    build_light_source_alias_table,
    clear_light_alias_table,
    get_light_total_area,
)
from src.pathtracer.materials import (
    MaterialType,
    add_dielectric_material,
    add_diffuse_light_material,
    add_lambertian_material,
    add_metal_material,
    clear_materials,
)
from src.pathtracer.scene import oracle, sky
from src.pathtracer.textures import (
    PropertyValue,
    add_checker_texture,
    add_constant_colour,
    add_image_texture,
    add_noise_texture,
    clear_textures,
    load_image_texture,
)

logger = logging.getLogger(__name__)

# Maximum number of materials across all types
MAX_MATERIALS = 1024

PropertyLike = PropertyValue | tuple[float, float, float]


@dataclass
class MaterialInfo:
    """Information about a registered material.

    Attributes:
        material_id: The unified material ID.
        material_type: The kind of material.
        type_index: The index within the kind's material table.
        params: The material parameters as provided during creation.
    """

    material_id: int
    material_type: MaterialType
    type_index: int
    params: dict[str, Any]


@dataclass
class InstanceInfo:
    """Information about a mesh instance in the scene.

    Attributes:
        instance_id: Index in the oracle's instance table.
        mesh_id: The instanced mesh.
        material_id: The unified material ID assigned to the instance.
        primitive: Name of the builder that produced the mesh.
        triangle_count: Number of triangles in the mesh.
    """

    instance_id: int
    mesh_id: int
    material_id: int
    primitive: str
    triangle_count: int


@dataclass
class SceneStats:
    """Summary counts of a built scene."""

    materials: int = 0
    meshes: int = 0
    instances: int = 0
    triangles: int = 0
    light_triangles: int = 0
    light_area: float = 0.0
    by_primitive: dict[str, int] = field(default_factory=dict)


class SceneManager:
    """Programmatic scene builder over the module-level scene tables.

    Creating a SceneManager clears all tables; there is one active scene at a
    time.

    Attributes:
        materials: MaterialInfo for every registered material.
        instances: InstanceInfo for every instance in the scene.
    """

    def __init__(self) -> None:
        """Initialize an empty scene."""
        self.materials: list[MaterialInfo] = []
        self.instances: list[InstanceInfo] = []
        self._light_triangles = 0
        self._clear_all()

    def _clear_all(self) -> None:
        clear_textures()
        clear_materials()
        oracle.clear_geometry()
        clear_light_alias_table()
        sky.set_sky_none()
        self.materials.clear()
        self.instances.clear()
        self._light_triangles = 0

    def clear(self) -> None:
        """Clear the entire scene (textures, materials, geometry, lights, sky)."""
        self._clear_all()

    # =========================================================================
    # Textures
    # =========================================================================

    def add_colour(self, rgb: tuple[float, float, float]) -> PropertyValue:
        """Add a constant linear RGB colour."""
        return add_constant_colour(rgb)

    def add_image_texture(self, image: str | Path | npt.ArrayLike) -> PropertyValue:
        """Add an image texture from a file path or a pixel array."""
        if isinstance(image, (str, Path)):
            return load_image_texture(image)
        return add_image_texture(image)

    def add_checker_texture(self, scale: float, odd: PropertyLike, even: PropertyLike) -> PropertyValue:
        """Add a solid checker alternating between two properties."""
        return add_checker_texture(scale, self._property(odd), self._property(even))

    def add_noise_texture(self, scale: float) -> PropertyValue:
        """Add a Perlin marble texture."""
        return add_noise_texture(scale)

    def _property(self, value: PropertyLike) -> PropertyValue:
        if isinstance(value, PropertyValue):
            return value
        if len(value) == 3:
            return add_constant_colour(value)
        raise ValueError(f"Expected a PropertyValue or an RGB tuple, got {value!r}")

    # =========================================================================
    # Material Management
    # =========================================================================

    def _register_material(
        self,
        material_type: MaterialType,
        type_index: int,
        params: dict[str, Any],
    ) -> int:
        material_id = len(self.materials)
        if material_id >= MAX_MATERIALS:
            raise RuntimeError(f"Maximum number of materials ({MAX_MATERIALS}) exceeded")
        self.materials.append(
            MaterialInfo(
                material_id=material_id,
                material_type=material_type,
                type_index=type_index,
                params=params,
            )
        )
        return material_id

    def add_lambertian_material(self, albedo: PropertyLike) -> int:
        """Add a Lambertian (diffuse) material.

        Returns:
            The unified material ID for this material.
        """
        albedo_value = self._property(albedo)
        type_index = add_lambertian_material(albedo_value)
        return self._register_material(MaterialType.LAMBERTIAN, type_index, {"albedo": albedo_value})

    def add_metal_material(self, albedo: PropertyLike, fuzz: float | PropertyValue = 0.0) -> int:
        """Add a metal material.

        Args:
            albedo: Reflective tint.
            fuzz: Fuzz amount in [0, 1], or a property whose red channel is
                the fuzz.

        Raises:
            ValueError: If a constant fuzz is outside [0, 1].
        """
        if isinstance(fuzz, PropertyValue):
            fuzz_value = fuzz
        else:
            if fuzz < 0.0 or fuzz > 1.0:
                raise ValueError(f"Metal fuzz must be in [0, 1], got {fuzz}")
            fuzz_value = add_constant_colour((fuzz, fuzz, fuzz))
        albedo_value = self._property(albedo)
        type_index = add_metal_material(albedo_value, fuzz_value)
        return self._register_material(
            MaterialType.METAL, type_index, {"albedo": albedo_value, "fuzz": fuzz_value}
        )

    def add_dielectric_material(self, refraction_index: float = 1.5) -> int:
        """Add a dielectric (glass) material.

        Raises:
            ValueError: If refraction_index is less than 1.
        """
        type_index = add_dielectric_material(refraction_index)
        return self._register_material(
            MaterialType.DIELECTRIC, type_index, {"refraction_index": refraction_index}
        )

    def add_diffuse_light_material(self, emit: PropertyLike) -> int:
        """Add an area light material emitting from front faces."""
        emit_value = self._property(emit)
        type_index = add_diffuse_light_material(emit_value)
        return self._register_material(MaterialType.DIFFUSE_LIGHT, type_index, {"emit": emit_value})

    def get_material_count(self) -> int:
        """Get the number of registered materials."""
        return len(self.materials)

    def get_material_info(self, material_id: int) -> MaterialInfo | None:
        """Get material info by ID, or None if the ID is invalid."""
        if 0 <= material_id < len(self.materials):
            return self.materials[material_id]
        return None

    # =========================================================================
    # Geometry
    # =========================================================================

    def add_mesh(self, mesh: MeshData) -> int:
        """Upload a mesh to the geometry oracle.

        Returns:
            The mesh id, usable with ``add_instance`` any number of times.
        """
        return oracle.add_mesh(mesh.positions, mesh.indices, mesh.normals, mesh.uvs)

    def add_instance(
        self,
        mesh_id: int,
        material_id: int,
        transform: npt.ArrayLike | None = None,
        primitive: str = "mesh",
    ) -> int:
        """Place a mesh with a material.

        Args:
            mesh_id: Mesh returned by ``add_mesh``.
            material_id: Unified material ID.
            transform: Optional 4x4 object-to-world matrix.
            primitive: Label recorded in the InstanceInfo.

        Returns:
            The instance id.

        Raises:
            ValueError: If material_id or mesh_id is invalid.
        """
        info = self.get_material_info(material_id)
        if info is None:
            raise ValueError(f"Invalid material_id: {material_id}")

        instance_id = oracle.add_instance(mesh_id, info.material_type, info.type_index, transform)
        triangle_count = int(oracle.mesh_triangle_count[mesh_id])
        self.instances.append(
            InstanceInfo(
                instance_id=instance_id,
                mesh_id=mesh_id,
                material_id=material_id,
                primitive=primitive,
                triangle_count=triangle_count,
            )
        )
        return instance_id

    def _add_primitive(
        self,
        name: str,
        mesh: MeshData,
        material_id: int,
        transform: npt.ArrayLike | None,
    ) -> int:
        if self.get_material_info(material_id) is None:
            raise ValueError(f"Invalid material_id: {material_id}")
        return self.add_instance(self.add_mesh(mesh), material_id, transform, primitive=name)

    def add_triangle(
        self,
        points: tuple[tuple[float, float, float], ...],
        material_id: int,
        transform: npt.ArrayLike | None = None,
    ) -> int:
        """Add a single triangle facing along cross(p1 - p0, p2 - p0)."""
        return self._add_primitive("triangle", triangle_mesh(points), material_id, transform)

    def add_quad(
        self,
        corner: tuple[float, float, float],
        edge_u: tuple[float, float, float],
        edge_v: tuple[float, float, float],
        material_id: int,
        transform: npt.ArrayLike | None = None,
    ) -> int:
        """Add a quad (parallelogram) facing along cross(edge_u, edge_v).

        The quad has vertices corner, corner+edge_u, corner+edge_u+edge_v,
        corner+edge_v.

        Returns:
            The instance id.
        """
        return self._add_primitive("quad", quad_mesh(corner, edge_u, edge_v), material_id, transform)

    def add_box(
        self,
        corner_a: tuple[float, float, float],
        corner_b: tuple[float, float, float],
        material_id: int,
        transform: npt.ArrayLike | None = None,
    ) -> int:
        """Add an axis-aligned box (before transform) between two corners."""
        return self._add_primitive("box", box_mesh(corner_a, corner_b), material_id, transform)

    def add_uv_sphere(
        self,
        center: tuple[float, float, float],
        radius: float,
        material_id: int,
        rings: int = 16,
        segments: int = 32,
        transform: npt.ArrayLike | None = None,
    ) -> int:
        """Add a tessellated sphere with smooth normals."""
        mesh = uv_sphere_mesh(center, radius, rings, segments)
        return self._add_primitive("uv_sphere", mesh, material_id, transform)

    # =========================================================================
    # Sky and Lights
    # =========================================================================

    def set_sky_none(self) -> None:
        sky.set_sky_none()

    def set_sky_solid(self, colour: tuple[float, float, float]) -> None:
        sky.set_sky_solid(colour)

    def set_sky_vertical_gradient(
        self,
        factor: float,
        top: tuple[float, float, float],
        bottom: tuple[float, float, float],
    ) -> None:
        sky.set_sky_vertical_gradient(factor, top, bottom)

    def build_light_table(self) -> int:
        """Rebuild the light alias table from the current instances.

        Returns:
            The number of light triangles.
        """
        self._light_triangles = build_light_source_alias_table()
        if self._light_triangles == 0:
            logger.info("Scene has no area lights; light sampling disabled")
        return self._light_triangles

    # =========================================================================
    # Statistics
    # =========================================================================

    def get_instance_count(self) -> int:
        """Get the number of instances in the scene."""
        return len(self.instances)

    def get_triangle_count(self) -> int:
        """Get the number of triangles over all instances."""
        return sum(inst.triangle_count for inst in self.instances)

    def stats(self) -> SceneStats:
        """Summary counts of the current scene."""
        by_primitive: dict[str, int] = {}
        for inst in self.instances:
            by_primitive[inst.primitive] = by_primitive.get(inst.primitive, 0) + 1
        return SceneStats(
            materials=len(self.materials),
            meshes=oracle.get_mesh_count(),
            instances=len(self.instances),
            triangles=self.get_triangle_count(),
            light_triangles=self._light_triangles,
            light_area=get_light_total_area(),
            by_primitive=by_primitive,
        )
