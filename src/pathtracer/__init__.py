"""Taichi Monte Carlo path tracer.

This package renders triangle-mesh scenes with a GPU-parallel path tracer,
with support for:
- One-sample multiple importance sampling of area lights and materials
- Lambertian, metal, dielectric and diffuse light materials
- Constant, image, checker and Perlin noise textures
- Progressive rendering in deterministic sample batches

Subpackages:
    core: Rays, random numbers, MIS, the path integrator and the progressive renderer
    geometry: Triangle intersection and host-side mesh builders
    materials: Scatter records and per-kind material tables
    textures: Texture-backed material properties
    lights: Light source alias table and light sampling
    scene: Geometry oracle, sky, SceneManager and the Cornell box
    camera: Thin-lens camera with ray generation
"""

__version__ = "0.1.0"
