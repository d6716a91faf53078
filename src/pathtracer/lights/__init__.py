"""Lights module: area light sampling.

Components:
    alias_table: Host-side Vose alias table over light triangle areas
    sampler: Device-side alias draws, light point sampling and solid-angle pdf
"""

from .alias_table import (
    MAX_LIGHT_TRIANGLES,
    LightTriangle,
    build_alias_table,
    build_light_source_alias_table,
    clear_light_alias_table,
    collect_light_triangles,
    get_light_total_area,
    get_light_triangle_count,
    upload_light_alias_table,
)
from .sampler import light_pdf_value, sample_alias_row, sample_light

__all__ = [
    "LightTriangle",
    "build_alias_table",
    "build_light_source_alias_table",
    "clear_light_alias_table",
    "collect_light_triangles",
    "upload_light_alias_table",
    "get_light_triangle_count",
    "get_light_total_area",
    "sample_alias_row",
    "sample_light",
    "light_pdf_value",
    "MAX_LIGHT_TRIANGLES",
]
