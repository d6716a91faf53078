"""Material property references.

A material parameter such as an albedo is not stored inline; it is a reference
to an entry in one of the texture tables:

    RGB      constant colour table
    IMAGE    image texture table
    CHECKER  checker texture table
    NOISE    noise texture table

The host-side handle is ``PropertyValue`` (returned by the ``add_*`` functions),
the device-side form is the ``PropertyRef`` Taichi struct.
"""

from dataclasses import dataclass
from enum import IntEnum

import taichi as ti


class PropertyKind(IntEnum):
    """Texture table a property reference points into."""

    RGB = 0
    IMAGE = 1
    CHECKER = 2
    NOISE = 3


@dataclass(frozen=True)
class PropertyValue:
    """Host handle to a texture table entry.

    Attributes:
        kind: The table the entry lives in.
        index: Row within that table.
    """

    kind: PropertyKind
    index: int

    def to_dict(self) -> dict:
        return {"kind": self.kind.name, "index": self.index}


@ti.dataclass
class PropertyRef:
    """Device-side property reference (kind code + table row)."""

    kind: ti.i32
    index: ti.i32


def as_property_value(value: "PropertyValue | tuple[PropertyKind | int, int]") -> PropertyValue:
    """Coerce a (kind, index) pair to a PropertyValue.

    Raises:
        ValueError: If the kind code is unknown.
    """
    if isinstance(value, PropertyValue):
        return value
    kind, index = value
    try:
        kind = PropertyKind(int(kind))
    except ValueError as e:
        raise ValueError(f"Unknown property kind: {kind}") from e
    return PropertyValue(kind=kind, index=int(index))
