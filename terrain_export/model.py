"""Immutable in-memory map model.

This module defines the read-only structures the exporter consumes from the
map parser: the tile grid, the two blend layers, the blend descriptor table and
the ordered texture declarations. Everything is frozen for the duration of one
map export; the compositor never writes back into the model.

Design notes:

* Grids are **persistent maps** (``pyrsistent.PMap``) keyed by
    :class:`~terrain_export.types.Coordinate`. Absence of a key means the parser
    stored no value there; lookups outside the map rectangle return ``None``
    instead of raising.
* Blend layers hold 1-based descriptor indexes; ``0`` means "no blend".
* A descriptor's effective :class:`~terrain_export.types.BlendDirection` is
    derived once from its canonical direction and flip flag.
"""

from dataclasses import dataclass
from typing import Dict, Iterator, Optional, Sequence, Tuple
from pyrsistent import PMap, pmap, pvector
from pyrsistent.typing import PVector

from terrain_export.types import (
    BlendDirection,
    CanonicalDirection,
    Coordinate,
    TileValue,
)
from terrain_export.utils.grid import is_in_bounds


@dataclass(frozen=True)
class TileGrid:
    """Sparse or dense mapping from coordinate to a 16-bit tile value.

    Attributes:
        width (int): Map width in tiles.
        height (int): Map height in tiles.
        values (PMap[Coordinate, int]): Stored values.
    """

    width: int
    height: int
    values: PMap[Coordinate, int] = pmap()

    def get(self, coordinate: Coordinate) -> Optional[int]:
        if not is_in_bounds(coordinate, self.width, self.height):
            return None
        return self.values.get(coordinate)

    def items(self) -> Iterator[Tuple[Coordinate, int]]:
        """Stored entries, column by column (x, then y)."""
        for coordinate in sorted(self.values.keys(), key=lambda c: (c.x, c.y)):
            yield coordinate, self.values[coordinate]

    def __len__(self) -> int:
        return len(self.values)

    @classmethod
    def from_rows(cls, rows: Sequence[Sequence[int]]) -> "TileGrid":
        """Build a grid from ``rows[y][x]`` (row 0 is the bottom of the map)."""
        height = len(rows)
        width = len(rows[0]) if height else 0
        values: Dict[Coordinate, int] = {}
        for y, row in enumerate(rows):
            if len(row) != width:
                raise ValueError(
                    f"Row {y} has {len(row)} entries, expected {width}"
                )
            for x, value in enumerate(row):
                values[Coordinate(x, y)] = int(value)
        return cls(width=width, height=height, values=pmap(values))


class BlendLayer(TileGrid):
    """Same access contract as :class:`TileGrid`; values are descriptor indexes."""

    def active(self) -> Iterator[Tuple[Coordinate, int]]:
        for coordinate, index in self.items():
            if index != 0:
                yield coordinate, index


@dataclass(frozen=True)
class BlendDescriptor:
    """Directional transition towards a secondary texture.

    Attributes:
        canonical_direction: One of the four stored directions.
        flipped: Mirror the canonical direction across the opposite axis.
        secondary_tile_value: Tile value addressing the texture blended in.
    """

    canonical_direction: CanonicalDirection
    flipped: bool
    secondary_tile_value: TileValue

    @property
    def direction(self) -> BlendDirection:
        return BlendDirection.from_canonical(self.canonical_direction, self.flipped)


@dataclass(frozen=True)
class TextureDeclaration:
    """Texture entry as declared by the map, before any image is loaded."""

    name: str
    declared_cell_size: int = 0


@dataclass(frozen=True)
class TerrainMap:
    """Everything the exporter needs from one parsed map.

    Attributes:
        name (str): Map name (from world metadata or the file name).
        description (str | None): Optional free-form description.
        tiles (TileGrid): Tile values.
        blends (BlendLayer): Primary blend layer.
        three_way_blends (BlendLayer): Second blend layer, applied after the primary one.
        descriptors (PVector[BlendDescriptor]): Descriptor table, 0-based.
        textures (PVector[TextureDeclaration]): Ordered texture declarations.
    """

    name: str
    tiles: TileGrid
    blends: BlendLayer
    three_way_blends: BlendLayer
    descriptors: PVector[BlendDescriptor] = pvector()
    textures: PVector[TextureDeclaration] = pvector()
    description: Optional[str] = None

    @property
    def width(self) -> int:
        return self.tiles.width

    @property
    def height(self) -> int:
        return self.tiles.height

    def descriptor_for(self, index: int) -> Optional[BlendDescriptor]:
        """Descriptor addressed by a 1-based blend-layer value, if any."""
        if index <= 0 or index > len(self.descriptors):
            return None
        return self.descriptors[index - 1]
