"""Neighbor analysis for directional blends.

Given a tile, its effective blend direction and the texture currently shown at
the tile, decide whether the secondary texture should be blended in and which
mask to use.

* **Edge** directions inspect the single neighbor across that edge. The blend
  applies when that neighbor resolves to a texture other than the base one.
* **Diagonal** directions inspect the diagonal neighbor and the two edge
  neighbors sharing the corner. Candidates showing the base texture are
  discarded; the rest are compared with the descriptor's target texture. Two
  or more matches select the ``*_corner`` mask, exactly one the plain
  diagonal mask, none means no blend.

Neighbor texture identity comes from a :data:`TextureLookup`: the raw tile
grid for the primary pass and the rendered raster for the three-way pass.
"""

from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

from terrain_export.atlas import TextureAtlas
from terrain_export.model import TileGrid
from terrain_export.types import (
    BlendDirection,
    BlendMaskType,
    Coordinate,
    MaskKey,
    TextureName,
    TileValue,
)
from terrain_export.utils.grid import diagonal_neighbors, edge_neighbor

TextureLookup = Callable[[Coordinate], Optional[TextureName]]


EDGE_MASK_KEYS: Dict[BlendDirection, MaskKey] = {
    BlendDirection.LEFT: "left",
    BlendDirection.RIGHT: "right",
    BlendDirection.TOP: "top",
    BlendDirection.BOTTOM: "bottom",
}

DIAGONAL_MASK_KEYS: Dict[BlendDirection, MaskKey] = {
    BlendDirection.TOP_LEFT: "top_left",
    BlendDirection.TOP_RIGHT: "top_right",
    BlendDirection.BOTTOM_LEFT: "bottom_left",
    BlendDirection.BOTTOM_RIGHT: "bottom_right",
}

CORNER_MASK_KEYS: Dict[BlendDirection, MaskKey] = {
    direction: f"{key}_corner" for direction, key in DIAGONAL_MASK_KEYS.items()
}

MASK_KEY_TABLES: Dict[BlendMaskType, Dict[BlendDirection, MaskKey]] = {
    BlendMaskType.EDGE: EDGE_MASK_KEYS,
    BlendMaskType.DIAGONAL_ONLY: DIAGONAL_MASK_KEYS,
    BlendMaskType.CORNER: CORNER_MASK_KEYS,
}


def mask_key_for(
    direction: Optional[BlendDirection], mask_type: BlendMaskType
) -> Optional[MaskKey]:
    if direction is None:
        return None
    return MASK_KEY_TABLES.get(mask_type, {}).get(direction)


@dataclass(frozen=True)
class BlendContext:
    """Outcome of a neighbor analysis.

    Attributes:
        should_blend: True if the secondary texture must be painted.
        direction: Effective direction the decision was made for.
        mask_type: Mask family to use.
    """

    should_blend: bool
    direction: Optional[BlendDirection] = None
    mask_type: BlendMaskType = BlendMaskType.NONE

    @property
    def mask_key(self) -> Optional[MaskKey]:
        if not self.should_blend:
            return None
        return mask_key_for(self.direction, self.mask_type)


NO_BLEND = BlendContext(should_blend=False)


def grid_texture_lookup(tiles: TileGrid, atlas: TextureAtlas) -> TextureLookup:
    """Texture identity straight from the tile values (primary pass)."""

    def lookup(coordinate: Coordinate) -> Optional[TextureName]:
        return atlas.texture_name(tiles.get(coordinate))

    return lookup


class NeighborAnalyzer:
    atlas: TextureAtlas

    def __init__(self, atlas: TextureAtlas):
        self.atlas = atlas

    def analyze(
        self,
        coordinate: Coordinate,
        direction: BlendDirection,
        base_texture_name: Optional[TextureName],
        secondary_tile_value: TileValue,
        texture_at: TextureLookup,
    ) -> BlendContext:
        if direction.is_diagonal:
            return self.analyze_diagonal(
                coordinate, direction, base_texture_name, secondary_tile_value, texture_at
            )
        if direction.is_edge:
            return self.analyze_edge(coordinate, direction, base_texture_name, texture_at)
        return NO_BLEND

    def analyze_edge(
        self,
        coordinate: Coordinate,
        direction: BlendDirection,
        base_texture_name: Optional[TextureName],
        texture_at: TextureLookup,
    ) -> BlendContext:
        neighbor_texture = texture_at(edge_neighbor(coordinate, direction))
        if neighbor_texture is None or neighbor_texture == base_texture_name:
            return NO_BLEND
        return BlendContext(True, direction, BlendMaskType.EDGE)

    def analyze_diagonal(
        self,
        coordinate: Coordinate,
        direction: BlendDirection,
        base_texture_name: Optional[TextureName],
        secondary_tile_value: TileValue,
        texture_at: TextureLookup,
    ) -> BlendContext:
        candidates: List[TextureName] = []
        for neighbor in diagonal_neighbors(coordinate, direction):
            name = texture_at(neighbor)
            if name is not None and name != base_texture_name:
                candidates.append(name)
        if not candidates:
            return NO_BLEND

        target = self.atlas.texture_name(secondary_tile_value)
        if target is None:
            return NO_BLEND

        matches = sum(1 for name in candidates if name == target)
        if matches >= 2:
            return BlendContext(True, direction, BlendMaskType.CORNER)
        if matches == 1:
            return BlendContext(True, direction, BlendMaskType.DIAGONAL_ONLY)
        return NO_BLEND
