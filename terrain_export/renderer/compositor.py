import logging
from dataclasses import dataclass, field
from enum import StrEnum, auto
from typing import List, Optional, Tuple

from PIL import Image

from terrain_export.atlas import TextureAtlas
from terrain_export.color_lookup import ColorTextureResolver
from terrain_export.errors import TextureResolutionError
from terrain_export.masks import MaskLibrary
from terrain_export.model import BlendDescriptor, BlendLayer, TerrainMap
from terrain_export.neighbors import (
    BlendContext,
    NeighborAnalyzer,
    TextureLookup,
    grid_texture_lookup,
)
from terrain_export.types import Coordinate
from terrain_export.utils.grid import to_screen_position
from terrain_export.utils.image import apply_alpha_mask, fit_cell

log = logging.getLogger(__name__)

BACKGROUND = (0, 0, 0, 0)


class BlendPass(StrEnum):
    PRIMARY = auto()
    THREE_WAY = auto()


@dataclass
class CompositeResult:
    """Raster plus per-pass counters for the export summary."""

    image: Image.Image
    painted_tiles: int = 0
    skipped_tiles: int = 0
    blended_tiles: int = 0
    three_way_blended_tiles: int = 0
    skipped_blends: int = 0
    warnings: List[str] = field(default_factory=list)


def new_raster(terrain_map: TerrainMap, preview_cell_size: int) -> Image.Image:
    return Image.new(
        "RGBA",
        (terrain_map.width * preview_cell_size, terrain_map.height * preview_cell_size),
        BACKGROUND,
    )


def draw_base_tiles(
    raster: Image.Image,
    terrain_map: TerrainMap,
    atlas: TextureAtlas,
    preview_cell_size: int,
    result: CompositeResult,
) -> None:
    """Pass 1: copy each tile's atlas cell to its (vertically flipped) screen cell."""
    for coordinate, tile_value in terrain_map.tiles.items():
        located = atlas.locate(tile_value, coordinate, terrain_map.height)
        if located is None:
            log.debug("No atlas cell for tile %s value %d", coordinate, tile_value)
            result.skipped_tiles += 1
            continue
        entry, offset = located
        try:
            cell = atlas.cell_image(entry, offset)
        except ValueError as e:
            log.debug("Skipping tile %s: %s", coordinate, e)
            result.skipped_tiles += 1
            continue
        raster.paste(
            fit_cell(cell, preview_cell_size),
            to_screen_position(coordinate, terrain_map.height, preview_cell_size),
        )
        result.painted_tiles += 1


def masked_cell(
    atlas: TextureAtlas,
    masks: MaskLibrary,
    context: BlendContext,
    descriptor: BlendDescriptor,
    coordinate: Coordinate,
    map_height: int,
) -> Optional[Image.Image]:
    """Secondary texture cell at ``coordinate`` with the mask's alpha in place of its own."""
    located = atlas.locate(descriptor.secondary_tile_value, coordinate, map_height)
    if located is None:
        return None
    mask = masks.get(context.mask_key)
    if mask is None:
        return None
    entry, offset = located
    cell = atlas.cell_image(entry, offset)
    return apply_alpha_mask(cell, fit_cell(mask, atlas.cell_size))


def apply_blend_layer(
    raster: Image.Image,
    terrain_map: TerrainMap,
    layer: BlendLayer,
    atlas: TextureAtlas,
    masks: MaskLibrary,
    neighbor_lookup: TextureLookup,
    base_lookup: TextureLookup,
    preview_cell_size: int,
    blend_pass: BlendPass,
    result: CompositeResult,
) -> None:
    """Passes 2 and 3: overlay masked secondary cells for every active layer entry."""
    analyzer = NeighborAnalyzer(atlas)
    tile_lookup = grid_texture_lookup(terrain_map.tiles, atlas)

    for coordinate, index in layer.active():
        descriptor = terrain_map.descriptor_for(index)
        if descriptor is None:
            log.debug("Dangling %s blend index %d at %s", blend_pass, index, coordinate)
            result.skipped_blends += 1
            continue
        if tile_lookup(coordinate) is None:
            result.skipped_blends += 1
            continue

        base_texture = base_lookup(coordinate)
        context = analyzer.analyze(
            coordinate,
            descriptor.direction,
            base_texture,
            descriptor.secondary_tile_value,
            neighbor_lookup,
        )
        if not context.should_blend:
            continue

        try:
            overlay = masked_cell(
                atlas, masks, context, descriptor, coordinate, terrain_map.height
            )
        except (TextureResolutionError, ValueError) as e:
            log.debug("Skipping %s blend at %s: %s", blend_pass, coordinate, e)
            overlay = None
        if overlay is None:
            result.skipped_blends += 1
            continue

        raster.alpha_composite(
            fit_cell(overlay, preview_cell_size),
            to_screen_position(coordinate, terrain_map.height, preview_cell_size),
        )
        if blend_pass is BlendPass.PRIMARY:
            result.blended_tiles += 1
        else:
            result.three_way_blended_tiles += 1


def composite(
    terrain_map: TerrainMap,
    atlas: TextureAtlas,
    masks: MaskLibrary,
    preview_cell_size: Optional[int] = None,
    blend_tiles: bool = True,
) -> CompositeResult:
    """
    Render a map preview in three strictly ordered passes over one raster:
    base tiles, primary blends, then three-way blends. The three-way pass reads
    texture identity back from the raster left by the primary pass.
    """
    cell_size = preview_cell_size or atlas.cell_size
    raster = new_raster(terrain_map, cell_size)
    result = CompositeResult(image=raster)

    draw_base_tiles(raster, terrain_map, atlas, cell_size, result)

    if not blend_tiles:
        return result

    try:
        masks.load_masks()
    except TextureResolutionError as e:
        log.warning("Blend masks unavailable, blends skipped: %s", e)
        result.warnings.append(str(e))
        result.skipped_blends += sum(1 for _ in terrain_map.blends.active())
        result.skipped_blends += sum(1 for _ in terrain_map.three_way_blends.active())
        return result

    grid_lookup = grid_texture_lookup(terrain_map.tiles, atlas)
    apply_blend_layer(
        raster,
        terrain_map,
        terrain_map.blends,
        atlas,
        masks,
        neighbor_lookup=grid_lookup,
        base_lookup=grid_lookup,
        preview_cell_size=cell_size,
        blend_pass=BlendPass.PRIMARY,
        result=result,
    )

    # Identity is read from the raster as the primary pass left it; three-way
    # overlays go into ``raster`` and must not feed later three-way decisions.
    primary_snapshot = raster.copy()
    colors = ColorTextureResolver(atlas, primary_snapshot, terrain_map.height, cell_size)

    def rendered_base(coordinate: Coordinate) -> Optional[str]:
        return colors.texture_at(coordinate) or grid_lookup(coordinate)

    apply_blend_layer(
        raster,
        terrain_map,
        terrain_map.three_way_blends,
        atlas,
        masks,
        neighbor_lookup=colors.texture_at,
        base_lookup=rendered_base,
        preview_cell_size=cell_size,
        blend_pass=BlendPass.THREE_WAY,
        result=result,
    )
    return result


class Compositor:
    atlas: TextureAtlas
    masks: MaskLibrary
    preview_cell_size: Optional[int]
    blend_tiles: bool

    def __init__(
        self,
        atlas: TextureAtlas,
        masks: MaskLibrary,
        preview_cell_size: Optional[int] = None,
        blend_tiles: bool = True,
    ):
        self.atlas = atlas
        self.masks = masks
        self.preview_cell_size = preview_cell_size
        self.blend_tiles = blend_tiles

    def export(self, terrain_map: TerrainMap) -> CompositeResult:
        return composite(
            terrain_map,
            self.atlas,
            self.masks,
            preview_cell_size=self.preview_cell_size,
            blend_tiles=self.blend_tiles,
        )

    def screen_rect(
        self, coordinate: Coordinate, map_height: int
    ) -> Tuple[int, int, int, int]:
        size = self.preview_cell_size or self.atlas.cell_size
        left, top = to_screen_position(coordinate, map_height, size)
        return (left, top, left + size, top + size)
