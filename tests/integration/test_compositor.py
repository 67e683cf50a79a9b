import numpy as np
import pytest
from PIL import Image

from terrain_export.masks import MaskLibrary
from terrain_export.neighbors import BlendContext
from terrain_export.renderer.compositor import (
    BACKGROUND,
    Compositor,
    composite,
    masked_cell,
)
from terrain_export.types import BlendDirection, BlendMaskType, CanonicalDirection, Coordinate
from terrain_export.utils.image import flip_horizontal
from tests.test_utils import (
    BLUE,
    CELL,
    GREEN,
    RED,
    descriptor,
    gradient_mask,
    half_mask,
    make_terrain_map,
    mask_sources,
    opaque_mask,
    opaque_masks,
    raster_rgb,
    solid_atlas,
    tile_center,
    tile_value,
)

ATLAS = solid_atlas([("A", RED), ("B", GREEN), ("C", BLUE)])
A, B, C = tile_value(0), tile_value(1), tile_value(2)


def test_base_pass_flips_rows() -> None:
    terrain_map = make_terrain_map([[A], [B]])
    result = composite(terrain_map, ATLAS, opaque_masks(), blend_tiles=False)

    assert result.image.size == (CELL, 2 * CELL)
    assert raster_rgb(result.image, 0, 0) == GREEN
    assert raster_rgb(result.image, 0, 2 * CELL - 1) == RED
    assert result.painted_tiles == 2


def test_unresolved_tiles_stay_background() -> None:
    terrain_map = make_terrain_map([[A, tile_value(40)]])
    result = composite(terrain_map, ATLAS, opaque_masks(), blend_tiles=False)

    assert result.skipped_tiles == 1
    assert result.image.getpixel((CELL + 1, 1)) == BACKGROUND


def test_masked_cell_uses_secondary_rgb_and_mask_alpha() -> None:
    masks = MaskLibrary.from_sources(mask_sources(horizontal=gradient_mask()))
    context = BlendContext(True, BlendDirection.LEFT, BlendMaskType.EDGE)
    overlay = masked_cell(
        ATLAS, masks, context, descriptor(CanonicalDirection.RIGHT, B, flipped=True),
        Coordinate(0, 0), map_height=1,
    )
    assert overlay is not None
    pixels = np.array(overlay)
    assert np.all(pixels[..., :3] == GREEN)
    assert np.array_equal(pixels[..., 3], np.array(gradient_mask())[..., 3])


def test_right_blend_paints_secondary_through_right_mask() -> None:
    # A | B on the bottom row, A | A above; blend B into (0, 0) towards the right.
    terrain_map = make_terrain_map(
        [[A, B], [A, A]],
        blends=[[1, 0], [0, 0]],
        descriptors=[descriptor(CanonicalDirection.RIGHT, B)],
    )
    masks = MaskLibrary.from_sources(mask_sources(horizontal=half_mask()))
    result = composite(terrain_map, ATLAS, masks)

    top = CELL  # grid row 0 is the lower raster row
    assert raster_rgb(result.image, 0, top) == RED
    assert raster_rgb(result.image, CELL - 1, top) == GREEN
    assert raster_rgb(result.image, CELL - 1, 0) == RED
    assert result.blended_tiles == 1
    assert result.image.getpixel((CELL - 1, top))[3] == 255

    # The right mask is the horizontal source mirrored: opaque on the right edge.
    overlay = masked_cell(
        ATLAS, masks, BlendContext(True, BlendDirection.RIGHT, BlendMaskType.EDGE),
        descriptor(CanonicalDirection.RIGHT, B), Coordinate(0, 0), map_height=2,
    )
    assert overlay is not None
    alpha = np.array(overlay)[..., 3]
    assert np.array_equal(alpha, np.array(flip_horizontal(half_mask()))[..., 3])
    assert alpha[0, CELL - 1] == 255
    assert alpha[0, 0] == 0


def test_blend_skipped_when_neighbor_shares_texture() -> None:
    terrain_map = make_terrain_map(
        [[A, A]],
        blends=[[1, 0]],
        descriptors=[descriptor(CanonicalDirection.RIGHT, B)],
    )
    result = composite(terrain_map, ATLAS, opaque_masks())
    assert raster_rgb(result.image, *tile_center(0, 0, 1)) == RED
    assert result.blended_tiles == 0


def test_dangling_descriptor_index_is_skipped() -> None:
    terrain_map = make_terrain_map(
        [[A, B]],
        blends=[[5, 0]],
        descriptors=[descriptor(CanonicalDirection.RIGHT, B)],
    )
    result = composite(terrain_map, ATLAS, opaque_masks())
    assert result.skipped_blends == 1
    assert raster_rgb(result.image, *tile_center(0, 0, 1)) == RED


def test_three_way_pass_reads_rendered_neighbors() -> None:
    # Grid: A A B. The primary pass turns (1, 0) into C because its right
    # neighbor differs. The three-way blend at (0, 0) only fires because the
    # rendered neighbor is now C; the raw grid still says A there.
    terrain_map = make_terrain_map(
        [[A, A, B]],
        blends=[[0, 1, 0]],
        three_way_blends=[[2, 0, 0]],
        descriptors=[
            descriptor(CanonicalDirection.RIGHT, C),
            descriptor(CanonicalDirection.RIGHT, B),
        ],
    )
    result = composite(terrain_map, ATLAS, opaque_masks())

    assert raster_rgb(result.image, *tile_center(1, 0, 1)) == BLUE
    assert raster_rgb(result.image, *tile_center(0, 0, 1)) == GREEN
    assert result.blended_tiles == 1
    assert result.three_way_blended_tiles == 1


def test_three_way_blend_is_not_applied_without_primary_change() -> None:
    terrain_map = make_terrain_map(
        [[A, A, B]],
        three_way_blends=[[1, 0, 0]],
        descriptors=[descriptor(CanonicalDirection.RIGHT, B)],
    )
    result = composite(terrain_map, ATLAS, opaque_masks())
    assert raster_rgb(result.image, *tile_center(0, 0, 1)) == RED
    assert result.three_way_blended_tiles == 0


def test_three_way_overlays_do_not_feed_later_three_way_tiles() -> None:
    # Grid: B A A, both A tiles blend towards their left neighbor. (1, 0) turns
    # C; (2, 0) must still see the A the primary pass left at (1, 0).
    terrain_map = make_terrain_map(
        [[B, A, A]],
        three_way_blends=[[0, 1, 2]],
        descriptors=[
            descriptor(CanonicalDirection.RIGHT, C, flipped=True),
            descriptor(CanonicalDirection.RIGHT, B, flipped=True),
        ],
    )
    result = composite(terrain_map, ATLAS, opaque_masks())

    assert raster_rgb(result.image, *tile_center(1, 0, 1)) == BLUE
    assert raster_rgb(result.image, *tile_center(2, 0, 1)) == RED
    assert result.three_way_blended_tiles == 1


def _three_way_diagonal_map(primary_repaint: bool):
    # (0, 1)=B (1, 1)=A
    # (0, 0)=A (1, 0)=C
    # The primary LEFT blend repaints (1, 1) as B, giving the top-right corner
    # of (0, 0) two B neighbors instead of one.
    return make_terrain_map(
        [[A, C], [B, A]],
        blends=[[0, 0], [0, 1 if primary_repaint else 0]],
        three_way_blends=[[2, 0], [0, 0]],
        descriptors=[
            descriptor(CanonicalDirection.RIGHT, B, flipped=True),
            descriptor(CanonicalDirection.TOP_RIGHT, B),
        ],
    )


def _corner_only_masks() -> MaskLibrary:
    # Transparent diagonal mask; only the corner mask leaves a footprint.
    return MaskLibrary.from_sources(
        mask_sources(
            horizontal=opaque_mask(),
            diagonal=Image.new("RGBA", (CELL, CELL)),
            corner=half_mask(),
        )
    )


def test_three_way_diagonal_uses_corner_mask_after_primary_repaint() -> None:
    result = composite(_three_way_diagonal_map(primary_repaint=True), ATLAS, _corner_only_masks())

    top = CELL
    assert raster_rgb(result.image, *tile_center(1, 1, 2)) == GREEN
    assert raster_rgb(result.image, 0, top) == GREEN
    assert raster_rgb(result.image, CELL // 2 - 1, 2 * CELL - 1) == GREEN
    assert raster_rgb(result.image, CELL // 2, top) == RED
    assert raster_rgb(result.image, CELL - 1, top) == RED
    assert result.blended_tiles == 1
    assert result.three_way_blended_tiles == 1


def test_three_way_diagonal_falls_back_to_diagonal_mask_without_repaint() -> None:
    result = composite(_three_way_diagonal_map(primary_repaint=False), ATLAS, _corner_only_masks())

    assert raster_rgb(result.image, 0, CELL) == RED
    assert raster_rgb(result.image, CELL - 1, CELL) == RED
    assert result.blended_tiles == 0
    assert result.three_way_blended_tiles == 1


def test_diagonal_corner_blend() -> None:
    # B surrounds the top-right corner of (0, 0) on all three sides.
    terrain_map = make_terrain_map(
        [[A, B], [B, B]],
        blends=[[1, 0], [0, 0]],
        descriptors=[descriptor(CanonicalDirection.TOP_RIGHT, B)],
    )
    corner = half_mask()
    masks = MaskLibrary.from_sources(
        mask_sources(diagonal=Image.new("RGBA", (CELL, CELL)), corner=corner)
    )
    result = composite(terrain_map, ATLAS, masks)

    assert raster_rgb(result.image, 0, CELL) == GREEN
    assert raster_rgb(result.image, CELL - 1, CELL) == RED


def test_missing_masks_skip_blends_only(tmp_path) -> None:
    terrain_map = make_terrain_map(
        [[A, B]],
        blends=[[1, 0]],
        descriptors=[descriptor(CanonicalDirection.RIGHT, B)],
    )
    result = composite(terrain_map, ATLAS, MaskLibrary(str(tmp_path)))

    assert result.painted_tiles == 2
    assert result.skipped_blends == 1
    assert result.warnings
    assert raster_rgb(result.image, *tile_center(0, 0, 1)) == RED


def test_preview_cell_size_scales_raster() -> None:
    terrain_map = make_terrain_map([[A, B]])
    compositor = Compositor(ATLAS, opaque_masks(), preview_cell_size=2 * CELL)
    result = compositor.export(terrain_map)

    assert result.image.size == (4 * CELL, 2 * CELL)
    assert raster_rgb(result.image, 3 * CELL, CELL) == GREEN
    assert compositor.screen_rect(Coordinate(1, 0), 1) == (2 * CELL, 0, 4 * CELL, 2 * CELL)


@pytest.mark.parametrize("blend_tiles", [True, False])
def test_output_is_deterministic(blend_tiles: bool) -> None:
    terrain_map = make_terrain_map(
        [[A, B], [C, A]],
        blends=[[1, 0], [0, 1]],
        descriptors=[descriptor(CanonicalDirection.RIGHT, B)],
    )
    first = composite(terrain_map, ATLAS, opaque_masks(), blend_tiles=blend_tiles)
    second = composite(terrain_map, ATLAS, opaque_masks(), blend_tiles=blend_tiles)
    assert np.array_equal(np.array(first.image), np.array(second.image))
