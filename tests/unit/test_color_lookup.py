import pytest
from PIL import Image

from terrain_export.color_lookup import ColorTextureResolver, color_distance
from terrain_export.types import Coordinate
from tests.test_utils import BLUE, CELL, GREEN, RED, solid_atlas


@pytest.fixture
def raster() -> Image.Image:
    # 2x2 map: bottom row red | green, top row blue | transparent black
    image = Image.new("RGBA", (2 * CELL, 2 * CELL), (0, 0, 0, 0))
    image.paste((*RED, 255), (0, CELL, CELL, 2 * CELL))
    image.paste((*GREEN, 255), (CELL, CELL, 2 * CELL, 2 * CELL))
    image.paste((*BLUE, 255), (0, 0, CELL, CELL))
    return image


@pytest.fixture
def resolver(raster: Image.Image) -> ColorTextureResolver:
    atlas = solid_atlas([("Red", RED), ("Green", GREEN), ("Blue", BLUE)])
    return ColorTextureResolver(atlas, raster, map_height=2, cell_size=CELL)


def test_color_distance_ignores_alpha_and_squares() -> None:
    assert color_distance((0, 0, 0), (3, 4, 0)) == 25
    assert color_distance((10, 20, 30), (10, 20, 30)) == 0


def test_representative_colors_are_atlas_centers(resolver: ColorTextureResolver) -> None:
    assert resolver.representative_colors() == [
        ("Red", RED),
        ("Green", GREEN),
        ("Blue", BLUE),
    ]


@pytest.mark.parametrize(
    "x, y, expected",
    [(0, 0, "Red"), (1, 0, "Green"), (0, 1, "Blue"), (2, 0, None), (0, 2, None)],
)
def test_texture_at_samples_tile_center(
    resolver: ColorTextureResolver, x: int, y: int, expected: str
) -> None:
    assert resolver.texture_at(Coordinate(x, y)) == expected


def test_match_color_picks_nearest_and_memoizes(resolver: ColorTextureResolver) -> None:
    assert resolver.match_color((180, 60, 40)) == "Red"
    assert resolver.match_color((180, 60, 40)) == "Red"
    assert (180, 60, 40) in resolver._memo


def test_match_color_with_empty_atlas(raster: Image.Image) -> None:
    resolver = ColorTextureResolver(solid_atlas([]), raster, 2, CELL)
    assert resolver.match_color(RED) is None
