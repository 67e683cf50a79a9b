import os
from typing import Optional, Tuple

import pytest

from terrain_export.atlas import (
    NO_FILE_NAME,
    TextureAtlas,
    TextureImageCache,
    normal_map_name,
)
from terrain_export.errors import TextureResolutionError
from terrain_export.model import TextureDeclaration
from terrain_export.types import Coordinate
from tests.test_utils import BLUE, CELL, GREEN, RED, solid_image, tile_value


@pytest.fixture
def mixed_atlas() -> TextureAtlas:
    # 1 cell, 2x2 = 4 cells, 1x2 = 2 cells
    return TextureAtlas.from_images(
        [
            ("A", solid_image(RED)),
            ("B", solid_image(GREEN, cells_x=2, cells_y=2)),
            ("C", solid_image(BLUE, cells_x=1, cells_y=2)),
        ],
        cell_size=CELL,
    )


def test_cell_ranges_accumulate_in_declared_order(mixed_atlas: TextureAtlas) -> None:
    assert [entry.cell_start for entry in mixed_atlas] == [0, 1, 5]
    assert [entry.cell_count for entry in mixed_atlas] == [1, 4, 2]
    assert mixed_atlas.total_cell_count == 7


@pytest.mark.parametrize(
    "value, expected",
    [
        (0, ("A", 0)),
        (3, ("A", 0)),
        (tile_value(1), ("B", 0)),
        (tile_value(4) + 3, ("B", 3)),
        (tile_value(5), ("C", 0)),
        (tile_value(6), ("C", 1)),
        (tile_value(7), None),
        (tile_value(1000), None),
        (-1, None),
    ],
)
def test_resolve(
    mixed_atlas: TextureAtlas, value: int, expected: Optional[Tuple[str, int]]
) -> None:
    resolved = mixed_atlas.resolve(value)
    if expected is None:
        assert resolved is None
    else:
        assert resolved is not None
        entry, local = resolved
        assert (entry.name, local) == expected


def test_texture_name(mixed_atlas: TextureAtlas) -> None:
    assert mixed_atlas.texture_name(tile_value(2)) == "B"
    assert mixed_atlas.texture_name(None) is None
    assert mixed_atlas.texture_name(tile_value(99)) is None


@pytest.mark.parametrize(
    "x, y, expected",
    [
        (0, 2, (0, 0)),
        (1, 2, (4, 0)),
        (2, 2, (0, 0)),
        (0, 1, (0, 4)),
        (3, 0, (4, 0)),
    ],
)
def test_cell_offset_wraps_and_flips(
    mixed_atlas: TextureAtlas, x: int, y: int, expected: Tuple[int, int]
) -> None:
    entry = mixed_atlas.entry_for_name("B")
    assert entry is not None
    assert mixed_atlas.cell_offset(entry, Coordinate(x, y), map_height=3) == expected


def test_cell_image_is_cropped_from_atlas(mixed_atlas: TextureAtlas) -> None:
    located = mixed_atlas.locate(tile_value(1), Coordinate(1, 0), map_height=1)
    assert located is not None
    entry, offset = located
    cell = mixed_atlas.cell_image(entry, offset)
    assert cell.size == (CELL, CELL)
    assert cell.getpixel((0, 0)) == (*GREEN, 255)


@pytest.mark.parametrize(
    "file_name, expected",
    [
        ("grass.tga", "grass_nrm.tga"),
        ("rock_cliff.dds", "rock_cliff_nrm.dds"),
        ("noext", "noext_nrm"),
        (None, NO_FILE_NAME),
    ],
)
def test_normal_map_name(file_name: Optional[str], expected: str) -> None:
    assert normal_map_name(file_name) == expected


def _write_textures(tmp_path, names) -> None:
    for name, color in names:
        solid_image(color).save(os.path.join(tmp_path, f"{name.lower()}.png"))


def test_build_missing_texture_shifts_later_ranges(tmp_path) -> None:
    _write_textures(tmp_path, [("A", RED), ("C", BLUE)])
    mapping = {"A": "a.png", "B": "b.png", "C": "c.png"}
    declarations = [TextureDeclaration("A"), TextureDeclaration("B"), TextureDeclaration("C")]

    atlas = TextureAtlas.build(declarations, mapping, str(tmp_path), cell_size=CELL)

    assert [entry.name for entry in atlas] == ["A", "C"]
    assert [failure.name for failure in atlas.failures] == ["B"]
    # C now owns cell 1, which the map authored for B.
    assert atlas.texture_name(tile_value(1)) == "C"
    assert atlas.entry_for_name("C").index == 2
    assert atlas.file_names == ("a.png", "b.png", "c.png")


def test_build_records_unmapped_texture(tmp_path) -> None:
    _write_textures(tmp_path, [("A", RED)])
    atlas = TextureAtlas.build(
        [TextureDeclaration("A"), TextureDeclaration("Unknown")],
        {"A": "a.png"},
        str(tmp_path),
        cell_size=CELL,
    )
    assert len(atlas) == 1
    assert atlas.failures[0].index == 1
    assert atlas.file_names == ("a.png", None)


def test_image_cache_loads_each_path_once(tmp_path) -> None:
    _write_textures(tmp_path, [("A", RED)])
    path = os.path.join(tmp_path, "a.png")
    cache = TextureImageCache()

    first = cache.load(path)
    second = cache.load(path)

    assert first is second
    assert path in cache
    assert len(cache) == 1
    assert first.mode == "RGBA"


def test_image_cache_raises_for_missing_file(tmp_path) -> None:
    with pytest.raises(TextureResolutionError):
        TextureImageCache().load(os.path.join(tmp_path, "missing.png"))
