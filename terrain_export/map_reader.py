"""Map document reader.

Decoding the game's binary map container is left to an upstream parser; the
exporter reads the parser's JSON interchange document::

    {
      "name": "Rohan",
      "description": "optional",
      "width": 3, "height": 2,
      "tiles": [[0, 4, 8], [12, 16, 20]],       # tiles[y][x], row 0 at the bottom
      "blends": [[0, 1, 0], [0, 0, 0]],         # 1-based descriptor indexes
      "threeWayBlends": [[0, 0, 0], [0, 0, 0]], # optional
      "blendDescriptions": [
        {"direction": "RIGHT", "flipped": false, "secondaryTileValue": 64}
      ],
      "textures": [{"name": "GrassLight", "cellSize": 4}]
    }

Descriptors may also carry the parser's raw names (``BLEND_TOWARDS_TOP``) and
a ``flags`` string instead of ``flipped``.
"""

import glob
import json
import logging
import os
from typing import Any, Dict, List, Mapping, Optional, Protocol, Sequence

from pyrsistent import pvector

from terrain_export.errors import MapReadError
from terrain_export.model import (
    BlendDescriptor,
    BlendLayer,
    TerrainMap,
    TextureDeclaration,
    TileGrid,
)
from terrain_export.types import CanonicalDirection

log = logging.getLogger(__name__)

MAP_FILE_PATTERN = "*.json"
MAX_TILE_VALUE = 0xFFFF

RAW_DIRECTION_PREFIX = "BLEND_TOWARDS_"
FLIPPED_FLAGS = frozenset({"FLIPPED", "FLIPPED_ALSO_HAS_BOTTOM_LEFT_OR_TOP_RIGHT_BLEND"})


class MapReader(Protocol):
    def read(self, path: str) -> TerrainMap: ...


def _rows(
    data: Mapping[str, Any], key: str, width: int, height: int, limit: Optional[int]
) -> List[List[int]]:
    rows = data.get(key)
    if not isinstance(rows, list) or len(rows) != height:
        raise MapReadError(f"'{key}' must be a list of {height} rows")
    parsed: List[List[int]] = []
    for y, row in enumerate(rows):
        if not isinstance(row, list) or len(row) != width:
            raise MapReadError(f"'{key}' row {y} must hold {width} values")
        values: List[int] = []
        for value in row:
            if isinstance(value, bool) or not isinstance(value, int) or value < 0:
                raise MapReadError(f"'{key}' row {y} holds invalid value {value!r}")
            if limit is not None and value > limit:
                raise MapReadError(f"'{key}' row {y} value {value} exceeds {limit}")
            values.append(value)
        parsed.append(values)
    return parsed


def parse_direction(raw: Any) -> CanonicalDirection:
    if not isinstance(raw, str):
        raise MapReadError(f"Invalid blend direction {raw!r}")
    name = raw.strip().upper()
    if name.startswith(RAW_DIRECTION_PREFIX):
        name = name[len(RAW_DIRECTION_PREFIX):]
    try:
        return CanonicalDirection[name]
    except KeyError as e:
        raise MapReadError(f"Unknown blend direction {raw!r}") from e


def parse_descriptor(entry: Mapping[str, Any]) -> BlendDescriptor:
    if not isinstance(entry, Mapping):
        raise MapReadError(f"Invalid blend description {entry!r}")
    if "flipped" in entry:
        flipped = bool(entry["flipped"])
    else:
        flipped = str(entry.get("flags", "")).upper() in FLIPPED_FLAGS
    secondary = entry.get("secondaryTileValue")
    if isinstance(secondary, bool) or not isinstance(secondary, int) or secondary < 0:
        raise MapReadError(f"Invalid secondaryTileValue {secondary!r}")
    return BlendDescriptor(
        canonical_direction=parse_direction(entry.get("direction")),
        flipped=flipped,
        secondary_tile_value=secondary,
    )


def parse_texture(entry: Mapping[str, Any]) -> TextureDeclaration:
    if not isinstance(entry, Mapping) or not isinstance(entry.get("name"), str):
        raise MapReadError(f"Invalid texture declaration {entry!r}")
    cell_size = entry.get("cellSize", 0)
    if isinstance(cell_size, bool) or not isinstance(cell_size, int):
        raise MapReadError(f"Invalid cellSize for texture {entry['name']}")
    return TextureDeclaration(name=entry["name"], declared_cell_size=cell_size)


def terrain_map_from_dict(data: Mapping[str, Any], fallback_name: str) -> TerrainMap:
    """Validate a decoded document and build the immutable map model."""
    if not isinstance(data, Mapping):
        raise MapReadError("Map document must be a JSON object")
    width, height = data.get("width"), data.get("height")
    if not isinstance(width, int) or not isinstance(height, int) or width <= 0 or height <= 0:
        raise MapReadError(f"Invalid map dimensions {width!r}x{height!r}")

    tiles = TileGrid.from_rows(_rows(data, "tiles", width, height, MAX_TILE_VALUE))
    blends = BlendLayer.from_rows(_rows(data, "blends", width, height, None))
    if data.get("threeWayBlends") is not None:
        three_way = BlendLayer.from_rows(_rows(data, "threeWayBlends", width, height, None))
    else:
        three_way = BlendLayer(width=width, height=height)

    descriptors: Sequence[Any] = data.get("blendDescriptions") or []
    textures: Sequence[Any] = data.get("textures") or []
    if not isinstance(descriptors, list) or not isinstance(textures, list):
        raise MapReadError("'blendDescriptions' and 'textures' must be lists")

    name = data.get("name") or fallback_name
    description = data.get("description")
    return TerrainMap(
        name=str(name),
        description=str(description) if description is not None else None,
        tiles=tiles,
        blends=blends,
        three_way_blends=three_way,
        descriptors=pvector(parse_descriptor(d) for d in descriptors),
        textures=pvector(parse_texture(t) for t in textures),
    )


def map_name_from_path(path: str) -> str:
    base = os.path.basename(path)
    for suffix in (".map.json", ".json"):
        if base.lower().endswith(suffix):
            return base[: -len(suffix)]
    return os.path.splitext(base)[0]


class JsonMapReader:
    """Reads one interchange document; every failure surfaces as MapReadError."""

    def read(self, path: str) -> TerrainMap:
        try:
            with open(path, "r", encoding="utf-8") as f:
                data: Dict[str, Any] = json.load(f)
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
            raise MapReadError(f"Cannot read map {path}: {e}") from e
        terrain_map = terrain_map_from_dict(data, map_name_from_path(path))
        log.debug(
            "Read map %s: %dx%d, %d textures, %d blend descriptions",
            terrain_map.name,
            terrain_map.width,
            terrain_map.height,
            len(terrain_map.textures),
            len(terrain_map.descriptors),
        )
        return terrain_map


def find_map_files(maps_dir: str, pattern: str = MAP_FILE_PATTERN) -> List[str]:
    """Map documents directly inside ``maps_dir``, sorted by name."""
    return sorted(glob.glob(os.path.join(maps_dir, pattern)))
