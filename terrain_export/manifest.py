"""Per-map tile manifest (``tilemap.json``).

Describes, for every rendered tile, which atlas texture and cell produced it,
plus the texture table and the blend descriptor table. Field names are
camelCase because the file is consumed by an engine-side importer.
"""

import json
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional

from terrain_export.atlas import TextureAtlas, normal_map_name
from terrain_export.errors import IOWriteError
from terrain_export.model import TerrainMap

MANIFEST_FILE = "tilemap.json"


@dataclass
class Dimensions:
    width: int
    height: int
    cellSize: int


@dataclass
class CellOffset:
    x: int
    y: int


@dataclass
class TileEntry:
    """One rendered tile; ``blend`` / ``threeWayBlend`` carry raw layer values."""

    gridX: int
    gridY: int
    tileValue: int
    textureIndex: int
    textureOffset: CellOffset
    blend: Optional[int] = None
    threeWayBlend: Optional[int] = None


@dataclass
class TextureEntry:
    index: int
    name: str
    fileName: Optional[str]
    width: int
    normalMapFileName: str
    cellStart: Optional[int] = None
    cellCount: int = 0
    declaredCellSize: int = 0


@dataclass
class BlendDescriptionEntry:
    direction: str
    flipped: bool
    secondaryTileValue: int
    effectiveDirection: str


@dataclass
class Manifest:
    """The root object written to ``tilemap.json``."""

    mapName: str
    dimensions: Dimensions
    tiles: List[TileEntry] = field(default_factory=list)
    textures: List[TextureEntry] = field(default_factory=list)
    textureCellCount: int = 0
    blendDescriptions: List[BlendDescriptionEntry] = field(default_factory=list)
    description: Optional[str] = None


def build_manifest(terrain_map: TerrainMap, atlas: TextureAtlas) -> Manifest:
    """
    Build the manifest for a map. Tiles whose value falls outside every atlas
    range are left out; texture indexes refer to the map's declaration list.
    """
    tiles: List[TileEntry] = []
    for coordinate, tile_value in terrain_map.tiles.items():
        located = atlas.locate(tile_value, coordinate, terrain_map.height)
        if located is None:
            continue
        entry, (offset_x, offset_y) = located
        tiles.append(
            TileEntry(
                gridX=coordinate.x,
                gridY=coordinate.y,
                tileValue=tile_value,
                textureIndex=entry.index,
                textureOffset=CellOffset(offset_x, offset_y),
                blend=terrain_map.blends.get(coordinate) or None,
                threeWayBlend=terrain_map.three_way_blends.get(coordinate) or None,
            )
        )

    loaded = {entry.index: entry for entry in atlas}
    textures: List[TextureEntry] = []
    for index, declaration in enumerate(terrain_map.textures):
        file_name = atlas.file_names[index] if index < len(atlas.file_names) else None
        atlas_entry = loaded.get(index)
        textures.append(
            TextureEntry(
                index=index,
                name=declaration.name,
                fileName=file_name.lower() if file_name is not None else None,
                width=atlas_entry.width if atlas_entry is not None else 0,
                normalMapFileName=normal_map_name(file_name).lower(),
                cellStart=atlas_entry.cell_start if atlas_entry is not None else None,
                cellCount=atlas_entry.cell_count if atlas_entry is not None else 0,
                declaredCellSize=declaration.declared_cell_size,
            )
        )

    descriptors = [
        BlendDescriptionEntry(
            direction=descriptor.canonical_direction.name,
            flipped=descriptor.flipped,
            secondaryTileValue=descriptor.secondary_tile_value,
            effectiveDirection=descriptor.direction.name,
        )
        for descriptor in terrain_map.descriptors
    ]

    return Manifest(
        mapName=terrain_map.name,
        description=terrain_map.description,
        dimensions=Dimensions(terrain_map.width, terrain_map.height, atlas.cell_size),
        tiles=tiles,
        textures=textures,
        textureCellCount=atlas.total_cell_count,
        blendDescriptions=descriptors,
    )


def _drop_none(items: List[Any]) -> Dict[str, Any]:
    return {key: value for key, value in items if value is not None}


def manifest_to_dict(manifest: Manifest) -> Dict[str, Any]:
    return asdict(manifest, dict_factory=_drop_none)


def save_manifest(manifest: Manifest, output_path: str) -> None:
    """
    Serializes a Manifest to a JSON file.

    Raises:
        IOWriteError: If the file cannot be written.
    """
    try:
        with open(output_path, "w", encoding="utf-8") as f:
            json.dump(manifest_to_dict(manifest), f, indent=2)
    except OSError as e:
        raise IOWriteError(f"Cannot write manifest {output_path}: {e}") from e
