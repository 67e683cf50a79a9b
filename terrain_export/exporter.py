"""Export driver.

``process_map`` exports one map document into ``<output>/<map name>/``::

    tilemap.png     composited preview
    tilemap.json    per-tile manifest
    blocks/, blocks.json   optional preview blocks

A map that fails for any reason is reported and logged; it never stops the
remaining maps. ``run`` exports every map found in the configured folder,
optionally on a thread pool sharing the texture image cache and the mask
library.
"""

import logging
import os
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import List, Mapping, Optional

from terrain_export.atlas import TextureAtlas, TextureImageCache
from terrain_export.blocks import split_into_blocks
from terrain_export.config import ExporterConfig
from terrain_export.errors import ConfigurationError, IOWriteError, TerrainExportError
from terrain_export.log_utils import map_context
from terrain_export.manifest import MANIFEST_FILE, build_manifest, save_manifest
from terrain_export.map_reader import (
    JsonMapReader,
    MapReader,
    find_map_files,
    map_name_from_path,
)
from terrain_export.masks import MaskLibrary
from terrain_export.renderer.compositor import Compositor
from terrain_export.terrain_ini import parse_terrain_ini

log = logging.getLogger(__name__)

PREVIEW_FILE = "tilemap.png"


@dataclass
class MapExportReport:
    """Outcome of one map export.

    Attributes:
        map_name: Name used for the output folder.
        success: False if the map was abandoned.
        output_dir: Folder the artifacts were written to.
        tiles: Tiles painted by the base pass.
        skipped_tiles: Tiles left as background.
        warnings: Recoverable problems (missing textures or masks).
        error: Cause of the failure when ``success`` is False.
    """

    map_name: str
    success: bool
    output_dir: str
    tiles: int = 0
    skipped_tiles: int = 0
    warnings: List[str] = field(default_factory=list)
    error: Optional[str] = None


def _save_preview(image, path: str) -> None:
    try:
        image.save(path, format="PNG")
    except OSError as e:
        raise IOWriteError(f"Cannot write preview {path}: {e}") from e


def export_map(
    path: str,
    config: ExporterConfig,
    terrain_mapping: Mapping[str, str],
    image_cache: TextureImageCache,
    masks: MaskLibrary,
    reader: MapReader,
    report: MapExportReport,
) -> None:
    """Export one map, filling ``report``. Errors propagate to the caller."""
    terrain_map = reader.read(path)
    atlas = TextureAtlas.build(
        terrain_map.textures,
        terrain_mapping,
        config.textures_dir,
        cell_size=config.cell_size,
        image_cache=image_cache,
    )
    report.warnings.extend(
        f"Missing texture {failure.name}: {failure.reason}" for failure in atlas.failures
    )

    try:
        os.makedirs(report.output_dir, exist_ok=True)
    except OSError as e:
        raise IOWriteError(f"Cannot create output folder {report.output_dir}: {e}") from e

    if config.generate_previews or config.split_image_by_blocks:
        compositor = Compositor(
            atlas,
            masks,
            preview_cell_size=config.preview_cell_size,
            blend_tiles=config.blend_tiles,
        )
        result = compositor.export(terrain_map)
        report.tiles = result.painted_tiles
        report.skipped_tiles = result.skipped_tiles
        report.warnings.extend(result.warnings)
        if config.generate_previews:
            _save_preview(result.image, os.path.join(report.output_dir, PREVIEW_FILE))
        if config.split_image_by_blocks:
            split_into_blocks(
                result.image,
                config.block_size,
                config.preview_cell_size,
                report.output_dir,
            )
        log.debug(
            "Blends: %d primary, %d three-way, %d skipped",
            result.blended_tiles,
            result.three_way_blended_tiles,
            result.skipped_blends,
        )

    if config.generate_tilemap:
        manifest = build_manifest(terrain_map, atlas)
        save_manifest(manifest, os.path.join(report.output_dir, MANIFEST_FILE))
        if not (config.generate_previews or config.split_image_by_blocks):
            report.tiles = len(manifest.tiles)
            report.skipped_tiles = len(terrain_map.tiles) - len(manifest.tiles)


def process_map(
    path: str,
    config: ExporterConfig,
    terrain_mapping: Mapping[str, str],
    image_cache: TextureImageCache,
    masks: MaskLibrary,
    reader: Optional[MapReader] = None,
) -> MapExportReport:
    """Export one map; any failure is logged and returned in the report."""
    map_name = map_name_from_path(path)
    report = MapExportReport(
        map_name=map_name,
        success=False,
        output_dir=os.path.join(config.output_dir, map_name),
    )
    with map_context(map_name):
        try:
            export_map(
                path,
                config,
                terrain_mapping,
                image_cache,
                masks,
                reader if reader is not None else JsonMapReader(),
                report,
            )
        except TerrainExportError as e:
            report.error = str(e)
            log.error("Export of %s failed: %s", map_name, e)
            return report
        except Exception as e:
            report.error = f"{type(e).__name__}: {e}"
            log.exception("Export of %s failed unexpectedly", map_name)
            return report

        report.success = True
        log.info(
            "Exported %s: %d tiles, %d skipped, %d warnings -> %s",
            map_name,
            report.tiles,
            report.skipped_tiles,
            len(report.warnings),
            report.output_dir,
        )
    return report


def run(
    config: ExporterConfig,
    workers: int = 1,
    reader: Optional[MapReader] = None,
) -> List[MapExportReport]:
    """Export every map document in ``config.maps_dir``; reports follow file order."""
    if not os.path.isdir(config.maps_dir):
        raise ConfigurationError(f"Maps folder not found: {config.maps_dir}")
    terrain_mapping = parse_terrain_ini(config.terrain_ini)
    try:
        os.makedirs(config.output_dir, exist_ok=True)
    except OSError as e:
        raise IOWriteError(f"Cannot create output folder {config.output_dir}: {e}") from e

    paths = find_map_files(config.maps_dir)
    if not paths:
        log.warning("No map documents found in %s", config.maps_dir)
        return []
    log.info("Exporting %d maps with %d worker(s)", len(paths), max(workers, 1))

    image_cache = TextureImageCache()
    masks = MaskLibrary(config.mask_dir)

    def export(path: str) -> MapExportReport:
        return process_map(path, config, terrain_mapping, image_cache, masks, reader)

    if workers <= 1:
        return [export(path) for path in paths]
    with ThreadPoolExecutor(max_workers=workers) as pool:
        return list(pool.map(export, paths))
