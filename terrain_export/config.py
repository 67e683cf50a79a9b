"""Exporter configuration.

Settings live in an INI file with a single ``[exporter]`` section. Files
written by older releases have no section header at all; their keys are read
as if they belonged to ``[exporter]``.
"""

import configparser
import logging
import os
from dataclasses import dataclass

from terrain_export.atlas import DEFAULT_CELL_SIZE
from terrain_export.errors import ConfigurationError
from terrain_export.masks import DEFAULT_MASK_DIR

log = logging.getLogger(__name__)

SECTION = "exporter"
DEFAULT_CONFIG_PATH = "config.ini"
DEFAULT_BLOCK_SIZE = 16

DEFAULT_CONFIG_TEXT = f"""\
[{SECTION}]
# Atlas cell edge in pixels. Usually you don't need to change this value.
cell_size = {DEFAULT_CELL_SIZE}

# Cell edge in the preview image; lower it to scale the preview down.
preview_cell_size = {DEFAULT_CELL_SIZE}

# Generate preview images? 0,1
generate_previews = 1

# Blend tiles in the preview? 0,1
blend_tiles = 1

# Generate the tilemap manifest? 0,1
generate_tilemap = 1

# Split large previews into blocks of block_size x block_size tiles? 0,1
split_image_by_blocks = 0
block_size = {DEFAULT_BLOCK_SIZE}

# Directory with horizontal.png, vertical.png, diagonal.png and
# diagonal_with_neighbors.png
path_to_blend_masks = {DEFAULT_MASK_DIR}

# Parsed map documents (*.json) to export. No subfolders.
path_to_maps_folder = maps

# Terrain texture images. No subfolders.
path_to_textures_folder = textures

# Output directory; one subdirectory per map is created.
path_to_output = output

# Maps terrain names to texture files.
path_to_terrain_ini = terrain.ini
"""


@dataclass(frozen=True)
class ExporterConfig:
    """Resolved exporter settings.

    Attributes:
        maps_dir: Folder scanned for map documents.
        textures_dir: Folder holding the atlas images.
        output_dir: Root of the per-map output folders.
        terrain_ini: Terrain name -> texture file mapping.
        cell_size: Atlas cell edge in pixels.
        preview_cell_size: Preview cell edge in pixels.
        block_size: Block edge in tiles when splitting previews.
        generate_previews: Write ``tilemap.png``.
        blend_tiles: Run the blend passes.
        generate_tilemap: Write ``tilemap.json``.
        split_image_by_blocks: Also write the preview as blocks.
        mask_dir: Folder holding the four source blend masks.
    """

    maps_dir: str
    textures_dir: str
    output_dir: str
    terrain_ini: str
    cell_size: int = DEFAULT_CELL_SIZE
    preview_cell_size: int = DEFAULT_CELL_SIZE
    block_size: int = DEFAULT_BLOCK_SIZE
    generate_previews: bool = True
    blend_tiles: bool = True
    generate_tilemap: bool = True
    split_image_by_blocks: bool = False
    mask_dir: str = DEFAULT_MASK_DIR


def _read_parser(text: str, source: str) -> configparser.ConfigParser:
    parser = configparser.ConfigParser(interpolation=None)
    try:
        try:
            parser.read_string(text, source=source)
        except configparser.MissingSectionHeaderError:
            parser = configparser.ConfigParser(interpolation=None)
            parser.read_string(f"[{SECTION}]\n{text}", source=source)
    except configparser.Error as e:
        raise ConfigurationError(f"Invalid config file {source}: {e}") from e
    if not parser.has_section(SECTION):
        raise ConfigurationError(f"Config file {source} has no [{SECTION}] section")
    return parser


def _get_int(section: configparser.SectionProxy, key: str, default: int) -> int:
    try:
        value = section.getint(key, fallback=default)
    except ValueError as e:
        raise ConfigurationError(f"Config value {key} must be an integer") from e
    if value is None or value <= 0:
        raise ConfigurationError(f"Config value {key} must be positive")
    return value


def _get_bool(section: configparser.SectionProxy, key: str, default: bool) -> bool:
    try:
        value = section.getboolean(key, fallback=default)
    except ValueError as e:
        raise ConfigurationError(f"Config value {key} must be 0 or 1") from e
    return bool(value)


def _get_path(section: configparser.SectionProxy, key: str, base_dir: str) -> str:
    value = section.get(key, fallback="").strip()
    if not value:
        raise ConfigurationError(f"Missing required config: {key}")
    # Relative paths are resolved against the config file's directory.
    return os.path.normpath(os.path.join(base_dir, value))


def parse_config(text: str, source: str = "<string>", base_dir: str = ".") -> ExporterConfig:
    section = _read_parser(text, source)[SECTION]
    cell_size = _get_int(section, "cell_size", DEFAULT_CELL_SIZE)
    mask_dir = section.get("path_to_blend_masks", fallback=DEFAULT_MASK_DIR).strip()
    return ExporterConfig(
        maps_dir=_get_path(section, "path_to_maps_folder", base_dir),
        textures_dir=_get_path(section, "path_to_textures_folder", base_dir),
        output_dir=_get_path(section, "path_to_output", base_dir),
        terrain_ini=_get_path(section, "path_to_terrain_ini", base_dir),
        cell_size=cell_size,
        preview_cell_size=_get_int(section, "preview_cell_size", cell_size),
        block_size=_get_int(section, "block_size", DEFAULT_BLOCK_SIZE),
        generate_previews=_get_bool(section, "generate_previews", True),
        blend_tiles=_get_bool(section, "blend_tiles", True),
        generate_tilemap=_get_bool(section, "generate_tilemap", True),
        split_image_by_blocks=_get_bool(section, "split_image_by_blocks", False),
        mask_dir=os.path.normpath(os.path.join(base_dir, mask_dir or DEFAULT_MASK_DIR)),
    )


def load_config(path: str = DEFAULT_CONFIG_PATH) -> ExporterConfig:
    if not os.path.isfile(path):
        raise ConfigurationError(f"Config file not found: {path}")
    try:
        with open(path, "r", encoding="utf-8") as f:
            text = f.read()
    except OSError as e:
        raise ConfigurationError(f"Cannot read config file {path}: {e}") from e
    config = parse_config(text, source=path, base_dir=os.path.dirname(os.path.abspath(path)))
    log.debug("Loaded config from %s: %s", path, config)
    return config


def write_default_config(path: str = DEFAULT_CONFIG_PATH) -> None:
    try:
        with open(path, "w", encoding="utf-8") as f:
            f.write(DEFAULT_CONFIG_TEXT)
    except OSError as e:
        raise ConfigurationError(f"Cannot write default config {path}: {e}") from e
    log.info("Default config written to %s", path)


def describe(config: ExporterConfig) -> str:
    return (
        f"Maps: {config.maps_dir} | Textures: {config.textures_dir} | "
        f"Output: {config.output_dir} | Terrain INI: {config.terrain_ini}"
    )
