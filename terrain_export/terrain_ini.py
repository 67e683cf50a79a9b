"""Terrain mapping loader.

Reads the game's ``terrain.ini``-style file that maps terrain names to texture
image files::

    Terrain GrassLight
      Texture = grass_light.tga
    End

    ; Terrain OldGrass
    ;   Texture = old_grass.tga
    End

Lines starting with ``;`` are comments. A ``; Terrain ...`` line opens a
commented-out block whose trailing ``End`` must not close an active block.
"""

import logging
import os
from typing import Dict, Iterable, Optional

log = logging.getLogger(__name__)

TERRAIN_PREFIX = "Terrain "
TEXTURE_PREFIX = "Texture = "
COMMENTED_TERRAIN_PREFIX = "; Terrain "
END_MARKER = "End"


def parse_terrain_lines(lines: Iterable[str]) -> Dict[str, str]:
    mapping: Dict[str, str] = {}
    current: Optional[str] = None
    in_comment_block = False

    for raw in lines:
        line = raw.strip()
        if not line:
            continue
        if line.startswith(COMMENTED_TERRAIN_PREFIX):
            in_comment_block = True
            continue
        if line.startswith(";"):
            continue
        if line.startswith(TERRAIN_PREFIX):
            current = line[len(TERRAIN_PREFIX):].strip()
            in_comment_block = False
        elif in_comment_block:
            if line.startswith(END_MARKER):
                in_comment_block = False
        elif line.startswith(TEXTURE_PREFIX) and current is not None:
            mapping[current] = line[len(TEXTURE_PREFIX):].strip()
        elif line == END_MARKER:
            current = None

    return mapping


def parse_terrain_ini(path: str) -> Dict[str, str]:
    """Return the terrain name -> texture file table; empty if ``path`` is missing."""
    if not os.path.isfile(path):
        log.warning("Terrain mapping not found at %s", path)
        return {}
    with open(path, "r", encoding="utf-8", errors="replace") as f:
        mapping = parse_terrain_lines(f)
    log.info("Loaded %d terrain texture mappings", len(mapping))
    return mapping
