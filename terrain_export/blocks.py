"""
Preview block splitter.

Large previews are also written as square blocks of ``block_size`` tiles so
they can be streamed by viewers that cannot hold the full raster::

    <map output>/blocks/block_<gx>_<gy>.png
    <map output>/blocks.json

Block coordinates count from the top-left of the preview image. Blocks on
the right and bottom edges are cropped to the raster.
"""

import json
import logging
import os
from dataclasses import asdict, dataclass, field
from typing import List

from PIL import Image

from terrain_export.errors import IOWriteError

log = logging.getLogger(__name__)

BLOCKS_DIR = "blocks"
BLOCKS_INDEX_FILE = "blocks.json"


@dataclass
class BlockEntry:
    index: int
    gridX: int
    gridY: int
    path: str


@dataclass
class BlockIndex:
    workDirectory: str
    blockPixelSize: int
    blockTileSize: int
    blocks: List[BlockEntry] = field(default_factory=list)


def block_file_name(grid_x: int, grid_y: int) -> str:
    return f"block_{grid_x}_{grid_y}.png"


def split_into_blocks(
    image: Image.Image, block_tiles: int, cell_size: int, out_dir: str
) -> BlockIndex:
    """
    Write ``image`` as ``block_tiles`` x ``block_tiles`` tile blocks under
    ``out_dir`` and return the index that was saved next to them.

    Raises:
        ValueError: If ``block_tiles`` or ``cell_size`` is not positive.
        IOWriteError: If a block or the index cannot be written.
    """
    if block_tiles <= 0 or cell_size <= 0:
        raise ValueError("block_tiles and cell_size must be positive")
    block_pixels = block_tiles * cell_size
    blocks_dir = os.path.join(out_dir, BLOCKS_DIR)
    index = BlockIndex(
        workDirectory=BLOCKS_DIR,
        blockPixelSize=block_pixels,
        blockTileSize=block_tiles,
    )

    try:
        os.makedirs(blocks_dir, exist_ok=True)
        columns = -(-image.width // block_pixels)
        rows = -(-image.height // block_pixels)
        for grid_y in range(rows):
            for grid_x in range(columns):
                left, top = grid_x * block_pixels, grid_y * block_pixels
                box = (
                    left,
                    top,
                    min(left + block_pixels, image.width),
                    min(top + block_pixels, image.height),
                )
                name = block_file_name(grid_x, grid_y)
                image.crop(box).save(os.path.join(blocks_dir, name))
                index.blocks.append(
                    BlockEntry(
                        index=len(index.blocks),
                        gridX=grid_x,
                        gridY=grid_y,
                        path=f"{BLOCKS_DIR}/{name}",
                    )
                )
        with open(os.path.join(out_dir, BLOCKS_INDEX_FILE), "w", encoding="utf-8") as f:
            json.dump(asdict(index), f, indent=2)
    except OSError as e:
        raise IOWriteError(f"Cannot write preview blocks to {out_dir}: {e}") from e

    log.debug("Wrote %d preview blocks to %s", len(index.blocks), blocks_dir)
    return index
