"""Blend mask library.

Four source masks are stored on disk; the twelve directional variants are
derived from them by pixel-exact reflection:

* ``horizontal.png`` -> ``left`` (as-is) and ``right`` (mirrored columns)
* ``vertical.png`` -> ``top`` (as-is) and ``bottom`` (mirrored rows)
* ``diagonal.png`` -> ``top_right`` and its three reflections
* ``diagonal_with_neighbors.png`` -> ``top_right_corner`` and its three reflections

Only the alpha channel of a mask is used when compositing.
"""

import logging
import os
import threading
from typing import Callable, Dict, Optional, Tuple

from PIL import Image

from terrain_export.errors import TextureResolutionError
from terrain_export.types import MaskKey
from terrain_export.utils.image import (
    flip_both,
    flip_horizontal,
    flip_vertical,
    to_rgba,
)

log = logging.getLogger(__name__)

DEFAULT_MASK_DIR = "blend-masks"

HORIZONTAL_MASK = "horizontal.png"
VERTICAL_MASK = "vertical.png"
DIAGONAL_MASK = "diagonal.png"
DIAGONAL_WITH_NEIGHBORS_MASK = "diagonal_with_neighbors.png"

SOURCE_MASK_FILES = (
    HORIZONTAL_MASK,
    VERTICAL_MASK,
    DIAGONAL_MASK,
    DIAGONAL_WITH_NEIGHBORS_MASK,
)


def _identity(image: Image.Image) -> Image.Image:
    return image


# mask key -> (source file, transform)
MASK_VARIANTS: Dict[MaskKey, Tuple[str, Callable[[Image.Image], Image.Image]]] = {
    # Edge masks
    "left": (HORIZONTAL_MASK, _identity),
    "right": (HORIZONTAL_MASK, flip_horizontal),
    "top": (VERTICAL_MASK, _identity),
    "bottom": (VERTICAL_MASK, flip_vertical),
    # Diagonal masks
    "top_right": (DIAGONAL_MASK, _identity),
    "top_left": (DIAGONAL_MASK, flip_horizontal),
    "bottom_right": (DIAGONAL_MASK, flip_vertical),
    "bottom_left": (DIAGONAL_MASK, flip_both),
    # Corner masks
    "top_right_corner": (DIAGONAL_WITH_NEIGHBORS_MASK, _identity),
    "top_left_corner": (DIAGONAL_WITH_NEIGHBORS_MASK, flip_horizontal),
    "bottom_right_corner": (DIAGONAL_WITH_NEIGHBORS_MASK, flip_vertical),
    "bottom_left_corner": (DIAGONAL_WITH_NEIGHBORS_MASK, flip_both),
}


def derive_masks(sources: Dict[str, Image.Image]) -> Dict[MaskKey, Image.Image]:
    """Produce all twelve keyed variants from the four source masks."""
    missing = [name for name in SOURCE_MASK_FILES if name not in sources]
    if missing:
        raise TextureResolutionError(f"Missing source masks: {', '.join(missing)}")
    return {
        key: transform(to_rgba(sources[source]))
        for key, (source, transform) in MASK_VARIANTS.items()
    }


def load_source_masks(mask_dir: str) -> Dict[str, Image.Image]:
    sources: Dict[str, Image.Image] = {}
    for file_name in SOURCE_MASK_FILES:
        path = os.path.join(mask_dir, file_name)
        try:
            with Image.open(path) as opened:
                sources[file_name] = opened.convert("RGBA")
        except (OSError, ValueError) as e:
            raise TextureResolutionError(f"Cannot load blend mask {path}: {e}") from e
    return sources


class MaskLibrary:
    """Lazily computed, shareable table of the twelve blend masks.

    The table is built on first use and never mutated afterwards; concurrent
    exports may share one library.
    """

    mask_dir: str

    def __init__(
        self,
        mask_dir: str = DEFAULT_MASK_DIR,
        sources: Optional[Dict[str, Image.Image]] = None,
    ):
        self.mask_dir = mask_dir
        self._sources = sources
        self._masks: Optional[Dict[MaskKey, Image.Image]] = None
        self._lock = threading.Lock()

    @classmethod
    def from_sources(cls, sources: Dict[str, Image.Image]) -> "MaskLibrary":
        return cls(mask_dir="<memory>", sources=sources)

    def load_masks(self) -> Dict[MaskKey, Image.Image]:
        with self._lock:
            if self._masks is None:
                sources = (
                    self._sources
                    if self._sources is not None
                    else load_source_masks(self.mask_dir)
                )
                self._masks = derive_masks(sources)
                log.debug("Derived %d blend masks from %s", len(self._masks), self.mask_dir)
            return self._masks

    def get(self, key: Optional[MaskKey]) -> Optional[Image.Image]:
        if key is None:
            return None
        return self.load_masks().get(key)
