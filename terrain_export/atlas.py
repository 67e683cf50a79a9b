"""Texture atlas resolver.

Every declared terrain texture is one atlas image cut into square cells. The
atlas assigns each *loadable* texture a contiguous range of cell numbers, in
declaration order, and a tile value addresses one of those cells.

Ranges are accumulated over loaded textures only. A texture whose image is
missing is dropped from the atlas, which renumbers every later range. Map
files are authored against the complete texture set, so such a map renders
later textures with shifted cells.
"""

import bisect
import logging
import os
import threading
from dataclasses import dataclass
from typing import Dict, Iterator, List, Mapping, Optional, Sequence, Tuple

from PIL import Image

from terrain_export.errors import TextureResolutionError
from terrain_export.model import TextureDeclaration
from terrain_export.types import Coordinate, TileValue
from terrain_export.utils.grid import flip_row
from terrain_export.utils.image import crop_cell

log = logging.getLogger(__name__)

# Stored tile values address quarter cells; the atlas works in whole cells.
TILE_VALUE_GRANULARITY = 4

DEFAULT_CELL_SIZE = 32

NO_FILE_NAME = "NO FILENAME"


def normal_map_name(file_name: Optional[str]) -> str:
    """Insert ``_nrm`` before the extension: ``grass.tga`` -> ``grass_nrm.tga``."""
    if file_name is None:
        return NO_FILE_NAME
    root, ext = os.path.splitext(file_name)
    return f"{root}_nrm{ext}"


class TextureImageCache:
    """Process-wide cache of decoded atlas images keyed by file path.

    Each path is decoded at most once; concurrent callers wait on the same
    lock. Cached images are RGBA and must be treated as read-only.
    """

    def __init__(self) -> None:
        self._images: Dict[str, Image.Image] = {}
        self._lock = threading.Lock()

    def load(self, path: str) -> Image.Image:
        with self._lock:
            cached = self._images.get(path)
            if cached is not None:
                return cached
            try:
                with Image.open(path) as opened:
                    image = opened.convert("RGBA")
            except (OSError, ValueError) as e:
                raise TextureResolutionError(
                    f"Cannot load texture image {path}: {e}"
                ) from e
            self._images[path] = image
            return image

    def __contains__(self, path: object) -> bool:
        with self._lock:
            return path in self._images

    def __len__(self) -> int:
        with self._lock:
            return len(self._images)


@dataclass(frozen=True, eq=False)
class TextureAtlasEntry:
    """One loaded texture and the cell range it owns.

    Attributes:
        index: Position in the map's texture declaration list.
        name: Declared terrain texture name.
        file_name: Image file name from the terrain mapping.
        image: Decoded RGBA atlas image.
        cell_size: Cell edge in pixels.
        cell_start: First cell number owned by this entry.
        declared_cell_size: Cell size as declared by the map (informational).
    """

    index: int
    name: str
    file_name: str
    image: Image.Image
    cell_size: int
    cell_start: int
    declared_cell_size: int = 0

    @property
    def width(self) -> int:
        return self.image.width

    @property
    def cells_per_row(self) -> int:
        return self.image.width // self.cell_size

    @property
    def cells_per_column(self) -> int:
        return self.image.height // self.cell_size

    @property
    def cell_count(self) -> int:
        return self.cells_per_row * self.cells_per_column

    def contains(self, cell: int) -> bool:
        return self.cell_start <= cell < self.cell_start + self.cell_count


@dataclass(frozen=True)
class TextureFailure:
    """A declared texture that could not be added to the atlas."""

    index: int
    name: str
    reason: str


class TextureAtlas:
    """Maps tile values to atlas entries and cell pixel offsets."""

    cell_size: int
    entries: Tuple[TextureAtlasEntry, ...]
    failures: Tuple[TextureFailure, ...]
    file_names: Tuple[Optional[str], ...]

    def __init__(
        self,
        entries: Sequence[TextureAtlasEntry],
        cell_size: int = DEFAULT_CELL_SIZE,
        failures: Sequence[TextureFailure] = (),
        file_names: Optional[Sequence[Optional[str]]] = None,
    ):
        self.cell_size = cell_size
        self.entries = tuple(entries)
        self.failures = tuple(failures)
        self.file_names = (
            tuple(file_names)
            if file_names is not None
            else tuple(entry.file_name for entry in self.entries)
        )
        self._starts: List[int] = [entry.cell_start for entry in self.entries]
        self._by_name: Dict[str, TextureAtlasEntry] = {}
        for entry in self.entries:
            self._by_name.setdefault(entry.name, entry)

    @classmethod
    def build(
        cls,
        declarations: Sequence[TextureDeclaration],
        terrain_mapping: Mapping[str, str],
        textures_dir: str,
        cell_size: int = DEFAULT_CELL_SIZE,
        image_cache: Optional[TextureImageCache] = None,
    ) -> "TextureAtlas":
        """Load every declared texture and lay out the cell ranges.

        Textures with no terrain mapping or an unreadable image are recorded
        in ``failures`` and excluded; later ranges shift down accordingly.
        """
        cache = image_cache if image_cache is not None else TextureImageCache()
        entries: List[TextureAtlasEntry] = []
        failures: List[TextureFailure] = []
        file_names: List[Optional[str]] = []
        cell_start = 0

        for index, declaration in enumerate(declarations):
            file_name = terrain_mapping.get(declaration.name)
            file_names.append(file_name)
            try:
                if file_name is None:
                    raise TextureResolutionError(
                        f"Texture mapping not found for {declaration.name}"
                    )
                image = cache.load(os.path.join(textures_dir, file_name))
            except TextureResolutionError as e:
                log.warning("Missing texture %s: %s", declaration.name, e)
                failures.append(TextureFailure(index, declaration.name, str(e)))
                continue

            entry = TextureAtlasEntry(
                index=index,
                name=declaration.name,
                file_name=file_name,
                image=image,
                cell_size=cell_size,
                cell_start=cell_start,
                declared_cell_size=declaration.declared_cell_size,
            )
            entries.append(entry)
            cell_start += entry.cell_count

        return cls(entries, cell_size, failures, file_names)

    @classmethod
    def from_images(
        cls,
        images: Sequence[Tuple[str, Image.Image]],
        cell_size: int = DEFAULT_CELL_SIZE,
    ) -> "TextureAtlas":
        """Build an atlas from already decoded ``(name, image)`` pairs."""
        entries: List[TextureAtlasEntry] = []
        cell_start = 0
        for index, (name, image) in enumerate(images):
            entry = TextureAtlasEntry(
                index=index,
                name=name,
                file_name=f"{name}.png",
                image=image.convert("RGBA"),
                cell_size=cell_size,
                cell_start=cell_start,
            )
            entries.append(entry)
            cell_start += entry.cell_count
        return cls(entries, cell_size)

    def __iter__(self) -> Iterator[TextureAtlasEntry]:
        return iter(self.entries)

    def __len__(self) -> int:
        return len(self.entries)

    @property
    def total_cell_count(self) -> int:
        if not self.entries:
            return 0
        last = self.entries[-1]
        return last.cell_start + last.cell_count

    def resolve(self, tile_value: TileValue) -> Optional[Tuple[TextureAtlasEntry, int]]:
        """Return the owning entry and the cell index local to it, or None."""
        if tile_value < 0:
            return None
        cell = tile_value // TILE_VALUE_GRANULARITY
        if cell >= self.total_cell_count:
            return None
        position = bisect.bisect_right(self._starts, cell) - 1
        # Zero-cell entries share a start with their successor; walk back to the owner.
        while position >= 0 and not self.entries[position].contains(cell):
            position -= 1
        if position < 0:
            return None
        entry = self.entries[position]
        return entry, cell - entry.cell_start

    def texture_name(self, tile_value: Optional[TileValue]) -> Optional[str]:
        if tile_value is None:
            return None
        resolved = self.resolve(tile_value)
        return resolved[0].name if resolved is not None else None

    def entry_for_name(self, name: str) -> Optional[TextureAtlasEntry]:
        return self._by_name.get(name)

    def cell_offset(
        self, entry: TextureAtlasEntry, coordinate: Coordinate, map_height: int
    ) -> Tuple[int, int]:
        """Pixel offset of the cell drawn at ``coordinate``.

        The atlas repeats across the map: the column wraps on the number of
        cells per row and the flipped row on the number of cells per column
        (the same figure for the usual square atlases).
        """
        y_flipped = flip_row(coordinate.y, map_height)
        return (
            (coordinate.x % entry.cells_per_row) * self.cell_size,
            (y_flipped % entry.cells_per_column) * self.cell_size,
        )

    def locate(
        self, tile_value: TileValue, coordinate: Coordinate, map_height: int
    ) -> Optional[Tuple[TextureAtlasEntry, Tuple[int, int]]]:
        resolved = self.resolve(tile_value)
        if resolved is None:
            return None
        entry, _ = resolved
        return entry, self.cell_offset(entry, coordinate, map_height)

    def cell_image(
        self, entry: TextureAtlasEntry, offset: Tuple[int, int]
    ) -> Image.Image:
        return crop_cell(entry.image, offset, self.cell_size)
