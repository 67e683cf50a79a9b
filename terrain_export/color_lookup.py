"""Reverse lookup from rendered color to texture name.

The three-way blend pass needs to know which texture is *visible* at a tile
after the primary blend pass, not which texture the tile value names. The
raster is sampled at the tile center and the color is matched against one
representative color per atlas texture (the center pixel of its atlas image)
by minimal squared RGB distance.

This is an approximation: it depends on pass ordering and on textures having
distinguishable representative colors. Replacing it with an explicit
"rendered texture" grid would change three-way blend output.
"""

from typing import Dict, List, Optional, Tuple

from PIL import Image

from terrain_export.atlas import TextureAtlas
from terrain_export.types import Coordinate, TextureName
from terrain_export.utils.grid import to_screen_position
from terrain_export.utils.image import pixel_rgb


RGB = Tuple[int, int, int]


def color_distance(a: RGB, b: RGB) -> int:
    """Squared Euclidean distance over R, G and B."""
    return sum((ca - cb) * (ca - cb) for ca, cb in zip(a, b))


class ColorTextureResolver:
    """Samples one map's raster; owned by a single export."""

    atlas: TextureAtlas
    raster: Image.Image
    map_height: int
    cell_size: int

    def __init__(
        self,
        atlas: TextureAtlas,
        raster: Image.Image,
        map_height: int,
        cell_size: int,
    ):
        self.atlas = atlas
        self.raster = raster
        self.map_height = map_height
        self.cell_size = cell_size
        self._representatives: Optional[List[Tuple[TextureName, RGB]]] = None
        self._memo: Dict[RGB, Optional[TextureName]] = {}

    def representative_colors(self) -> List[Tuple[TextureName, RGB]]:
        if self._representatives is None:
            self._representatives = [
                (
                    entry.name,
                    pixel_rgb(entry.image, entry.image.width // 2, entry.image.height // 2),
                )
                for entry in self.atlas
            ]
        return self._representatives

    def match_color(self, rgb: RGB) -> Optional[TextureName]:
        if rgb in self._memo:
            return self._memo[rgb]

        closest: Optional[TextureName] = None
        best = -1
        for name, candidate in self.representative_colors():
            distance = color_distance(rgb, candidate)
            if best < 0 or distance < best:
                best = distance
                closest = name

        self._memo[rgb] = closest
        return closest

    def sample(self, coordinate: Coordinate) -> Optional[RGB]:
        left, top = to_screen_position(coordinate, self.map_height, self.cell_size)
        cx = left + self.cell_size // 2
        cy = top + self.cell_size // 2
        if not (0 <= cx < self.raster.width and 0 <= cy < self.raster.height):
            return None
        return pixel_rgb(self.raster, cx, cy)

    def texture_at(self, coordinate: Coordinate) -> Optional[TextureName]:
        rgb = self.sample(coordinate)
        if rgb is None:
            return None
        return self.match_color(rgb)
