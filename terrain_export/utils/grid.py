"""Grid math helpers.

Tile rows grow upwards while raster rows grow downwards, so every conversion
into screen space goes through :func:`flip_row`.
"""

from typing import Dict, Tuple

from terrain_export.types import BlendDirection, Coordinate


EDGE_OFFSETS: Dict[BlendDirection, Tuple[int, int]] = {
    BlendDirection.LEFT: (-1, 0),
    BlendDirection.RIGHT: (1, 0),
    BlendDirection.TOP: (0, 1),
    BlendDirection.BOTTOM: (0, -1),
}

# (diagonal, vertical side, horizontal side)
DIAGONAL_OFFSETS: Dict[BlendDirection, Tuple[Tuple[int, int], ...]] = {
    BlendDirection.TOP_LEFT: ((-1, 1), (0, 1), (-1, 0)),
    BlendDirection.TOP_RIGHT: ((1, 1), (0, 1), (1, 0)),
    BlendDirection.BOTTOM_LEFT: ((-1, -1), (0, -1), (-1, 0)),
    BlendDirection.BOTTOM_RIGHT: ((1, -1), (0, -1), (1, 0)),
}


def is_in_bounds(coordinate: Coordinate, width: int, height: int) -> bool:
    """Return True if ``coordinate`` lies within the map rectangle."""
    return 0 <= coordinate.x < width and 0 <= coordinate.y < height


def flip_row(y: int, map_height: int) -> int:
    """Row index counted from the top of the raster."""
    return map_height - 1 - y


def to_screen_position(
    coordinate: Coordinate, map_height: int, cell_size: int
) -> Tuple[int, int]:
    """Top-left pixel of the tile's screen rectangle."""
    return (
        coordinate.x * cell_size,
        flip_row(coordinate.y, map_height) * cell_size,
    )


def edge_neighbor(coordinate: Coordinate, direction: BlendDirection) -> Coordinate:
    if direction not in EDGE_OFFSETS:
        raise ValueError(f"Invalid edge direction: {direction}")
    dx, dy = EDGE_OFFSETS[direction]
    return coordinate.offset(dx, dy)


def diagonal_neighbors(
    coordinate: Coordinate, direction: BlendDirection
) -> Tuple[Coordinate, Coordinate, Coordinate]:
    """Return the diagonal neighbor plus the two edge neighbors sharing the corner."""
    if direction not in DIAGONAL_OFFSETS:
        raise ValueError(f"Invalid diagonal direction: {direction}")
    (ddx, ddy), (vdx, vdy), (hdx, hdy) = DIAGONAL_OFFSETS[direction]
    return (
        coordinate.offset(ddx, ddy),
        coordinate.offset(vdx, vdy),
        coordinate.offset(hdx, hdy),
    )
