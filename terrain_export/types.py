"""Common type aliases and enumerations.

Blend descriptors arrive from the map parser as one of four *canonical*
directions plus a flip flag. They are folded into the closed
:class:`BlendDirection` enumeration once, when the descriptor is built, so the
edge / diagonal classification and the mask-key tables below stay exhaustive.
"""

from dataclasses import dataclass
from enum import StrEnum, auto
from typing import Dict


TileValue = int
MaskKey = str
TextureName = str


@dataclass(frozen=True)
class Coordinate:
    """Tile grid coordinate.

    Attributes:
        x: Column index (0 at left).
        y: Row index (0 at the *bottom* of the rendered map).
    """

    x: int
    y: int

    def offset(self, dx: int, dy: int) -> "Coordinate":
        return Coordinate(self.x + dx, self.y + dy)


class CanonicalDirection(StrEnum):
    """Blend direction as stored in a blend descriptor (before flipping)."""

    RIGHT = auto()
    TOP = auto()
    TOP_RIGHT = auto()
    TOP_LEFT = auto()


class BlendDirection(StrEnum):
    """Effective blend direction after the descriptor's flip flag is applied."""

    LEFT = auto()
    RIGHT = auto()
    TOP = auto()
    BOTTOM = auto()
    TOP_LEFT = auto()
    TOP_RIGHT = auto()
    BOTTOM_LEFT = auto()
    BOTTOM_RIGHT = auto()

    @property
    def is_edge(self) -> bool:
        return self in EDGE_DIRECTIONS

    @property
    def is_diagonal(self) -> bool:
        return self in DIAGONAL_DIRECTIONS

    @classmethod
    def from_canonical(
        cls, canonical: CanonicalDirection, flipped: bool
    ) -> "BlendDirection":
        """Mirror ``canonical`` across the opposite axis when ``flipped``."""
        if flipped:
            return FLIPPED_DIRECTIONS[canonical]
        return cls(canonical.value)


class BlendMaskType(StrEnum):
    """Which family of masks a blend uses."""

    EDGE = auto()
    CORNER = auto()
    DIAGONAL_ONLY = auto()
    NONE = auto()


EDGE_DIRECTIONS = frozenset(
    {
        BlendDirection.LEFT,
        BlendDirection.RIGHT,
        BlendDirection.TOP,
        BlendDirection.BOTTOM,
    }
)

DIAGONAL_DIRECTIONS = frozenset(
    {
        BlendDirection.TOP_LEFT,
        BlendDirection.TOP_RIGHT,
        BlendDirection.BOTTOM_LEFT,
        BlendDirection.BOTTOM_RIGHT,
    }
)

FLIPPED_DIRECTIONS: Dict[CanonicalDirection, BlendDirection] = {
    CanonicalDirection.RIGHT: BlendDirection.LEFT,
    CanonicalDirection.TOP: BlendDirection.BOTTOM,
    CanonicalDirection.TOP_RIGHT: BlendDirection.BOTTOM_RIGHT,
    CanonicalDirection.TOP_LEFT: BlendDirection.BOTTOM_LEFT,
}
