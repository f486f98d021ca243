"""
Actions exchanged between agents and the board: a slide of every tile in
one direction, or the placement of a single tile.
"""

from dataclasses import dataclass
from typing import Optional

from game_2048 import Board, ILLEGAL, DIRECTIONS, DIRECTION_NAMES


@dataclass(frozen=True)
class Action:
    kind: str = "none"
    direction: Optional[int] = None
    position: Optional[int] = None
    tile: Optional[int] = None

    @classmethod
    def slide(cls, direction: int) -> "Action":
        if direction not in DIRECTIONS:
            raise ValueError(f"Invalid direction: {direction}")
        return cls(kind="slide", direction=direction)

    @classmethod
    def place(cls, position: int, tile: int) -> "Action":
        return cls(kind="place", position=position, tile=tile)

    @classmethod
    def none(cls) -> "Action":
        return cls()

    def __bool__(self) -> bool:
        return self.kind != "none"

    def __str__(self) -> str:
        if self.kind == "slide":
            return "#" + DIRECTION_NAMES[self.direction][0]
        if self.kind == "place":
            return f"@{self.position}-{self.tile}"
        return "none"

    def apply(self, board: Board) -> int:
        """
        Apply the action to the board in place.

        Returns:
            The slide reward or 0 for a placement; ILLEGAL if the action
            could not be applied
        """
        if self.kind == "slide":
            return board.slide(self.direction)
        if self.kind == "place":
            return board.place(self.position, self.tile)
        return ILLEGAL
