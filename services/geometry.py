from dataclasses import dataclass
from typing import Optional, Tuple

from services.analysis import NormalizedBox


# pixel margin that keeps containment from flapping at the boundary
CONTAINMENT_TOLERANCE = 5.0


@dataclass(frozen=True)
class Point:
    x: float
    y: float


@dataclass(frozen=True)
class Rect:
    x: float
    y: float
    width: float
    height: float

    @property
    def right(self) -> float:
        return self.x + self.width

    @property
    def bottom(self) -> float:
        return self.y + self.height

    @property
    def is_empty(self) -> bool:
        return self.width <= 0 or self.height <= 0

    def to_dict(self) -> dict:
        return {
            "x": self.x,
            "y": self.y,
            "width": self.width,
            "height": self.height,
            "right": self.right,
            "bottom": self.bottom,
        }


# Degenerate rectangle used when there is nothing to place on screen.
# Containment checks against it fail without special-casing None.
OFFSCREEN_RECT = Rect(x=-10, y=-10, width=0, height=0)


def to_pixel_rect(
    box: Optional[NormalizedBox],
    frame_width: float,
    frame_height: float,
    offsets: Tuple[float, float] = (0, 0),
) -> Rect:
    if box is None:
        return OFFSCREEN_RECT

    offset_x, offset_y = offsets
    return Rect(
        x=box.left * frame_width + offset_x,
        y=box.top * frame_height + offset_y,
        width=box.width * frame_width,
        height=box.height * frame_height,
    )


def contains(outer: Rect, inner: Rect, tolerance: float = CONTAINMENT_TOLERANCE) -> bool:
    if inner.is_empty:
        return False
    return (
        inner.x - tolerance > outer.x
        and inner.y - tolerance > outer.y
        and inner.right + tolerance < outer.right
        and inner.bottom + tolerance < outer.bottom
    )


def point_in_rect(point: Point, rect: Rect) -> bool:
    return (
        rect.x < point.x < rect.x + rect.width
        and rect.y < point.y < rect.y + rect.height
    )


def centered_rect(center: Point, size: float) -> Rect:
    half = size / 2.0
    return Rect(x=center.x - half, y=center.y - half, width=size, height=size)
