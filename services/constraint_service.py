from typing import Optional, Tuple

from services.analysis import Landmark
from services.geometry import (
    CONTAINMENT_TOLERANCE,
    OFFSCREEN_RECT,
    Point,
    Rect,
    centered_rect,
    contains,
    point_in_rect,
)


# left, top, width, height as fractions of the frame
CONSTRAINT_ZONE = (0.25, 0.10, 0.50, 0.80)
# x, y as fractions of the frame
TARGET_POINT = (0.40, 0.80)
CHIN_BOX_SIZE = 20.0  # pixels


def face_within_constraints(
    face_rect: Rect, constraint_rect: Rect, tolerance: float = CONTAINMENT_TOLERANCE
) -> bool:
    return contains(constraint_rect, face_rect, tolerance)


def chin_rect(
    chin: Optional[Landmark], frame_width: float, frame_height: float, size: float = CHIN_BOX_SIZE
) -> Rect:
    if chin is None:
        return OFFSCREEN_RECT
    return centered_rect(Point(chin.x * frame_width, chin.y * frame_height), size)


def chin_at_target(
    chin: Optional[Landmark],
    frame_width: float,
    frame_height: float,
    target: Point,
    size: float = CHIN_BOX_SIZE,
) -> bool:
    return point_in_rect(target, chin_rect(chin, frame_width, frame_height, size))


class ConstraintEvaluator:
    """
    Positional policy for one session: where the face must sit and
    where the chin must be dragged. Both are recomputed from the frame
    size on every call since the camera may change resolution.
    """

    def __init__(
        self,
        zone: Tuple[float, float, float, float] = CONSTRAINT_ZONE,
        target: Tuple[float, float] = TARGET_POINT,
        tolerance: float = CONTAINMENT_TOLERANCE,
        chin_box_size: float = CHIN_BOX_SIZE,
    ):
        self.zone = zone
        self.target = target
        self.tolerance = tolerance
        self.chin_box_size = chin_box_size

    def constraint_rect(self, frame_width: float, frame_height: float) -> Rect:
        left, top, width, height = self.zone
        return Rect(
            x=left * frame_width,
            y=top * frame_height,
            width=width * frame_width,
            height=height * frame_height,
        )

    def target_point(self, frame_width: float, frame_height: float) -> Point:
        x, y = self.target
        return Point(x * frame_width, y * frame_height)

    def chin_rect(self, chin: Optional[Landmark], frame_width: float, frame_height: float) -> Rect:
        return chin_rect(chin, frame_width, frame_height, self.chin_box_size)

    def face_within_constraints(self, face_rect: Rect, frame_width: float, frame_height: float) -> bool:
        return face_within_constraints(
            face_rect, self.constraint_rect(frame_width, frame_height), self.tolerance
        )

    def chin_at_target(self, chin: Optional[Landmark], frame_width: float, frame_height: float) -> bool:
        return chin_at_target(
            chin,
            frame_width,
            frame_height,
            self.target_point(frame_width, frame_height),
            self.chin_box_size,
        )
