from dataclasses import asdict, dataclass
from typing import List

from services.geometry import OFFSCREEN_RECT, centered_rect


SATISFIED_COLOR = "green"
UNSATISFIED_COLOR = "red"
TARGET_COLOR = "blue"
CHIN_COLOR = "yellow"

THIN_LINE = 2
THICK_LINE = 4

TARGET_MARKER_SIZE = 10.0


@dataclass(frozen=True)
class OverlayRect:
    label: str
    x: float
    y: float
    width: float
    height: float
    color: str
    line_width: int

    def to_dict(self) -> dict:
        return asdict(self)


def _overlay(label, rect, color, line_width) -> OverlayRect:
    return OverlayRect(
        label=label,
        x=rect.x,
        y=rect.y,
        width=rect.width,
        height=rect.height,
        color=color,
        line_width=line_width,
    )


def build_overlays(measurement, gates: dict) -> List[OverlayRect]:
    """
    Debug rectangles for the client canvas. Colour and line width carry
    gate state: the capture zone turns green and thick while the face is
    inside it, the target marker does the same once the chin reached it.
    """
    if measurement is None:
        return []

    overlays: List[OverlayRect] = []

    within = gates.get("within_constraints", False)
    overlays.append(_overlay(
        "constraint_zone",
        measurement.constraint_rect,
        SATISFIED_COLOR if within else UNSATISFIED_COLOR,
        THICK_LINE if within else THIN_LINE,
    ))

    reached = gates.get("chin_at_target", False)
    overlays.append(_overlay(
        "target_point",
        centered_rect(measurement.target_point, TARGET_MARKER_SIZE),
        SATISFIED_COLOR if reached else TARGET_COLOR,
        THICK_LINE if reached else THIN_LINE,
    ))

    chin = measurement.chin_rect
    if chin != OFFSCREEN_RECT:
        overlays.append(_overlay("chin", chin, CHIN_COLOR, THIN_LINE))

    return overlays
