import logging
from typing import Iterable, Optional

from services.analysis import DetectedLabel


logger = logging.getLogger(__name__)

# Generic terms like "Screen" or "Monitor" are left out, they fire on
# ordinary backgrounds behind a real face.
SUSPICIOUS_LABELS = frozenset({
    "Finger",
    "Hand",
    "Phone",
    "Mobile Phone",
    "Cell Phone",
    "Tablet Computer",
    "Laptop",
    "LCD Screen",
})


class SuspicionGate:
    """
    Flags a second person or a spoofing prop in view.

    Once raised the flag stays raised until `clear()`; a clean frame
    after a suspicious one does not undo it.
    """

    def __init__(self, denylist: Iterable[str] = SUSPICIOUS_LABELS):
        self.denylist = frozenset(name.casefold() for name in denylist)
        self.raised = False
        self.reason: Optional[str] = None

    def evaluate(self, face_count: int, labels: Optional[Iterable[DetectedLabel]] = None) -> Optional[str]:
        """Return why this reading is suspicious, or None when it is clean."""
        if face_count != 1:
            return "FACE_COUNT_%d" % face_count

        for label in labels or ():
            if label.name.casefold() in self.denylist:
                return "LABEL_%s" % label.name

        return None

    def update(self, face_count: int, labels: Optional[Iterable[DetectedLabel]] = None) -> bool:
        if self.raised:
            return True

        reason = self.evaluate(face_count, labels)
        if reason is not None:
            self.raised = True
            self.reason = reason
            logger.warning("Suspicion raised: %s", reason)

        return self.raised

    def needs_labels(self, face_count: int) -> bool:
        """Only ask the label provider while it can still change the verdict."""
        return not self.raised and face_count == 1

    def clear(self):
        self.raised = False
        self.reason = None
