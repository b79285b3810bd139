"""
Shared fakes for the liveness tests: scripted providers, a fixed-frame
capture source, a recording sink and a task queue standing in for
background threads.
"""
import pytest

from services.analysis import (
    CHIN_BOTTOM_INDEX,
    DetectedLabel,
    FaceAnalysis,
    Frame,
    Landmark,
    NormalizedBox,
    PoseSample,
)

FRAME_WIDTH = 640
FRAME_HEIGHT = 480

# inside the default capture zone of a 640x480 frame
INSIDE_BOX = NormalizedBox(left=0.35, top=0.2, width=0.3, height=0.6)
# spills over the left edge of the zone
OUTSIDE_BOX = NormalizedBox(left=0.05, top=0.2, width=0.3, height=0.6)

CHIN_ON_TARGET = (0.40, 0.80)
CHIN_AWAY = (0.50, 0.75)


def make_landmarks(chin=CHIN_AWAY):
    points = [Landmark("point%d" % i, 0.5, 0.5) for i in range(CHIN_BOTTOM_INDEX + 2)]
    points[0] = Landmark("eyeLeft", 0.42, 0.4)
    points[CHIN_BOTTOM_INDEX] = Landmark("chinBottom", chin[0], chin[1])
    return points


def make_reading(pose=(0.0, 0.0), box=INSIDE_BOX, chin=CHIN_AWAY, face_count=1):
    return FaceAnalysis(
        face_count=face_count,
        bounding_box=box,
        landmarks=make_landmarks(chin) if chin is not None else [],
        pose=PoseSample(*pose) if pose is not None else None,
        confidence=99.9,
        attributes={"age_low": 25, "age_high": 35, "eyeglasses": False,
                    "sunglasses": False, "smile": True},
    )


def labels(*names):
    return [DetectedLabel(name, 95.0) for name in names]


class ScriptedFaceProvider:
    """Returns queued readings in order; an Exception item is raised."""

    def __init__(self, *readings):
        self.readings = list(readings)
        self.calls = 0
        self.images = []

    def analyze(self, image):
        self.calls += 1
        self.images.append(image)
        item = self.readings.pop(0) if len(self.readings) > 1 else self.readings[0]
        if isinstance(item, Exception):
            raise item
        return item


class ScriptedLabelProvider:
    def __init__(self, *results):
        self.results = list(results) or [[]]
        self.calls = 0

    def detect(self, image):
        self.calls += 1
        item = self.results.pop(0) if len(self.results) > 1 else self.results[0]
        if isinstance(item, Exception):
            raise item
        return item


class FixedCapture:
    """A camera that always has the same fresh frame ready."""

    def __init__(self, frame=None):
        self.frame = frame
        self.cleared = 0

    def capture(self):
        return self.frame

    def clear(self):
        self.cleared += 1


class RecordingSink:
    def __init__(self):
        self.updates = []

    def publish(self, snapshot, overlays):
        self.updates.append((snapshot, overlays))

    @property
    def last(self):
        return self.updates[-1][0]


class TaskQueue:
    """spawn() replacement: records tasks so the test decides when they run."""

    def __init__(self):
        self.tasks = []

    def spawn(self, fn, *args):
        self.tasks.append((fn, args))

    def named(self, name):
        return [t for t in self.tasks if t[0].__name__ == name]

    def run_pending(self, name="_run_cycle"):
        pending = self.named(name)
        for task in pending:
            self.tasks.remove(task)
            fn, args = task
            fn(*args)
        return len(pending)


@pytest.fixture
def frame():
    return Frame(image=b"\xff\xd8fake-jpeg", width=FRAME_WIDTH, height=FRAME_HEIGHT)


@pytest.fixture
def sink():
    return RecordingSink()


@pytest.fixture
def tasks():
    return TaskQueue()
