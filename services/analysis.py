from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


# Rekognition DetectFaces returns landmarks in a fixed order
EYE_LEFT_INDEX = 0
CHIN_BOTTOM_INDEX = 27


class ProviderError(Exception):
    """Raised when an external analysis provider call fails."""


@dataclass(frozen=True)
class PoseSample:
    pitch: float
    yaw: float


@dataclass(frozen=True)
class NormalizedBox:
    """Bounding box in [0, 1] fractions of the frame."""
    left: float
    top: float
    width: float
    height: float


@dataclass(frozen=True)
class Landmark:
    type: str
    x: float
    y: float


@dataclass(frozen=True)
class DetectedLabel:
    name: str
    confidence: float


@dataclass(frozen=True)
class Frame:
    """Encoded still image plus the pixel size of the source frame."""
    image: bytes
    width: int
    height: int


@dataclass
class FaceAnalysis:
    """
    Structured result of one face-analysis call.

    Measurements (box, landmarks, pose) describe the first detected face.
    An empty analysis carries no measurements at all, so every gate that
    depends on them stays unsatisfied. `degraded` marks a reading that
    stands in for a failed provider call rather than a real observation.
    """

    face_count: int = 0
    bounding_box: Optional[NormalizedBox] = None
    landmarks: List[Landmark] = field(default_factory=list)
    pose: Optional[PoseSample] = None
    confidence: Optional[float] = None
    attributes: Dict[str, Any] = field(default_factory=dict)
    degraded: bool = False

    @classmethod
    def empty(cls, degraded: bool = False):
        return cls(degraded=degraded)

    def _landmark(self, index: int) -> Optional[Landmark]:
        if index < len(self.landmarks):
            return self.landmarks[index]
        return None

    @property
    def chin(self) -> Optional[Landmark]:
        return self._landmark(CHIN_BOTTOM_INDEX)

    @property
    def eye_left(self) -> Optional[Landmark]:
        return self._landmark(EYE_LEFT_INDEX)

    # --------------------------------------------------

    @classmethod
    def from_rekognition(cls, response: dict):
        details = response.get("FaceDetails") or []
        if not details:
            return cls(face_count=0)

        face = details[0]

        box = None
        raw_box = face.get("BoundingBox")
        if raw_box and all(k in raw_box for k in ("Left", "Top", "Width", "Height")):
            box = NormalizedBox(
                left=float(raw_box["Left"]),
                top=float(raw_box["Top"]),
                width=float(raw_box["Width"]),
                height=float(raw_box["Height"]),
            )

        landmarks = [
            Landmark(type=lm.get("Type", ""), x=float(lm["X"]), y=float(lm["Y"]))
            for lm in face.get("Landmarks") or []
            if "X" in lm and "Y" in lm
        ]

        pose = None
        raw_pose = face.get("Pose")
        if raw_pose and "Pitch" in raw_pose and "Yaw" in raw_pose:
            pose = PoseSample(pitch=float(raw_pose["Pitch"]), yaw=float(raw_pose["Yaw"]))

        age = face.get("AgeRange") or {}
        attributes = {
            "age_low": age.get("Low"),
            "age_high": age.get("High"),
            "eyeglasses": (face.get("Eyeglasses") or {}).get("Value"),
            "sunglasses": (face.get("Sunglasses") or {}).get("Value"),
            "smile": (face.get("Smile") or {}).get("Value"),
        }

        return cls(
            face_count=len(details),
            bounding_box=box,
            landmarks=landmarks,
            pose=pose,
            confidence=face.get("Confidence"),
            attributes=attributes,
        )

    def summary(self) -> dict:
        eye_left = self.eye_left
        return {
            "number_of_people": self.face_count,
            "confidence": self.confidence,
            "age_range": {
                "low": self.attributes.get("age_low"),
                "high": self.attributes.get("age_high"),
            },
            "eyeglasses": self.attributes.get("eyeglasses"),
            "sunglasses": self.attributes.get("sunglasses"),
            "smile": self.attributes.get("smile"),
            "eye_left": eye_left.type if eye_left else None,
        }


def labels_from_rekognition(response: dict) -> List[DetectedLabel]:
    return [
        DetectedLabel(name=label["Name"], confidence=float(label.get("Confidence", 0.0)))
        for label in response.get("Labels") or []
        if label.get("Name")
    ]
