# config.py
# Environment-driven settings for the liveness server

import logging
import os
from dataclasses import dataclass
from typing import FrozenSet, Optional, Tuple

from dotenv import load_dotenv

from services.constraint_service import CHIN_BOX_SIZE, CONSTRAINT_ZONE, TARGET_POINT
from services.geometry import CONTAINMENT_TOLERANCE
from services.liveness_service import COUNTDOWN_SECONDS
from services.motion_service import PITCH_THRESHOLD, YAW_THRESHOLD
from services.rekognition_service import LABEL_MIN_CONFIDENCE, MAX_LABELS
from services.scheduler_service import POLL_INTERVAL
from services.spoof_service import SUSPICIOUS_LABELS


load_dotenv()

logger = logging.getLogger(__name__)

LOGGING_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning("Invalid %s=%r, using %s", name, raw, default)
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning("Invalid %s=%r, using %s", name, raw, default)
        return default


PORT = _env_int("FLASK_PORT", 5002)
AWS_REGION = os.getenv("AWS_REGION") or None
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
SESSION_TTL_SECONDS = _env_int("SESSION_TTL_SECONDS", 60)


def configure_logging(level: str = LOG_LEVEL):
    logging.basicConfig(level=getattr(logging, level, logging.INFO), format=LOGGING_FORMAT)


@dataclass(frozen=True)
class LivenessConfig:
    countdown_seconds: int = COUNTDOWN_SECONDS
    poll_interval: float = POLL_INTERVAL  # seconds
    pitch_threshold: float = PITCH_THRESHOLD
    yaw_threshold: float = YAW_THRESHOLD
    containment_tolerance: float = CONTAINMENT_TOLERANCE
    chin_box_size: float = CHIN_BOX_SIZE
    constraint_zone: Tuple[float, float, float, float] = CONSTRAINT_ZONE
    target_point: Tuple[float, float] = TARGET_POINT
    label_min_confidence: float = LABEL_MIN_CONFIDENCE
    max_labels: int = MAX_LABELS
    suspicious_labels: FrozenSet[str] = SUSPICIOUS_LABELS
    aws_region: Optional[str] = None

    @classmethod
    def from_env(cls):
        return cls(
            countdown_seconds=_env_int("LIVENESS_COUNTDOWN_SECONDS", COUNTDOWN_SECONDS),
            poll_interval=_env_int("LIVENESS_POLL_INTERVAL_MS", int(POLL_INTERVAL * 1000)) / 1000.0,
            pitch_threshold=_env_float("LIVENESS_PITCH_THRESHOLD", PITCH_THRESHOLD),
            yaw_threshold=_env_float("LIVENESS_YAW_THRESHOLD", YAW_THRESHOLD),
            containment_tolerance=_env_float("LIVENESS_CONTAINMENT_TOLERANCE", CONTAINMENT_TOLERANCE),
            chin_box_size=_env_float("LIVENESS_CHIN_BOX_SIZE", CHIN_BOX_SIZE),
            label_min_confidence=_env_float("LIVENESS_LABEL_MIN_CONFIDENCE", LABEL_MIN_CONFIDENCE),
            max_labels=_env_int("LIVENESS_MAX_LABELS", MAX_LABELS),
            aws_region=AWS_REGION,
        )
