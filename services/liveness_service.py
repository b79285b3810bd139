import logging
import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, List, Optional

from services.analysis import DetectedLabel, FaceAnalysis
from services.constraint_service import ConstraintEvaluator
from services.geometry import Point, Rect, to_pixel_rect
from services.motion_service import PoseMotionDetector
from services.rekognition_service import RekognitionFaceProvider, RekognitionLabelProvider
from services.scheduler_service import PollingScheduler
from services.spoof_service import SuspicionGate


logger = logging.getLogger(__name__)

COUNTDOWN_SECONDS = 15


class SessionState(str, Enum):
    IDLE = "IDLE"
    VERIFYING = "VERIFYING"
    PASSED = "PASSED"
    FAILED = "FAILED"


class Outcome(str, Enum):
    PENDING = "PENDING"
    PASS = "PASS"
    FAIL = "FAIL"


class FailReason(str, Enum):
    SUSPICION = "SPOOF_DETECTED"
    TIMEOUT = "TIMEOUT"


class GateState(str, Enum):
    NOT_YET_SATISFIED = "NOT_YET_SATISFIED"
    SATISFIED = "SATISFIED"
    NOT_SATISFIED = "NOT_SATISFIED"


# =========================================================
# Gates

class StickyGate:
    """Satisfied once, satisfied for the rest of the attempt."""

    def __init__(self):
        self.state = GateState.NOT_YET_SATISFIED

    def observe(self, condition: bool) -> bool:
        if condition:
            self.state = GateState.SATISFIED
        return self.satisfied

    @property
    def satisfied(self) -> bool:
        return self.state is GateState.SATISFIED


class LiveGate:
    """Reflects only the latest reading."""

    def __init__(self):
        self.state = GateState.NOT_SATISFIED

    def observe(self, condition: bool) -> bool:
        self.state = GateState.SATISFIED if condition else GateState.NOT_SATISFIED
        return self.satisfied

    @property
    def satisfied(self) -> bool:
        return self.state is GateState.SATISFIED


class Gates:
    def __init__(self):
        self.motion_detected = StickyGate()
        self.within_constraints = LiveGate()
        self.chin_at_target = StickyGate()
        self.suspicion_raised = StickyGate()

    @property
    def all_passing(self) -> bool:
        return (
            self.motion_detected.satisfied
            and self.within_constraints.satisfied
            and self.chin_at_target.satisfied
            and not self.suspicion_raised.satisfied
        )

    def as_dict(self) -> dict:
        return {
            "motion_detected": self.motion_detected.satisfied,
            "within_constraints": self.within_constraints.satisfied,
            "chin_at_target": self.chin_at_target.satisfied,
            "suspicion_raised": self.suspicion_raised.satisfied,
        }


# =========================================================

@dataclass(frozen=True)
class Measurement:
    """Pixel geometry of the latest tick, kept for overlay rendering."""
    frame_width: int
    frame_height: int
    face_rect: Rect
    constraint_rect: Rect
    target_point: Point
    chin_rect: Rect


@dataclass(frozen=True)
class SessionSnapshot:
    state: SessionState
    seconds_remaining: int
    gates: dict
    outcome: Outcome
    fail_reason: Optional[FailReason] = None
    face: Optional[dict] = None
    measurement: Optional[Measurement] = field(default=None, compare=False)

    @property
    def verifying(self) -> bool:
        return self.state is SessionState.VERIFYING

    @property
    def terminal(self) -> bool:
        return self.outcome is not Outcome.PENDING

    def to_dict(self) -> dict:
        return {
            "state": self.state.value,
            "verifying": self.verifying,
            "seconds_remaining": self.seconds_remaining,
            "gates": dict(self.gates),
            "outcome": self.outcome.value,
            "reason": self.fail_reason.value if self.fail_reason else None,
            "face": self.face,
        }


OutcomeListener = Callable[[SessionSnapshot], None]


class VerificationSession:
    """
    One liveness attempt at a time:

      IDLE -> VERIFYING -> PASSED | FAILED

    tick() feeds one analysis reading through the gates and settles the
    verdict. on_second_elapsed() runs the countdown. A terminal outcome
    is final; only start() opens a new attempt.
    """

    def __init__(
        self,
        countdown_seconds: int = COUNTDOWN_SECONDS,
        evaluator: Optional[ConstraintEvaluator] = None,
        motion: Optional[PoseMotionDetector] = None,
        suspicion: Optional[SuspicionGate] = None,
    ):
        self.COUNTDOWN_SECONDS = countdown_seconds
        self.evaluator = evaluator or ConstraintEvaluator()
        self.motion = motion or PoseMotionDetector()
        self.suspicion = suspicion or SuspicionGate()

        self.state = SessionState.IDLE
        self.outcome = Outcome.PENDING
        self.fail_reason: Optional[FailReason] = None
        self.seconds_remaining = countdown_seconds
        self.gates = Gates()

        self.last_measurement: Optional[Measurement] = None
        self.last_face: Optional[dict] = None

        self._listeners: List[OutcomeListener] = []
        self._lock = threading.RLock()

    # --------------------------------------------------

    @property
    def verifying(self) -> bool:
        return self.state is SessionState.VERIFYING

    def add_listener(self, listener: OutcomeListener):
        self._listeners.append(listener)

    def wants_labels(self, analysis: FaceAnalysis) -> bool:
        if analysis.degraded or not self.verifying:
            return False
        return self.suspicion.needs_labels(analysis.face_count)

    def snapshot(self) -> SessionSnapshot:
        with self._lock:
            return SessionSnapshot(
                state=self.state,
                seconds_remaining=self.seconds_remaining,
                gates=self.gates.as_dict(),
                outcome=self.outcome,
                fail_reason=self.fail_reason,
                face=self.last_face,
                measurement=self.last_measurement,
            )

    # --------------------------------------------------

    def start(self) -> bool:
        with self._lock:
            if self.verifying:
                logger.warning("start() ignored, verification already in progress")
                return False

            self.motion.clear()
            self.suspicion.clear()
            self.gates = Gates()
            self.seconds_remaining = self.COUNTDOWN_SECONDS
            self.outcome = Outcome.PENDING
            self.fail_reason = None
            self.last_measurement = None
            self.last_face = None
            self.state = SessionState.VERIFYING

            logger.info("Verification started (%ds)", self.COUNTDOWN_SECONDS)
            return True

    def cancel(self):
        """Abandon a running attempt without an outcome."""
        with self._lock:
            if self.verifying:
                self.state = SessionState.IDLE
                logger.info("Verification cancelled")

    def tick(
        self,
        analysis: FaceAnalysis,
        labels: Optional[List[DetectedLabel]] = None,
        *,
        frame_width: int,
        frame_height: int,
    ) -> SessionSnapshot:
        with self._lock:
            if not self.verifying:
                logger.debug("tick() ignored in state %s", self.state.value)
                return self.snapshot()

            # ---------------- SUSPICION ----------------
            if not analysis.degraded:
                self.gates.suspicion_raised.observe(
                    self.suspicion.update(analysis.face_count, labels)
                )

            # ---------------- FACE POSITION ----------------
            face_rect = to_pixel_rect(analysis.bounding_box, frame_width, frame_height)
            within = self.gates.within_constraints.observe(
                self.evaluator.face_within_constraints(face_rect, frame_width, frame_height)
            )

            # ---------------- HEAD MOTION ----------------
            # motion measured while off the zone is not credited
            if within:
                update = self.motion.update(analysis.pose)
            else:
                self.motion.reset()
                update = None
            self.gates.motion_detected.observe(update is not None and update.motion_detected)

            # ---------------- CHIN TARGET ----------------
            chin = analysis.chin
            self.gates.chin_at_target.observe(
                self.evaluator.chin_at_target(chin, frame_width, frame_height)
            )

            self.last_measurement = Measurement(
                frame_width=frame_width,
                frame_height=frame_height,
                face_rect=face_rect,
                constraint_rect=self.evaluator.constraint_rect(frame_width, frame_height),
                target_point=self.evaluator.target_point(frame_width, frame_height),
                chin_rect=self.evaluator.chin_rect(chin, frame_width, frame_height),
            )
            if not analysis.degraded:
                self.last_face = analysis.summary()

            # ---------------- VERDICT ----------------
            if self.gates.suspicion_raised.satisfied:
                self._finish(Outcome.FAIL, FailReason.SUSPICION)
            elif self.gates.all_passing:
                self._finish(Outcome.PASS)

            return self.snapshot()

    def on_second_elapsed(self) -> SessionSnapshot:
        with self._lock:
            if not self.verifying:
                return self.snapshot()

            self.seconds_remaining = max(0, self.seconds_remaining - 1)
            if self.seconds_remaining == 0:
                self._finish(Outcome.FAIL, FailReason.TIMEOUT)

            return self.snapshot()

    # --------------------------------------------------

    def _finish(self, outcome: Outcome, reason: Optional[FailReason] = None):
        self.outcome = outcome
        self.fail_reason = reason
        self.state = SessionState.PASSED if outcome is Outcome.PASS else SessionState.FAILED

        if outcome is Outcome.PASS:
            logger.info("Verification PASSED with %ds remaining", self.seconds_remaining)
        else:
            logger.info(
                "Verification FAILED: %s (%s)",
                reason.value if reason else "unknown",
                self.suspicion.reason or "-",
            )

        snapshot = self.snapshot()
        for listener in list(self._listeners):
            listener(snapshot)


# =========================================================

class LivenessService:
    """Holds the provider clients so they are created once per process."""

    def __init__(self, config, face_provider=None, label_provider=None):
        self.config = config
        self._face_provider = face_provider
        self._label_provider = label_provider

    @property
    def face_provider(self):
        if self._face_provider is None:
            self._face_provider = RekognitionFaceProvider(region_name=self.config.aws_region)
        return self._face_provider

    @property
    def label_provider(self):
        if self._label_provider is None:
            self._label_provider = RekognitionLabelProvider(
                region_name=self.config.aws_region,
                min_confidence=self.config.label_min_confidence,
                max_labels=self.config.max_labels,
            )
        return self._label_provider

    def create_session(self) -> VerificationSession:
        cfg = self.config
        return VerificationSession(
            countdown_seconds=cfg.countdown_seconds,
            evaluator=ConstraintEvaluator(
                zone=cfg.constraint_zone,
                target=cfg.target_point,
                tolerance=cfg.containment_tolerance,
                chin_box_size=cfg.chin_box_size,
            ),
            motion=PoseMotionDetector(cfg.pitch_threshold, cfg.yaw_threshold),
            suspicion=SuspicionGate(cfg.suspicious_labels),
        )

    def create_scheduler(self, session, capture, sink, spawn=None, sleep=None):
        return PollingScheduler(
            session,
            capture,
            self.face_provider,
            self.label_provider,
            sink,
            interval=self.config.poll_interval,
            spawn=spawn,
            sleep=sleep,
        )
