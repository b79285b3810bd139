import logging
import threading
import time

from services.analysis import FaceAnalysis, ProviderError
from services.overlay_service import build_overlays


logger = logging.getLogger(__name__)

POLL_INTERVAL = 0.2  # seconds
COUNTDOWN_INTERVAL = 1.0  # seconds


def _spawn_thread(target, *args):
    th = threading.Thread(target=target, args=args, daemon=True)
    th.start()
    return th


class PollingScheduler:
    """
    Drives one VerificationSession with two independent timers:

      analysis loop   every `interval`: capture -> analyze -> session.tick()
      countdown loop  every second:     session.on_second_elapsed()

    Only one analysis cycle may be in flight; a tick that fires while
    the previous cycle is still waiting on a provider is skipped. Every
    start() opens a new generation and stop() closes it, so results that
    arrive for an old generation are dropped instead of being applied.
    start() also empties the capture buffer, so an attempt only ever
    analyses frames pushed after it began.

    `spawn(fn, *args)` and `sleep(seconds)` default to daemon threads and
    time.sleep; the server passes socketio.start_background_task and
    socketio.sleep.
    """

    def __init__(
        self,
        session,
        capture,
        face_provider,
        label_provider,
        sink,
        interval: float = POLL_INTERVAL,
        spawn=None,
        sleep=None,
        clock=time.monotonic,
    ):
        self.session = session
        self.capture = capture
        self.face_provider = face_provider
        self.label_provider = label_provider
        self.sink = sink
        self.interval = interval

        self._spawn = spawn or _spawn_thread
        self._sleep = sleep or time.sleep
        self._clock = clock

        self._lock = threading.RLock()
        self._generation = 0
        self._active = False
        self._in_flight = False
        self.skipped_ticks = 0

        session.add_listener(self._on_outcome)

    # --------------------------------------------------

    @property
    def active(self) -> bool:
        return self._active

    @property
    def in_flight(self) -> bool:
        return self._in_flight

    def _is_current(self, generation: int) -> bool:
        with self._lock:
            return (
                self._active
                and generation == self._generation
                and self.session.verifying
            )

    # --------------------------------------------------

    def start(self) -> bool:
        with self._lock:
            if not self.session.start():
                return False
            self.capture.clear()
            self._generation += 1
            generation = self._generation
            self._active = True
            self._in_flight = False
            self.skipped_ticks = 0

        self._spawn(self._analysis_loop, generation)
        self._spawn(self._countdown_loop, generation)
        self._publish(self.session.snapshot())
        return True

    def stop(self):
        """Cancel both timers and abandon whatever is still in flight."""
        with self._lock:
            if not self._active:
                return
            self._active = False
            self._generation += 1
            self._in_flight = False
            self.session.cancel()
        logger.info("Scheduler stopped (%d tick(s) skipped)", self.skipped_ticks)

    def _on_outcome(self, snapshot):
        with self._lock:
            if self._active:
                self._active = False
                self._generation += 1
                self._in_flight = False
                logger.info(
                    "Scheduler halted on outcome %s (%d tick(s) skipped)",
                    snapshot.outcome.value,
                    self.skipped_ticks,
                )

    # --------------------------------------------------

    def _analysis_loop(self, generation: int):
        while self._is_current(generation):
            self._dispatch(generation)
            self._sleep(self.interval)

    def _countdown_loop(self, generation: int):
        started = self._clock()
        elapsed = 0
        while self._is_current(generation):
            elapsed += 1
            self._sleep(max(0.0, started + elapsed * COUNTDOWN_INTERVAL - self._clock()))
            if not self._is_current(generation):
                break
            self.second_elapsed(generation)

    def poll(self) -> bool:
        """Fire one analysis tick now. Returns False if it was skipped."""
        return self._dispatch(self._generation)

    def _dispatch(self, generation: int) -> bool:
        with self._lock:
            if not self._is_current(generation):
                return False
            if self._in_flight:
                self.skipped_ticks += 1
                logger.debug("Previous analysis cycle still running, tick skipped")
                return False
            self._in_flight = True

        self._spawn(self._run_cycle, generation)
        return True

    def _run_cycle(self, generation: int):
        try:
            frame = self.capture.capture()
            if frame is None:
                logger.debug("No new frame since the last cycle")
                return

            analysis = self._analyze(frame.image)
            labels = None
            if self.session.wants_labels(analysis):
                labels = self._detect_labels(frame.image)

            with self._lock:
                if not self._is_current(generation):
                    logger.debug("Discarding analysis result for a stopped session")
                    return
                snapshot = self.session.tick(
                    analysis,
                    labels,
                    frame_width=frame.width,
                    frame_height=frame.height,
                )
            self._publish(snapshot)
        finally:
            with self._lock:
                if generation == self._generation:
                    self._in_flight = False

    def second_elapsed(self, generation: int = None):
        with self._lock:
            if generation is None:
                generation = self._generation
            if not self._is_current(generation):
                return
            snapshot = self.session.on_second_elapsed()
        self._publish(snapshot)

    # --------------------------------------------------

    def _analyze(self, image: bytes) -> FaceAnalysis:
        try:
            return self.face_provider.analyze(image)
        except ProviderError as e:
            logger.warning("Face analysis failed, using empty reading: %s", e)
            return FaceAnalysis.empty(degraded=True)

    def _detect_labels(self, image: bytes):
        try:
            return self.label_provider.detect(image)
        except ProviderError as e:
            logger.warning("Label detection failed, skipping label check: %s", e)
            return None

    def _publish(self, snapshot):
        self.sink.publish(snapshot, build_overlays(snapshot.measurement, snapshot.gates))
