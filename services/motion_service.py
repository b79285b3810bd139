import logging
from typing import NamedTuple, Optional

from services.analysis import PoseSample


logger = logging.getLogger(__name__)

PITCH_THRESHOLD = 15.0  # degrees
YAW_THRESHOLD = 25.0  # degrees


class MotionUpdate(NamedTuple):
    motion_detected: bool
    baseline: Optional[PoseSample]


class PoseMotionDetector:
    """
    Flags a deliberate head movement between successive pose samples.

    The first sample after a reset only becomes the baseline. Later
    samples are compared against that baseline; a jump past either
    threshold raises the flag and rebases on the new sample. The flag
    itself never clears until `clear()` starts a fresh attempt.
    """

    def __init__(self, pitch_threshold: float = PITCH_THRESHOLD, yaw_threshold: float = YAW_THRESHOLD):
        self.PITCH_THRESHOLD = pitch_threshold
        self.YAW_THRESHOLD = yaw_threshold

        self.previous_pose: Optional[PoseSample] = None
        self.motion_detected = False

    def update(self, pose: Optional[PoseSample]) -> MotionUpdate:
        if pose is None:
            self.reset()
            return MotionUpdate(self.motion_detected, None)

        if self.previous_pose is None:
            self.previous_pose = pose
            return MotionUpdate(self.motion_detected, self.previous_pose)

        diff_pitch = abs(pose.pitch - self.previous_pose.pitch)
        diff_yaw = abs(pose.yaw - self.previous_pose.yaw)

        if diff_pitch > self.PITCH_THRESHOLD or diff_yaw > self.YAW_THRESHOLD:
            if not self.motion_detected:
                logger.info(
                    "Head motion detected (pitch %.1f, yaw %.1f)", diff_pitch, diff_yaw
                )
            self.motion_detected = True
            self.previous_pose = pose

        return MotionUpdate(self.motion_detected, self.previous_pose)

    def reset(self):
        """Drop the baseline so the next sample starts a new comparison."""
        self.previous_pose = None

    def clear(self):
        self.previous_pose = None
        self.motion_detected = False
