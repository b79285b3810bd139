import base64
import binascii
import logging
import re
import threading
from typing import Optional, Union

import cv2
import numpy as np

from services.analysis import Frame


logger = logging.getLogger(__name__)

_DATA_URL = re.compile(r"^data:image/(png|jpeg|jpg);base64,(.+)$", re.I | re.S)


def decode_jpeg_to_bgr(jpeg_bytes: bytes):
    arr = np.frombuffer(jpeg_bytes, dtype=np.uint8)
    return cv2.imdecode(arr, cv2.IMREAD_COLOR)


def decode_data_url(data_url: str) -> Optional[bytes]:
    """'data:image/jpeg;base64,...' -> raw image bytes, None if malformed."""
    m = _DATA_URL.match(data_url.strip())
    if not m:
        return None
    try:
        return base64.b64decode(m.group(2), validate=True)
    except (binascii.Error, ValueError):
        return None


class LatestFrameCapture:
    """
    Capture source fed by the client. Each pushed frame replaces the
    previous one; capture() hands out the most recent frame together
    with the pixel size it was decoded at.

    A frame is handed out once. Until the client pushes another one,
    capture() returns None, so a stalled stream never gets the same
    image analysed twice.
    """

    def __init__(self):
        self._frame: Optional[Frame] = None
        self._lock = threading.Lock()

    def push(self, data: Union[bytes, bytearray, str]) -> bool:
        if isinstance(data, str):
            data = decode_data_url(data)
            if data is None:
                logger.debug("Dropping frame: malformed data URL")
                return False
        if isinstance(data, bytearray):
            data = bytes(data)
        if not data:
            return False

        img = decode_jpeg_to_bgr(data)
        if img is None:
            logger.debug("Dropping frame: could not decode image")
            return False

        height, width = img.shape[:2]
        with self._lock:
            self._frame = Frame(image=data, width=int(width), height=int(height))
        return True

    def capture(self) -> Optional[Frame]:
        with self._lock:
            frame, self._frame = self._frame, None
            return frame

    def clear(self):
        with self._lock:
            self._frame = None
