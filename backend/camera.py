"""OpenCV webcam session used for the live preview and the single still capture."""

import logging
import threading
from typing import Callable, Iterator, Optional

import cv2
import numpy as np

from errors import CameraError, PermissionDenied
from models import CapturedImage

logger = logging.getLogger(__name__)

CAMERA_DENIED_MESSAGE = (
    "Camera access was denied. Check that a camera is connected and that this app "
    "is allowed to use it, then try again."
)


class CameraSession:
    """Exclusive owner of one camera device.

    The device is released after a capture, on ``release()`` and when leaving a
    ``with`` block, whichever comes first.
    """

    def __init__(
        self,
        index: int = 0,
        width: int = 480,
        height: int = 480,
        jpeg_quality: int = 90,
        capture_factory: Callable[[int], "cv2.VideoCapture"] = cv2.VideoCapture,
    ) -> None:
        self._jpeg_quality = jpeg_quality
        self._lock = threading.RLock()

        capture = capture_factory(index)
        if capture is None or not capture.isOpened():
            if capture is not None:
                capture.release()
            logger.warning("Could not open camera %s", index)
            raise PermissionDenied(CAMERA_DENIED_MESSAGE)

        capture.set(cv2.CAP_PROP_FRAME_WIDTH, width)
        capture.set(cv2.CAP_PROP_FRAME_HEIGHT, height)
        self._capture: Optional["cv2.VideoCapture"] = capture
        logger.info("Camera %s opened", index)

    def __enter__(self) -> "CameraSession":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()

    @property
    def is_open(self) -> bool:
        return self._capture is not None

    def preview_frame(self) -> bytes:
        with self._lock:
            frame = self._read_frame()
            return self._encode(frame)

    def preview_frames(self) -> Iterator[bytes]:
        """Yield JPEG frames until the session is released."""
        while self.is_open:
            try:
                yield self.preview_frame()
            except CameraError:
                return

    def capture(self) -> CapturedImage:
        try:
            with self._lock:
                frame = self._read_frame()
                return CapturedImage(data=self._encode(frame), mime_type="image/jpeg")
        finally:
            self.release()

    def release(self) -> None:
        with self._lock:
            if self._capture is None:
                return
            self._capture.release()
            self._capture = None
            logger.info("Camera released")

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def _read_frame(self) -> np.ndarray:
        if self._capture is None:
            raise CameraError("Camera session is closed.")
        ok, frame = self._capture.read()
        if not ok or frame is None or frame.size == 0:
            raise CameraError("Camera returned an empty frame.")
        return frame

    def _encode(self, frame: np.ndarray) -> bytes:
        ok, buffer = cv2.imencode(".jpg", frame, [cv2.IMWRITE_JPEG_QUALITY, self._jpeg_quality])
        if not ok:
            raise CameraError("Could not encode the camera frame.")
        return buffer.tobytes()
