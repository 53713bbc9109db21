"""Webcam capture and management."""

import cv2
import logging
import sys
import threading
from enum import Enum
from typing import Optional, Tuple
import numpy as np
import config

logger = logging.getLogger(__name__)


class CameraFailureType(Enum):
    """Why the camera could not be opened."""
    NONE = "none"
    NO_HARDWARE = "no_hardware"  # Nothing answered at the configured index
    NO_FRAMES = "no_frames"  # Opened, but reads fail (permission or in use)
    UNKNOWN = "unknown"


class CameraCapture:
    """
    Thin OpenCV webcam wrapper used as a context manager.

    Example:
        with CameraCapture() as camera:
            ok, frame = camera.read_frame()
    """

    def __init__(self, camera_index: Optional[int] = None):
        """
        Args:
            camera_index: Device index (defaults to config.CAMERA_INDEX).
        """
        self.camera_index = config.CAMERA_INDEX if camera_index is None else camera_index
        self.cap: Optional[cv2.VideoCapture] = None
        self.is_opened = False
        self.failure_type = CameraFailureType.NONE
        # Presence sampling and shutdown can race on the same capture
        self._lock = threading.Lock()

    def __enter__(self) -> "CameraCapture":
        """Context manager entry - open the camera."""
        self.open()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        """Context manager exit - close the camera."""
        self.close()

    def open(self) -> bool:
        """
        Open the camera device and confirm it delivers frames.

        Returns:
            True if camera opened successfully, False otherwise.
        """
        try:
            # DirectShow opens much faster on Windows; fall back if unsupported
            if sys.platform == "win32":
                self.cap = cv2.VideoCapture(self.camera_index, cv2.CAP_DSHOW)
                if not self.cap.isOpened():
                    self.cap = cv2.VideoCapture(self.camera_index)
            else:
                self.cap = cv2.VideoCapture(self.camera_index)

            if not self.cap.isOpened():
                logger.error(f"Failed to open camera at index {self.camera_index}")
                self.cap.release()
                self.cap = None
                self.failure_type = CameraFailureType.NO_HARDWARE
                return False

            ret, frame = self.cap.read()
            if not ret or frame is None:
                logger.error("Camera opened but cannot read frames - permission may be denied")
                self.cap.release()
                self.cap = None
                self.failure_type = CameraFailureType.NO_FRAMES
                return False

            self.is_opened = True
            self.failure_type = CameraFailureType.NONE
            props = self.get_properties()
            logger.info(f"Camera opened at {props.get('width')}x{props.get('height')}")
            return True

        except Exception as e:
            logger.error(f"Error opening camera: {e}")
            self.failure_type = CameraFailureType.UNKNOWN
            return False

    def close(self) -> None:
        """Close the camera and release resources."""
        with self._lock:
            if self.cap is not None:
                self.cap.release()
                self.cap = None  # Prevent double-release on subsequent calls
                self.is_opened = False
                logger.info("Camera closed")

    def read_frame(self) -> Tuple[bool, Optional[np.ndarray]]:
        """
        Read a single frame from the camera.

        Returns:
            Tuple of (success: bool, frame: numpy array or None)
        """
        with self._lock:
            if not self.is_opened or self.cap is None:
                return False, None
            try:
                ret, frame = self.cap.read()
            except Exception as e:
                logger.error(f"Error reading frame: {e}")
                return False, None

        if not ret:
            logger.warning("Failed to read frame from camera")
            return False, None
        return True, frame

    def get_properties(self) -> dict:
        """
        Get current camera properties.

        Returns:
            Dictionary containing width, height and fps.
        """
        if self.cap is None:
            return {}
        return {
            "width": int(self.cap.get(cv2.CAP_PROP_FRAME_WIDTH)),
            "height": int(self.cap.get(cv2.CAP_PROP_FRAME_HEIGHT)),
            "fps": self.cap.get(cv2.CAP_PROP_FPS),
        }
