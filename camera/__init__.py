"""
Camera presence sensing.

Wires a webcam and a face detector into the zero-argument face source the
PresenceMonitor samples. OpenCV is imported lazily so the monitor and
the engine work on machines without a camera stack.
"""

import logging
from typing import TYPE_CHECKING, List, Optional, Tuple

from camera.presence import (
    AlertBand,
    DEFAULT_ALERT_BANDS,
    PresenceMonitor,
    FaceSource,
    PresenceState,
)
from errors import DetectorUnavailableError

if TYPE_CHECKING:
    from camera.capture import CameraCapture
    from camera.detection import FaceDetector

logger = logging.getLogger(__name__)


def create_face_source(camera: "CameraCapture", detector: "FaceDetector") -> FaceSource:
    """
    Build a face source that detects faces in the camera's latest frame.

    Args:
        camera: An opened CameraCapture.
        detector: Face detector.

    Returns:
        Callable returning the list of faces. Raises
        DetectorUnavailableError when no frame can be read.
    """
    def face_source() -> List:
        ok, frame = camera.read_frame()
        if not ok or frame is None:
            raise DetectorUnavailableError("Camera returned no frame")
        return detector.detect_faces(frame)

    return face_source


def open_face_source(camera_index: Optional[int] = None) -> Tuple[Optional["CameraCapture"], Optional[FaceSource]]:
    """
    Open the webcam and face detector.

    Returns:
        (camera, face_source) on success, (None, None) when either part is
        unavailable. The caller owns and must close the camera.
    """
    try:
        from camera.capture import CameraCapture
        from camera.detection import FaceDetector
    except ImportError as e:
        logger.warning(f"OpenCV not available, presence will be simulated: {e}")
        return None, None

    camera = CameraCapture(camera_index)
    if not camera.open():
        logger.warning(f"Camera unavailable ({camera.failure_type.value}), presence will be simulated")
        return None, None

    try:
        detector = FaceDetector()
    except RuntimeError as e:
        logger.warning(f"Face detector unavailable: {e}")
        camera.close()
        return None, None

    return camera, create_face_source(camera, detector)


__all__ = [
    "AlertBand",
    "DEFAULT_ALERT_BANDS",
    "PresenceMonitor",
    "FaceSource",
    "PresenceState",
    "create_face_source",
    "open_face_source",
]
