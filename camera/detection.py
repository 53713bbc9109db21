"""Face detection using OpenCV's bundled Haar cascade."""

import cv2
import logging
import numpy as np
from typing import List, Tuple
import config

logger = logging.getLogger(__name__)

# (x, y, width, height) of one detected face
Face = Tuple[int, int, int, int]


class FaceDetector:
    """
    Finds frontal faces in a camera frame.

    The engine only cares whether the list is empty; the boxes are
    returned so a UI could draw them.
    """

    def __init__(self, cascade_name: str = "haarcascade_frontalface_default.xml"):
        """
        Load the cascade classifier.

        Args:
            cascade_name: File name inside cv2.data.haarcascades.

        Raises:
            RuntimeError: If the cascade file cannot be loaded.
        """
        cascade_path = cv2.data.haarcascades + cascade_name
        self.classifier = cv2.CascadeClassifier(cascade_path)
        if self.classifier.empty():
            raise RuntimeError(f"Failed to load face cascade: {cascade_path}")
        logger.debug(f"Loaded face cascade from {cascade_path}")

    def detect_faces(self, frame: np.ndarray) -> List[Face]:
        """
        Detect faces in a BGR frame.

        Args:
            frame: BGR image from camera

        Returns:
            List of face boxes, empty when nobody is in frame.
        """
        gray = cv2.cvtColor(frame, cv2.COLOR_BGR2GRAY)
        gray = cv2.equalizeHist(gray)
        faces = self.classifier.detectMultiScale(
            gray,
            scaleFactor=1.1,
            minNeighbors=5,
            minSize=config.FACE_MIN_SIZE,
        )
        return [tuple(int(v) for v in box) for box in faces]
