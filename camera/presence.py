"""
Presence monitoring on top of a face-detection source.

The monitor turns a stream of "faces in the latest frame" samples into
continuous-absence timing, and maps that timing onto an ordered table
of alert bands.
"""

import logging
import math
import random
import threading
import time
from dataclasses import dataclass, replace
from typing import Callable, Iterable, List, Optional, Sequence, Set

import config
from errors import DetectorUnavailableError

logger = logging.getLogger(__name__)

# A face source returns the faces found in the current frame (any non-empty
# sequence means "present") or raises when the detector can't answer.
FaceSource = Callable[[], Sequence]


@dataclass(frozen=True)
class AlertBand:
    """
    One absence alert threshold band.

    Covers continuous absence in [range_start, range_end) seconds;
    range_end None means open-ended. A non-repeatable band fires once
    per absence episode, a repeatable one on every qualifying sample.
    """
    range_start: int
    range_end: Optional[int]
    repeatable: bool
    severity: str
    message: str

    def contains(self, absence_seconds: int) -> bool:
        if absence_seconds < self.range_start:
            return False
        return self.range_end is None or absence_seconds < self.range_end


def build_alert_bands(rows: Iterable[tuple]) -> List[AlertBand]:
    """
    Build an ordered band table from config-style tuples and check it.

    Raises:
        ValueError: Bands are empty, unordered or overlapping.
    """
    bands = [AlertBand(*row) for row in rows]
    if not bands:
        raise ValueError("At least one alert band is required")
    for previous, current in zip(bands, bands[1:]):
        if previous.range_end is None or previous.range_end > current.range_start:
            raise ValueError(
                f"Alert bands overlap: [{previous.range_start}, {previous.range_end}) "
                f"and [{current.range_start}, {current.range_end})"
            )
    return bands


DEFAULT_ALERT_BANDS = build_alert_bands(config.ABSENCE_ALERT_BANDS)


@dataclass
class PresenceState:
    """Snapshot of what the monitor currently believes."""
    last_detection_timestamp: float
    continuous_absence_seconds: int = 0
    is_face_present: bool = True
    is_fallback: bool = False


class PresenceMonitor:
    """
    Tracks how long the child has been continuously out of frame.

    sample() is driven on a fixed 1 Hz cadence by the engine while the
    camera is enabled. check_alert() is only consulted during study phases.
    """

    def __init__(
        self,
        face_source: Optional[FaceSource] = None,
        alert_bands: Optional[Sequence[AlertBand]] = None,
        clock: Callable[[], float] = time.time,
        rng: Optional[random.Random] = None,
    ) -> None:
        """
        Args:
            face_source: Face-detection capability. None starts in fallback mode.
            alert_bands: Ordered band table (defaults from config).
            clock: Wall-clock source in seconds.
            rng: Random source for the fallback signal.
        """
        self.face_source = face_source
        self.alert_bands = list(alert_bands) if alert_bands is not None else list(DEFAULT_ALERT_BANDS)
        self._clock = clock
        self._rng = rng or random.Random()
        self._lock = threading.Lock()
        self._state = PresenceState(last_detection_timestamp=clock())
        self._fired_bands: Set[int] = set()

    # ------------------------------------------------------------------
    # Sampling
    # ------------------------------------------------------------------

    def sample(self) -> bool:
        """
        Take one presence sample and update absence timing.

        Returns:
            True if a face was seen (or simulated) in this sample.
        """
        present = self._read_faces()
        now = self._clock()

        with self._lock:
            self._state.is_face_present = present
            if present:
                self._state.last_detection_timestamp = now
                self._state.continuous_absence_seconds = 0
                self._fired_bands.clear()
            else:
                elapsed = now - self._state.last_detection_timestamp
                self._state.continuous_absence_seconds = max(0, math.floor(elapsed))
        return present

    def _read_faces(self) -> bool:
        try:
            if self.face_source is None:
                raise DetectorUnavailableError("No face detector configured")
            try:
                faces = self.face_source()
            except DetectorUnavailableError:
                raise
            except Exception as e:
                raise DetectorUnavailableError(str(e)) from e
        except DetectorUnavailableError as e:
            if not self._state.is_fallback:
                logger.warning(f"Face detector unavailable, using simulated presence: {e}")
                self._state.is_fallback = True
            return self._rng.random() < config.FALLBACK_PRESENT_PROBABILITY

        if self._state.is_fallback:
            logger.info("Face detector recovered")
            self._state.is_fallback = False
        return bool(faces)

    # ------------------------------------------------------------------
    # Alerts
    # ------------------------------------------------------------------

    def check_alert(self) -> Optional[AlertBand]:
        """
        Evaluate the band table against the current absence.

        Returns:
            The band to alert for on this sample, or None.
        """
        with self._lock:
            absence = self._state.continuous_absence_seconds
            if absence <= 0:
                return None
            for position, band in enumerate(self.alert_bands):
                if not band.contains(absence):
                    continue
                if band.repeatable:
                    return band
                if position in self._fired_bands:
                    return None
                self._fired_bands.add(position)
                return band
        return None

    def acknowledge(self) -> None:
        """Manual "I'm here": treat now as a fresh detection."""
        with self._lock:
            self._state.last_detection_timestamp = self._clock()
            self._state.continuous_absence_seconds = 0
            self._state.is_face_present = True
            self._fired_bands.clear()
        logger.info("Presence acknowledged manually")

    def reset(self) -> None:
        """Start a fresh absence timeline (camera just became ready)."""
        with self._lock:
            self._state = PresenceState(
                last_detection_timestamp=self._clock(),
                is_fallback=self._state.is_fallback,
            )
            self._fired_bands.clear()

    def get_state(self) -> PresenceState:
        """Get a copy of the current presence state."""
        with self._lock:
            return replace(self._state)
