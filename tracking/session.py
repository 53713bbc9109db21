"""Session runtime state, accumulators and the final session record."""

import logging
import math
import threading
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from tracking.plan import PhaseType, SessionPlan

logger = logging.getLogger(__name__)


class SessionStatus(Enum):
    """How a session ended."""
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    SUDDEN_CLOSURE = "sudden_closure"


def elapsed_whole_minutes(start: float, end: float) -> int:
    """Whole minutes between two wall-clock timestamps (seconds), never negative."""
    return max(0, math.floor((end - start) / 60))


def format_countdown(seconds: int) -> str:
    """Format seconds as MM:SS."""
    seconds = max(0, int(seconds))
    return f"{seconds // 60:02d}:{seconds % 60:02d}"


@dataclass
class PhaseRuntime:
    """
    Mutable countdown state for the phase in progress.

    phase_start_timestamp is the wall-clock time (seconds) the *current*
    phase began; it is reset at every phase transition.
    """
    current_phase_index: int = 0
    time_remaining_seconds: int = 0
    mode: Optional[PhaseType] = None
    is_running: bool = False
    phase_start_timestamp: Optional[float] = None

    def load_phase(self, plan: SessionPlan, index: int, now: float) -> None:
        """Point the runtime at plan[index], starting its countdown now."""
        phase = plan[index]
        self.current_phase_index = index
        self.time_remaining_seconds = phase.duration_seconds
        self.mode = phase.phase_type
        self.phase_start_timestamp = now


class SessionAccumulators:
    """
    Actually-elapsed minutes per phase type.

    Only ever grows within one session. Thread-safe: the countdown and
    the shutdown hook can both add to it.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.actual_study_minutes: int = 0
        self.actual_break_minutes: int = 0

    def add(self, phase_type: PhaseType, minutes: int) -> None:
        """
        Add elapsed minutes for a phase type.

        Raises:
            ValueError: If minutes is negative.
        """
        if minutes < 0:
            raise ValueError(f"Cannot accumulate negative minutes: {minutes}")
        with self._lock:
            if phase_type is PhaseType.STUDY:
                self.actual_study_minutes += minutes
            else:
                self.actual_break_minutes += minutes

    def snapshot(self) -> Dict[str, int]:
        with self._lock:
            return {
                "actual_study_minutes": self.actual_study_minutes,
                "actual_break_minutes": self.actual_break_minutes,
            }


@dataclass(frozen=True)
class CompletionStats:
    """Summary shown when every phase of a plan finished naturally."""
    total_phases: int
    study_minutes: float
    break_minutes: float
    total_minutes: float

    @classmethod
    def from_plan(cls, plan: SessionPlan) -> "CompletionStats":
        return cls(
            total_phases=len(plan),
            study_minutes=plan.total_study_minutes,
            break_minutes=plan.total_break_minutes,
            total_minutes=plan.total_minutes,
        )


def _generate_session_id() -> str:
    """Short unique ID, readable enough to spot in logs."""
    return f"focus-{datetime.now().strftime('%Y%m%d-%H%M%S')}-{uuid.uuid4().hex[:6]}"


@dataclass(frozen=True)
class SessionRecord:
    """
    Final outcome of one focus session.

    Produced exactly once per session and never mutated afterwards.
    """
    total_planned_minutes: float
    total_study_minutes: float
    total_break_minutes: float
    actual_study_minutes: int
    actual_break_minutes: int
    plan: SessionPlan
    total_phases: int
    completed_phases: int
    status: SessionStatus
    completion_percentage: int
    reason: str = ""
    session_id: str = field(default_factory=_generate_session_id)
    ended_at: str = field(default_factory=lambda: datetime.now().isoformat())

    @property
    def is_properly_completed(self) -> bool:
        return self.status is SessionStatus.COMPLETED and self.completed_phases >= self.total_phases

    def to_payload(self) -> Dict[str, Any]:
        """Render the JSON body sent to the backend (and stored locally)."""
        return {
            "session_id": self.session_id,
            "total_planned_minutes": self.total_planned_minutes,
            "total_study_minutes": self.total_study_minutes,
            "total_break_minutes": self.total_break_minutes,
            "actual_study_minutes": self.actual_study_minutes,
            "actual_break_minutes": self.actual_break_minutes,
            "session_plan": self.plan.to_dict(),
            "total_phases": self.total_phases,
            "completed_phases": self.completed_phases,
            "status": self.status.value,
            "completion_percentage": self.completion_percentage,
            "reason": self.reason,
            "ended_at": self.ended_at,
        }
