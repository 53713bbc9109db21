"""
Session plan generation.

Turns a requested total duration and the parent's study/break lengths
into an ordered, immutable list of alternating Study/Break phases.
"""

import logging
import math
import numbers
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterator, List, Tuple

import config
from errors import InvalidInputError, PlanGenerationError

logger = logging.getLogger(__name__)


class PhaseType(Enum):
    """Kind of a phase within a session plan."""
    STUDY = "study"
    BREAK = "break"


@dataclass(frozen=True)
class Phase:
    """One contiguous Study or Break interval."""
    phase_type: PhaseType
    duration_minutes: float
    index: int

    @property
    def duration_seconds(self) -> int:
        return int(round(self.duration_minutes * 60))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.phase_type.value,
            "duration_minutes": self.duration_minutes,
            "index": self.index,
        }


@dataclass(frozen=True)
class SessionPlan:
    """
    Ordered, immutable sequence of phases for one focus session.

    Insertion order is execution order. Never empty, indices are
    contiguous from 0.
    """
    phases: Tuple[Phase, ...]
    requested_minutes: int
    study_minutes_per_phase: float
    break_minutes_per_phase: float

    def __len__(self) -> int:
        return len(self.phases)

    def __getitem__(self, index: int) -> Phase:
        return self.phases[index]

    def __iter__(self) -> Iterator[Phase]:
        return iter(self.phases)

    def _minutes_of(self, phase_type: PhaseType) -> float:
        return sum(p.duration_minutes for p in self.phases if p.phase_type is phase_type)

    @property
    def total_study_minutes(self) -> float:
        return self._minutes_of(PhaseType.STUDY)

    @property
    def total_break_minutes(self) -> float:
        return self._minutes_of(PhaseType.BREAK)

    @property
    def total_minutes(self) -> float:
        return self.total_study_minutes + self.total_break_minutes

    def to_dict(self) -> Dict[str, Any]:
        """Serialise for the backend payload and the local closure store."""
        return {
            "requested_minutes": self.requested_minutes,
            "study_minutes_per_phase": self.study_minutes_per_phase,
            "break_minutes_per_phase": self.break_minutes_per_phase,
            "phases": [phase.to_dict() for phase in self.phases],
        }


def _validate_phase_length(value: Any, name: str) -> None:
    if isinstance(value, bool) or not isinstance(value, numbers.Real) or value <= 0:
        raise InvalidInputError(f"{name} must be a positive number of minutes, got {value!r}")


def generate_plan(
    total_minutes: int,
    study_minutes_per_phase: float,
    break_minutes_per_phase: float,
) -> SessionPlan:
    """
    Build the phase plan for a session.

    Greedily consumes the requested time starting with a Study phase.
    Phases alternate Study/Break; when the remaining time can't fill a
    whole phase, a partial phase is emitted and generation stops, so a
    partial phase is always the last one.

    Args:
        total_minutes: Requested session length (positive integer, at most
            config.MAX_TOTAL_MINUTES).
        study_minutes_per_phase: Parent-configured study phase length.
        break_minutes_per_phase: Parent-configured break phase length.

    Returns:
        The generated SessionPlan.

    Raises:
        InvalidInputError: Bad total or phase lengths.
        PlanGenerationError: Safety iteration cap exceeded.
    """
    _validate_phase_length(study_minutes_per_phase, "Study minutes per phase")
    _validate_phase_length(break_minutes_per_phase, "Break minutes per phase")

    if isinstance(total_minutes, bool) or not isinstance(total_minutes, numbers.Integral) \
            or total_minutes <= 0:
        raise InvalidInputError(f"Total minutes must be a positive whole number, got {total_minutes!r}")

    if total_minutes > config.MAX_TOTAL_MINUTES:
        raise InvalidInputError(
            f"Total minutes cannot exceed {config.MAX_TOTAL_MINUTES}, got {total_minutes}"
        )

    minimum = min(study_minutes_per_phase, break_minutes_per_phase)
    if total_minutes < minimum:
        raise InvalidInputError(
            f"Session needs at least {minimum:g} minutes with the current settings, "
            f"got {total_minutes}"
        )

    max_iterations = math.ceil(total_minutes / min(1, minimum)) + 5
    phases: List[Phase] = []
    remaining = total_minutes
    iterations = 0

    while remaining > 0:
        iterations += 1
        if iterations > max_iterations:
            raise PlanGenerationError(
                f"Plan generation exceeded {max_iterations} iterations "
                f"(total={total_minutes}, study={study_minutes_per_phase}, "
                f"break={break_minutes_per_phase})"
            )

        if remaining >= study_minutes_per_phase:
            phases.append(Phase(PhaseType.STUDY, study_minutes_per_phase, len(phases)))
            remaining -= study_minutes_per_phase
        else:
            # Leftover time is spent as one last, shorter study block
            phases.append(Phase(PhaseType.STUDY, max(1, remaining), len(phases)))
            break

        if remaining >= break_minutes_per_phase:
            phases.append(Phase(PhaseType.BREAK, break_minutes_per_phase, len(phases)))
            remaining -= break_minutes_per_phase
        elif remaining >= 1:
            phases.append(Phase(PhaseType.BREAK, remaining, len(phases)))
            break
        else:
            # Anything under a minute is dropped rather than scheduled
            if remaining > 0:
                logger.debug(f"Dropping {remaining:g}-minute trailing break")
            break

    plan = SessionPlan(
        phases=tuple(phases),
        requested_minutes=total_minutes,
        study_minutes_per_phase=study_minutes_per_phase,
        break_minutes_per_phase=break_minutes_per_phase,
    )
    logger.debug(f"Generated plan: {describe_plan(plan)}")
    return plan


def describe_plan(plan: SessionPlan) -> str:
    """
    Human-readable one-liner, e.g. "Study 30m → Break 15m → Study 5m (50m)".
    """
    parts = [f"{phase.phase_type.value.title()} {phase.duration_minutes:g}m" for phase in plan]
    return f"{' → '.join(parts)} ({plan.total_minutes:g}m)"
