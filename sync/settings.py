"""Parent-configured phase lengths."""

import numbers
from dataclasses import dataclass
from typing import Any, Dict

import config
from errors import InvalidInputError


def _check_range(value: Any, bounds, name: str) -> float:
    if isinstance(value, bool) or not isinstance(value, numbers.Real):
        raise InvalidInputError(f"{name} must be a number of minutes, got {value!r}")
    low, high = bounds
    if not low <= value <= high:
        raise InvalidInputError(f"{name} must be between {low} and {high} minutes, got {value:g}")
    return value


@dataclass(frozen=True)
class ParentSettings:
    """Study and break lengths (minutes) for each phase of a session."""
    study_minutes_per_phase: float = config.DEFAULT_STUDY_MINUTES
    break_minutes_per_phase: float = config.DEFAULT_BREAK_MINUTES

    def __post_init__(self):
        _check_range(self.study_minutes_per_phase, config.STUDY_MINUTES_RANGE, "Study minutes per phase")
        _check_range(self.break_minutes_per_phase, config.BREAK_MINUTES_RANGE, "Break minutes per phase")

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "ParentSettings":
        """
        Parse the backend's settings payload.

        Accepts minute fields (study_minutes_per_phase) or the hour fields
        the parent dashboard stores (study_time_hours). Missing values fall
        back to defaults.

        Raises:
            InvalidInputError: Payload is not an object, or values are
                present but out of range.
        """
        if not isinstance(data, dict):
            raise InvalidInputError(f"Settings payload must be an object, got {type(data).__name__}")
        study = cls._read_minutes(data, "study_minutes_per_phase", "study_time_hours",
                                  config.DEFAULT_STUDY_MINUTES)
        brk = cls._read_minutes(data, "break_minutes_per_phase", "break_time_hours",
                                config.DEFAULT_BREAK_MINUTES)
        return cls(study_minutes_per_phase=study, break_minutes_per_phase=brk)

    @staticmethod
    def _read_minutes(data: Dict[str, Any], minutes_key: str, hours_key: str, default: float) -> float:
        if data.get(minutes_key) is not None:
            return data[minutes_key]
        hours = data.get(hours_key)
        if hours is None:
            return default
        if isinstance(hours, bool) or not isinstance(hours, numbers.Real):
            raise InvalidInputError(f"{hours_key} must be a number, got {hours!r}")
        # Hours are stored with 0.016 granularity (about 1 minute)
        return round(hours * 60)

    def to_dict(self) -> Dict[str, float]:
        return {
            "study_minutes_per_phase": self.study_minutes_per_phase,
            "break_minutes_per_phase": self.break_minutes_per_phase,
        }
