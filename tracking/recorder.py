"""
Session outcome recording.

Every path that can end a session (manual stop, natural completion,
forced navigation, process exit) goes through one SessionRecorder. Its
save guard makes sure exactly one of them gets to produce and persist
a record.
"""

import logging
import math
import threading
from typing import Callable, Optional

from errors import PersistenceError
from tracking.closures import ClosureStore
from tracking.plan import SessionPlan
from tracking.session import (
    PhaseRuntime,
    SessionAccumulators,
    SessionRecord,
    SessionStatus,
    elapsed_whole_minutes,
)

logger = logging.getLogger(__name__)


class SaveGuard:
    """At-most-once flag for one session, checked and set atomically."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._taken = False

    def try_acquire(self) -> bool:
        """
        Returns:
            True for exactly one caller; False for everybody after it.
        """
        with self._lock:
            if self._taken:
                return False
            self._taken = True
            return True

    @property
    def is_taken(self) -> bool:
        return self._taken


class SessionRecorder:
    """
    Builds and persists the SessionRecord for one session.

    The guard is never released, even when persistence fails: the
    in-memory record is final and a reload must not resubmit it.
    """

    def __init__(
        self,
        plan: SessionPlan,
        client=None,
        closure_store: Optional[ClosureStore] = None,
    ) -> None:
        """
        Args:
            plan: The plan being executed.
            client: Backend client (create_focus_session, update_break_time).
                None skips remote persistence.
            closure_store: Local store for the sudden-closure path.
        """
        self.plan = plan
        self.client = client
        self.closure_store = closure_store or ClosureStore()
        self.guard = SaveGuard()
        self.record: Optional[SessionRecord] = None
        self.last_error: Optional[str] = None

        # Same shape as the engine callback
        self.on_error: Optional[Callable[[str, str], None]] = None

    @property
    def already_saved(self) -> bool:
        return self.guard.is_taken

    def try_finalize(self) -> bool:
        """Claim the right to record this session. True only for the winner."""
        return self.guard.try_acquire()

    # ------------------------------------------------------------------
    # Record construction
    # ------------------------------------------------------------------

    def build_record(
        self,
        status: SessionStatus,
        current_phase_index: int,
        accumulators: SessionAccumulators,
        reason: str = "",
    ) -> SessionRecord:
        """
        Compute the outcome record from the machine's final state.

        Args:
            status: Terminal status.
            current_phase_index: Index of the phase in progress when the
                session ended (the last phase for a natural completion).
            accumulators: Actual elapsed minutes.
            reason: Why the session ended ("manual", "natural-complete", ...).
        """
        total_phases = len(self.plan)
        is_properly_completed = (
            status is SessionStatus.COMPLETED and current_phase_index >= total_phases - 1
        )
        # Halves round up
        completion_percentage = int(math.floor(100 * (current_phase_index + 1) / total_phases + 0.5))
        actual = accumulators.snapshot()

        return SessionRecord(
            total_planned_minutes=self.plan.total_minutes,
            total_study_minutes=self.plan.total_study_minutes,
            total_break_minutes=self.plan.total_break_minutes,
            actual_study_minutes=actual["actual_study_minutes"],
            actual_break_minutes=actual["actual_break_minutes"],
            plan=self.plan,
            total_phases=total_phases,
            completed_phases=total_phases if is_properly_completed else current_phase_index,
            status=status,
            completion_percentage=completion_percentage,
            reason=reason,
        )

    # ------------------------------------------------------------------
    # Normal finalisation
    # ------------------------------------------------------------------

    def finalize(
        self,
        status: SessionStatus,
        current_phase_index: int,
        accumulators: SessionAccumulators,
        is_abnormal: bool = False,
        reason: str = "",
    ) -> Optional[SessionRecord]:
        """
        Produce and persist the session record, at most once.

        Returns:
            The record, or None if another path already finalised.
        """
        record = self.claim(status, current_phase_index, accumulators, reason)
        if record is None:
            return None

        if is_abnormal:
            self._store_locally(record)
        else:
            self.persist(record)
        return record

    def claim(
        self,
        status: SessionStatus,
        current_phase_index: int,
        accumulators: SessionAccumulators,
        reason: str = "",
    ) -> Optional[SessionRecord]:
        """
        Win the save guard and build the final record, without any I/O.

        The engine calls this under its lock and persist() after releasing it.

        Returns:
            The record, or None if another path already finalised.
        """
        if not self.try_finalize():
            logger.debug(f"Session already recorded; ignoring duplicate finalize ({reason or status.value})")
            return None

        record = self.build_record(status, current_phase_index, accumulators, reason)
        self.record = record
        logger.info(
            f"Session {record.session_id} finalised: {record.status.value}, "
            f"{record.completion_percentage}% ({record.actual_study_minutes}m study, "
            f"{record.actual_break_minutes}m break)"
        )
        return record

    def persist(self, record: SessionRecord) -> None:
        """Upload a claimed record, then credit break time if it was properly completed."""
        if self.client is None:
            logger.info("No backend client configured - session kept locally only")
            return

        try:
            self.client.create_focus_session(record.to_payload())
            logger.info(f"Session {record.session_id} saved")
        except PersistenceError as e:
            self.last_error = str(e)
            logger.error(f"Failed to save session {record.session_id}: {e}")
            self._notify_error("persistence_error", f"Could not save your session: {e}")
            return

        if record.is_properly_completed:
            try:
                self.client.update_break_time(record.total_break_minutes)
                logger.info(f"Credited {record.total_break_minutes:g} break minutes")
            except PersistenceError as e:
                logger.warning(f"Failed to credit break time: {e}")

    # ------------------------------------------------------------------
    # Sudden closure (process exit)
    # ------------------------------------------------------------------

    def capture_sudden_closure(
        self,
        runtime: PhaseRuntime,
        accumulators: SessionAccumulators,
        now: float,
    ) -> Optional[SessionRecord]:
        """
        Last-resort synchronous capture for an abrupt exit.

        Only acts when the session is still running and nothing has been
        recorded yet. Merges the in-progress phase's elapsed time, then
        writes the record to local storage; no network is attempted.

        Returns:
            The stored record, or None if nothing had to be captured.
        """
        if not runtime.is_running:
            return None
        if not self.try_finalize():
            return None

        if runtime.phase_start_timestamp is not None and runtime.mode is not None:
            accumulators.add(runtime.mode, elapsed_whole_minutes(runtime.phase_start_timestamp, now))
        runtime.is_running = False

        record = self.build_record(
            SessionStatus.SUDDEN_CLOSURE,
            runtime.current_phase_index,
            accumulators,
            reason="sudden-closure",
        )
        self.record = record
        self._store_locally(record)
        return record

    def _store_locally(self, record: SessionRecord) -> None:
        try:
            self.closure_store.append(record.to_payload())
        except OSError as e:
            self.last_error = str(e)
            logger.error(f"Failed to store sudden closure {record.session_id}: {e}")

    def _notify_error(self, error_type: str, message: str) -> None:
        if self.on_error:
            try:
                self.on_error(error_type, message)
            except Exception as e:
                logger.debug(f"on_error callback error: {e}")
