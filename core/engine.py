"""
FocusSessionEngine — phase state machine for AttenWell focus sessions.

Drives a generated SessionPlan through a 1 Hz countdown, samples
presence at 1 Hz while the camera is enabled, and hands the final
outcome to a SessionRecorder exactly once.

This module has ZERO UI dependencies. A front end calls engine
methods and receives updates via callbacks.

Callbacks:
    on_tick(runtime: PhaseRuntime)
    on_phase_change(phase: Phase, suggestions: list)
    on_cue(kind: str, seconds_left: int)
    on_reminder(message: str)
    on_alert(severity: str, message: str)
    on_session_ended(record: SessionRecord)
    on_error(error_type: str, message: str)
"""

import logging
import threading
import time
from dataclasses import replace
from enum import Enum
from typing import Callable, Dict, List, Optional

import config
from camera.presence import PresenceMonitor, FaceSource, PresenceState
from core.scheduler import PeriodicTask
from core.sounds import SoundPlayer
from errors import InvalidStateError
from sync.settings import ParentSettings
from tracking.closures import ClosureStore
from tracking.plan import Phase, PhaseType, SessionPlan, describe_plan, generate_plan
from tracking.recorder import SessionRecorder
from tracking.session import (
    CompletionStats,
    PhaseRuntime,
    SessionAccumulators,
    SessionRecord,
    SessionStatus,
    elapsed_whole_minutes,
    format_countdown,
)
from tracking.suggestions import get_break_suggestions

logger = logging.getLogger(__name__)

STOP_MANUAL = "manual"
STOP_NATURAL = "natural-complete"


class EngineState(Enum):
    """Lifecycle of the phase state machine."""
    IDLE = "idle"
    PLANNED = "planned"
    RUNNING = "running"
    PHASE_TRANSITION = "phase_transition"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    SUDDEN_CLOSURE = "sudden_closure"


_TERMINAL_STATES = {
    SessionStatus.COMPLETED: EngineState.COMPLETED,
    SessionStatus.CANCELLED: EngineState.CANCELLED,
    SessionStatus.SUDDEN_CLOSURE: EngineState.SUDDEN_CLOSURE,
}


class FocusSessionEngine:
    """
    Core focus session engine.

    Handles:
    - Plan creation from the parent's settings
    - Countdown and Study/Break transitions (1 Hz task)
    - Presence sampling and absence alerts during study (1 Hz task)
    - Countdown cues and study break reminders
    - Stop, natural completion and sudden-closure capture

    tick() and presence sampling normally run on owned PeriodicTasks;
    with use_timers=False the caller drives tick() itself (tests, or
    a host with its own clock).
    """

    # ------------------------------------------------------------------
    # Initialisation
    # ------------------------------------------------------------------

    def __init__(
        self,
        client=None,
        monitor: Optional[PresenceMonitor] = None,
        closure_store: Optional[ClosureStore] = None,
        sound_player: Optional[SoundPlayer] = None,
        clock: Callable[[], float] = time.time,
        use_timers: bool = True,
    ) -> None:
        """
        Args:
            client: Backend client (AttenWellClient); None runs offline.
            monitor: Presence monitor (a fallback-mode one by default).
            closure_store: Local store for sudden closures.
            sound_player: Cue player.
            clock: Wall-clock source in seconds.
            use_timers: Start the 1 Hz tasks automatically.
        """
        self.client = client
        self._clock = clock
        self.monitor: PresenceMonitor = monitor or PresenceMonitor(clock=clock)
        self.closure_store: ClosureStore = closure_store or ClosureStore()
        self.sounds: SoundPlayer = sound_player or SoundPlayer()
        self.use_timers = use_timers

        # Serialises tick, stop, presence evaluation and shutdown capture
        self._lock = threading.RLock()

        # Session state
        self.state: EngineState = EngineState.IDLE
        self.plan: Optional[SessionPlan] = None
        self.runtime: PhaseRuntime = PhaseRuntime()
        self.accumulators: SessionAccumulators = SessionAccumulators()
        self.recorder: Optional[SessionRecorder] = None
        self.last_record: Optional[SessionRecord] = None
        self.completion_stats: Optional[CompletionStats] = None
        self.camera_enabled: bool = False

        # One owned task per concern
        self._countdown_task: Optional[PeriodicTask] = None
        self._presence_task: Optional[PeriodicTask] = None

        # ---- Callbacks (set by the front end) ----
        self.on_tick: Optional[Callable[[PhaseRuntime], None]] = None
        self.on_phase_change: Optional[Callable[[Phase, List[Dict[str, str]]], None]] = None
        self.on_cue: Optional[Callable[[str, int], None]] = None
        self.on_reminder: Optional[Callable[[str], None]] = None
        self.on_alert: Optional[Callable[[str, str], None]] = None
        self.on_session_ended: Optional[Callable[[SessionRecord], None]] = None
        self.on_error: Optional[Callable[[str, str], None]] = None

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    @property
    def is_running(self) -> bool:
        return self.state is EngineState.RUNNING and self.runtime.is_running

    def load_settings(self) -> ParentSettings:
        """Parent settings from the backend (cache/defaults when offline)."""
        if self.client is None:
            return ParentSettings()
        return self.client.fetch_parent_settings()

    def create_plan(self, total_minutes: int, settings: Optional[ParentSettings] = None) -> SessionPlan:
        """
        Generate and load the plan for the next session.

        Args:
            total_minutes: Requested session length.
            settings: Phase lengths; fetched via load_settings() if omitted.

        Returns:
            The loaded SessionPlan.

        Raises:
            InvalidStateError: A session is running.
            InvalidInputError / PlanGenerationError: From the generator;
                the engine state is left unchanged.
        """
        with self._lock:
            if self.is_running:
                raise InvalidStateError("Cannot plan a new session while one is running")

        settings = settings or self.load_settings()
        plan = generate_plan(
            total_minutes,
            settings.study_minutes_per_phase,
            settings.break_minutes_per_phase,
        )

        with self._lock:
            if self.is_running:
                raise InvalidStateError("Cannot plan a new session while one is running")
            self.plan = plan
            self.runtime = PhaseRuntime()
            self.state = EngineState.PLANNED
        logger.info(f"Session planned: {describe_plan(plan)}")
        return plan

    def start(self) -> None:
        """
        Start the loaded plan on its first phase.

        Raises:
            InvalidStateError: Already running, or no plan loaded.
        """
        with self._lock:
            if self.is_running:
                raise InvalidStateError("Session already running")
            if self.state is not EngineState.PLANNED or self.plan is None:
                raise InvalidStateError("Create a plan before starting a session")

            self.accumulators = SessionAccumulators()
            self.recorder = SessionRecorder(self.plan, self.client, self.closure_store)
            self.recorder.on_error = self._notify_error
            self.completion_stats = None

            self.runtime.load_phase(self.plan, 0, self._clock())
            self.runtime.is_running = True
            self.state = EngineState.RUNNING

            if self.use_timers:
                self._countdown_task = PeriodicTask(
                    config.TICK_INTERVAL_SECONDS, self.tick, name="countdown"
                ).start()
                if self.camera_enabled:
                    self._start_presence_task()

            logger.info(f"Session started ({len(self.plan)} phases)")
            self._notify_phase_change(self.plan[0])

    def tick(self) -> None:
        """
        Advance the countdown by one second.

        No-op unless running. At zero the phase-complete decision
        (advance or finalise) is made inside this same call.
        """
        to_cancel: List[PeriodicTask] = []
        finished = None
        with self._lock:
            if not self.is_running:
                return

            self.runtime.time_remaining_seconds = max(0, self.runtime.time_remaining_seconds - 1)
            remaining = self.runtime.time_remaining_seconds

            self._emit_countdown_cue(remaining)
            self._emit_break_reminder(remaining)
            self._emit("on_tick", replace(self.runtime))

            # A callback may have stopped the session during this tick
            if remaining <= 0 and self.is_running:
                finished, to_cancel = self._complete_phase()

        for task in to_cancel:
            task.cancel()
        self._publish(finished)

    def stop(self, reason: str = STOP_MANUAL) -> Optional[SessionRecord]:
        """
        Stop the session. Terminal; there is no resume.

        Finalises the in-progress phase's elapsed minutes, cancels both
        timers and records the session as Cancelled. Calling it again
        is harmless: the recorder's save guard absorbs the duplicate.

        Returns:
            The record produced by this call, or None if the session
            was already recorded (or never started).

        Raises:
            InvalidStateError: reason is "natural-complete"; natural
                completion is only reached by the countdown.
        """
        if reason == STOP_NATURAL:
            raise InvalidStateError("Natural completion is reached by the countdown, not by stop()")

        to_cancel: List[PeriodicTask] = []
        finished = None
        with self._lock:
            if self.is_running:
                self._accumulate_current_phase(self._clock())
                finished, to_cancel = self._finish(SessionStatus.CANCELLED, reason)
            elif self.recorder is not None:
                # Already finished through another path; the guard says no
                record = self.recorder.claim(
                    SessionStatus.CANCELLED,
                    self.runtime.current_phase_index,
                    self.accumulators,
                    reason=reason,
                )
                if record is not None:
                    finished = (self.recorder, record)

        for task in to_cancel:
            task.cancel()
        self._publish(finished)
        return finished[1] if finished else None

    def enable_camera(self, face_source: Optional[FaceSource] = None) -> None:
        """
        Camera capability is ready: begin presence sampling.

        Args:
            face_source: Face source; keeps the monitor's current one if omitted.
        """
        with self._lock:
            if face_source is not None:
                self.monitor.face_source = face_source
            self.monitor.reset()
            self.camera_enabled = True
            if self.use_timers and self.is_running:
                self._start_presence_task()
        logger.info("Camera enabled - presence monitoring active")

    def disable_camera(self) -> None:
        """Stop presence sampling."""
        with self._lock:
            self.camera_enabled = False
            task, self._presence_task = self._presence_task, None
        if task is not None:
            task.cancel()
        logger.info("Camera disabled")

    def sample_presence(self) -> Optional[bool]:
        """
        Take one presence sample and raise an absence alert if due.

        Runs on the presence task; callable directly when use_timers is False.

        Returns:
            The sample result, or None when no session is running.
        """
        if not self.is_running or not self.camera_enabled:
            return None

        present = self.monitor.sample()

        with self._lock:
            if not self.is_running or self.runtime.mode is not PhaseType.STUDY:
                return present
            band = self.monitor.check_alert()
            if band is not None:
                absence = self.monitor.get_state().continuous_absence_seconds
                logger.warning(f"Absence alert ({band.severity}) after {absence}s away")
                self.sounds.play("alert")
                self._emit("on_alert", band.severity, band.message)
        return present

    def acknowledge_presence(self) -> None:
        """Manual "I'm here" override for the absence timer."""
        self.monitor.acknowledge()

    def handle_shutdown(self) -> Optional[SessionRecord]:
        """
        Synchronous last-resort hook for process exit.

        Captures a running session as a sudden closure to local storage.
        Never waits on the network.

        Returns:
            The captured record, or None if nothing was running.
        """
        acquired = self._lock.acquire(timeout=1.0)
        if not acquired:
            logger.warning("Engine busy at shutdown; capturing without lock")
        try:
            record = None
            if self.recorder is not None and self.runtime.is_running:
                record = self.recorder.capture_sudden_closure(
                    self.runtime, self.accumulators, self._clock()
                )
                if record is not None:
                    self.state = EngineState.SUDDEN_CLOSURE
                    self.last_record = record
                    logger.warning(f"Session {record.session_id} captured as sudden closure")
            to_cancel = self._detach_timers()
        finally:
            if acquired:
                self._lock.release()

        for task in to_cancel:
            task.cancel(timeout=0.5)
        return record

    def close(self) -> None:
        """Tear down (unmount): capture an unfinished session and cancel every timer."""
        self.handle_shutdown()
        self.disable_camera()
        logger.info("Engine closed")

    # ------------------------------------------------------------------
    # Snapshots
    # ------------------------------------------------------------------

    def get_runtime(self) -> PhaseRuntime:
        with self._lock:
            return replace(self.runtime)

    def get_presence(self) -> PresenceState:
        return self.monitor.get_state()

    def get_accumulators(self) -> Dict[str, int]:
        return self.accumulators.snapshot()

    def get_status(self) -> Dict:
        """
        Get current engine status (polled by the front end).

        Returns:
            dict with keys: state, is_running, mode, phase_index,
            total_phases, time_remaining_seconds, time_remaining,
            camera_enabled, absence_seconds, detector_fallback.
        """
        with self._lock:
            presence = self.monitor.get_state()
            return {
                "state": self.state.value,
                "is_running": self.is_running,
                "mode": self.runtime.mode.value if self.runtime.mode else None,
                "phase_index": self.runtime.current_phase_index,
                "total_phases": len(self.plan) if self.plan else 0,
                "time_remaining_seconds": self.runtime.time_remaining_seconds,
                "time_remaining": format_countdown(self.runtime.time_remaining_seconds),
                "camera_enabled": self.camera_enabled,
                "absence_seconds": presence.continuous_absence_seconds,
                "detector_fallback": presence.is_fallback,
            }

    # ------------------------------------------------------------------
    # Phase handling (caller holds self._lock)
    # ------------------------------------------------------------------

    def _complete_phase(self):
        """
        The current phase's clock expired: advance or finalise.

        Returns:
            (finished, timers) as from _finish(); (None, []) when the
            session moved on to its next phase.
        """
        now = self._clock()
        self.state = EngineState.PHASE_TRANSITION
        self._accumulate_current_phase(now)

        next_index = self.runtime.current_phase_index + 1
        if next_index < len(self.plan):
            self.runtime.load_phase(self.plan, next_index, now)
            self.state = EngineState.RUNNING
            next_phase = self.plan[next_index]
            logger.info(
                f"Phase {next_index + 1}/{len(self.plan)}: "
                f"{next_phase.phase_type.value} for {next_phase.duration_minutes:g} min"
            )
            self._notify_phase_change(next_phase)
            return None, []

        self.completion_stats = CompletionStats.from_plan(self.plan)
        return self._finish(SessionStatus.COMPLETED, STOP_NATURAL)

    def _accumulate_current_phase(self, now: float) -> None:
        if self.runtime.phase_start_timestamp is None or self.runtime.mode is None:
            return
        minutes = elapsed_whole_minutes(self.runtime.phase_start_timestamp, now)
        self.accumulators.add(self.runtime.mode, minutes)

    def _finish(self, status: SessionStatus, reason: str):
        """
        Leave RUNNING for a terminal state and claim the outcome record.

        Returns:
            ((recorder, record) or None, timers to cancel). Both are
            handled by the caller once the lock is released.
        """
        self.runtime.is_running = False
        self.state = _TERMINAL_STATES[status]
        to_cancel = self._detach_timers()

        record = self.recorder.claim(
            status,
            self.runtime.current_phase_index,
            self.accumulators,
            reason=reason,
        )
        logger.info(f"Session {status.value} ({reason})")
        if record is None:
            return None, to_cancel
        self.last_record = record
        return (self.recorder, record), to_cancel

    def _publish(self, finished) -> None:
        """Upload a claimed record and announce it. Called once the lock is released."""
        if finished is None:
            return
        recorder, record = finished
        recorder.persist(record)
        self._emit("on_session_ended", record)

    def _detach_timers(self) -> List[PeriodicTask]:
        tasks = [t for t in (self._countdown_task, self._presence_task) if t is not None]
        self._countdown_task = None
        self._presence_task = None
        return tasks

    def _start_presence_task(self) -> None:
        if self._presence_task is not None and self._presence_task.is_active:
            return
        self._presence_task = PeriodicTask(
            config.PRESENCE_SAMPLE_INTERVAL_SECONDS, self.sample_presence, name="presence"
        ).start()

    # ------------------------------------------------------------------
    # Cues and reminders
    # ------------------------------------------------------------------

    def _emit_countdown_cue(self, remaining: int) -> None:
        gentle_low, gentle_high = config.GENTLE_CUE_WINDOW
        sharp_low, sharp_high = config.SHARP_CUE_WINDOW
        if gentle_low <= remaining <= gentle_high:
            kind = "gentle"
        elif sharp_low <= remaining <= sharp_high:
            kind = "sharp"
        else:
            return
        self.sounds.play(kind)
        self._emit("on_cue", kind, remaining)

    def _emit_break_reminder(self, remaining: int) -> None:
        if self.runtime.mode is not PhaseType.STUDY:
            return
        phase = self.plan[self.runtime.current_phase_index]
        for minutes_left, longer_than, message in config.BREAK_REMINDERS:
            if remaining == minutes_left * 60 and phase.duration_minutes > longer_than:
                self._emit("on_reminder", message)
                return

    def _notify_phase_change(self, phase: Phase) -> None:
        suggestions: List[Dict[str, str]] = []
        if phase.phase_type is PhaseType.BREAK and phase.index > 0:
            suggestions = get_break_suggestions(self.plan[phase.index - 1].duration_minutes)
        self._emit("on_phase_change", phase, suggestions)

    # ------------------------------------------------------------------
    # Callback helpers
    # ------------------------------------------------------------------

    def _emit(self, name: str, *args) -> None:
        """Invoke a callback; its failures never break the engine."""
        callback = getattr(self, name)
        if callback is None:
            return
        try:
            callback(*args)
        except Exception as e:
            logger.debug(f"{name} callback error: {e}")

    def _notify_error(self, error_type: str, message: str) -> None:
        self._emit("on_error", error_type, message)
