#!/usr/bin/env python3
"""
AttenWell - Focus Session Terminal Front End

Plans a focus session from the parent's settings, runs the Study/Break
countdown with webcam presence monitoring, and uploads the outcome.

Usage:
    python main.py --minutes 90              # 90-minute session
    python main.py --minutes 45 --no-camera  # no presence monitoring
    python main.py --minutes 30 --offline    # default settings, no uploads
"""

import argparse
import atexit
import logging
import queue
import signal
import sys
import threading
from typing import Optional

import config
from camera import open_face_source
from core.engine import FocusSessionEngine
from core.navigation import NavigationGuard, NavigationKind, PendingNavigation
from errors import FocusEngineError
from sync.api_client import AttenWellClient
from tracking.closures import ClosureStore
from tracking.plan import Phase, PhaseType, describe_plan
from tracking.session import PhaseRuntime, SessionRecord, format_countdown

# Configure logging
logging.basicConfig(
    level=getattr(logging, config.LOG_LEVEL.upper(), logging.INFO),
    format=config.LOG_FORMAT
)
logger = logging.getLogger(__name__)

# Suppress noisy third-party library logs (HTTP requests, etc.)
logging.getLogger("urllib3").setLevel(logging.WARNING)


class FocusCLI:
    """
    Hosts a FocusSessionEngine in the terminal.

    stdin is read on a daemon thread and handed to the main loop through
    a queue, so the leave/stay answer and normal commands share one reader.
    """

    def __init__(self, client: Optional[AttenWellClient] = None, use_camera: bool = True):
        self.client = client
        self.use_camera = use_camera
        self.camera = None
        self.engine = FocusSessionEngine(client=client)
        self.guard = NavigationGuard(self.engine, prompt=self._ask_leave)
        self.commands: "queue.Queue[str]" = queue.Queue()
        self.leave_event = threading.Event()
        self._wire_callbacks()

    # ------------------------------------------------------------------
    # Setup
    # ------------------------------------------------------------------

    def _wire_callbacks(self) -> None:
        self.engine.on_tick = self._on_tick
        self.engine.on_phase_change = self._on_phase_change
        self.engine.on_reminder = lambda message: self._print_line(f"⏰ {message}")
        self.engine.on_alert = self._on_alert
        self.engine.on_error = lambda error_type, message: self._print_line(f"❌ {message}")
        self.guard.on_warning = lambda message: self._print_line(f"⚠️  {message}")

    def reconcile_closures(self) -> None:
        """Upload sudden closures left behind by an earlier run."""
        if self.client is None:
            return
        uploaded = ClosureStore().reconcile(self.client)
        if uploaded:
            print(f"✓ Uploaded {uploaded} interrupted session(s) from last time")

    def setup_camera(self) -> None:
        if not self.use_camera:
            print("📷 Camera disabled - presence monitoring off")
            return
        self.camera, face_source = open_face_source(config.CAMERA_INDEX)
        if face_source is None:
            print("📷 Camera unavailable - presence will be simulated")
        else:
            print("✓ Camera ready")
        self.engine.enable_camera(face_source)

    # ------------------------------------------------------------------
    # Session
    # ------------------------------------------------------------------

    def run(self, total_minutes: int) -> Optional[SessionRecord]:
        """
        Plan, run and record one session.

        Returns:
            The final record, or None if nothing was recorded.
        """
        plan = self.engine.create_plan(total_minutes)
        print("\n" + "=" * 60)
        print("🎯 AttenWell Focus Session")
        print("=" * 60)
        print(f"\nPlan: {describe_plan(plan)}")
        print("\nCommands: 'q' = leave session, 'h' = I'm here, 's' = status\n")

        self.setup_camera()
        self.engine.start()

        reader = threading.Thread(target=self._read_stdin, daemon=True)
        reader.start()

        try:
            while self.engine.is_running and not self.leave_event.is_set():
                try:
                    line = self.commands.get(timeout=0.5)
                except queue.Empty:
                    continue
                self._handle_command(line.strip().lower())
        except KeyboardInterrupt:
            print("\n\n⏸️  Session interrupted")
        finally:
            self.engine.close()
            if self.camera is not None:
                self.camera.close()

        return self.engine.last_record

    def _read_stdin(self) -> None:
        try:
            for line in sys.stdin:
                self.commands.put(line)
        except (EOFError, OSError):
            pass
        except Exception as e:
            logger.debug(f"Keyboard listener error: {e}")

    def _handle_command(self, command: str) -> None:
        if self.guard.prompt_open:
            if command in ("y", "yes"):
                self.guard.confirm_leave()
            elif command in ("n", "no"):
                self.guard.confirm_stay()
                print("👍 Keep going!")
            else:
                print("Please answer y or n")
            return

        if command == "q":
            self.guard.intercept(NavigationKind.EXIT_CONTROL, self.leave_event.set)
        elif command == "h":
            self.engine.acknowledge_presence()
            print("✓ Welcome back")
        elif command == "s":
            status = self.engine.get_status()
            print(
                f"Phase {status['phase_index'] + 1}/{status['total_phases']} "
                f"({status['mode']}) - {status['time_remaining']} left"
            )

    def _ask_leave(self, pending: PendingNavigation) -> Optional[bool]:
        print("Leave the session? [y/n]")
        # Answered through the command queue
        return None

    # ------------------------------------------------------------------
    # Engine callbacks
    # ------------------------------------------------------------------

    def _on_tick(self, runtime: PhaseRuntime) -> None:
        if runtime.time_remaining_seconds % 60 == 0 and runtime.time_remaining_seconds > 0:
            label = "Study" if runtime.mode is PhaseType.STUDY else "Break"
            self._print_line(f"⏱️  {label}: {format_countdown(runtime.time_remaining_seconds)} left")

    def _on_phase_change(self, phase: Phase, suggestions: list) -> None:
        if phase.phase_type is PhaseType.STUDY:
            self._print_line(f"📚 Study time: {phase.duration_minutes:g} minutes")
            return
        self._print_line(f"☕ Break time: {phase.duration_minutes:g} minutes")
        for suggestion in suggestions:
            self._print_line(f"   • {suggestion['activity']} ({suggestion['duration']})")

    def _on_alert(self, severity: str, message: str) -> None:
        self._print_line(f"🚶 [{severity}] {message} (press 'h' if you're here)")

    @staticmethod
    def _print_line(text: str) -> None:
        print(text, flush=True)


def display_summary(record: Optional[SessionRecord]) -> None:
    """Print the final session record."""
    print("\n" + "=" * 60)
    print("📈 Session Summary")
    print("=" * 60)

    if record is None:
        print("\nNo session was recorded.")
        return

    print(f"\nStatus: {record.status.value.replace('_', ' ')}")
    print(f"Phases: {record.completed_phases}/{record.total_phases} ({record.completion_percentage}%)")
    print(f"Study: {record.actual_study_minutes} of {record.total_study_minutes:g} minutes")
    print(f"Break: {record.actual_break_minutes} of {record.total_break_minutes:g} minutes")
    if record.is_properly_completed:
        print("\n✨ Session complete! Keep up the great work!")
    print("=" * 60 + "\n")


def main():
    """Main entry point — parses arguments and runs one session."""
    parser = argparse.ArgumentParser(
        description="AttenWell - Focus Session",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py --minutes 90
  python main.py --minutes 45 --no-camera
        """
    )
    parser.add_argument(
        "--minutes",
        type=int,
        required=True,
        help=f"Total session length in minutes (max {config.MAX_TOTAL_MINUTES})",
    )
    parser.add_argument(
        "--no-camera",
        action="store_true",
        help="Run without presence monitoring",
    )
    parser.add_argument(
        "--offline",
        action="store_true",
        help="Use cached/default settings and skip uploads",
    )

    args = parser.parse_args()

    client = None if args.offline else AttenWellClient()
    cli = FocusCLI(client=client, use_camera=not args.no_camera)

    # Last-resort capture if the process goes away mid-session
    atexit.register(cli.engine.handle_shutdown)
    signal.signal(signal.SIGTERM, lambda signum, frame: sys.exit(0))

    try:
        cli.reconcile_closures()
        record = cli.run(args.minutes)
    except FocusEngineError as e:
        print(f"\n❌ {e}")
        sys.exit(1)
    except Exception as e:
        logger.error(f"Fatal error: {e}", exc_info=True)
        print(f"\nFatal error: {e}")
        sys.exit(1)

    display_summary(record)


if __name__ == "__main__":
    main()
