"""
Tests for core/navigation.py — leave/stay confirmation during a session.
"""

import sys
import tempfile
import unittest
from pathlib import Path
from unittest.mock import MagicMock

# Ensure project root is on the path
sys.path.insert(0, str(Path(__file__).parent.parent))

from camera.presence import PresenceMonitor
from core.engine import FocusSessionEngine
from core.navigation import NavigationGuard, NavigationKind
from sync.settings import ParentSettings
from tracking.closures import ClosureStore
from tracking.session import SessionStatus


def make_engine(running: bool = True) -> MagicMock:
    engine = MagicMock()
    engine.is_running = running

    def stop(reason="manual"):
        engine.is_running = False

    engine.stop.side_effect = stop
    return engine


class TestNavigationGuard(unittest.TestCase):

    def test_passes_through_when_idle(self):
        engine = make_engine(running=False)
        proceed = MagicMock()
        guard = NavigationGuard(engine)

        self.assertTrue(guard.intercept(NavigationKind.HISTORY_BACK, proceed))
        proceed.assert_called_once()
        engine.stop.assert_not_called()
        self.assertFalse(guard.prompt_open)

    def test_suppresses_and_warns_while_running(self):
        engine = make_engine()
        proceed = MagicMock()
        warnings = []
        guard = NavigationGuard(engine)
        guard.on_warning = warnings.append

        self.assertFalse(guard.intercept(NavigationKind.HISTORY_BACK, proceed))
        proceed.assert_not_called()
        self.assertTrue(guard.prompt_open)
        self.assertIs(guard.pending.kind, NavigationKind.HISTORY_BACK)
        self.assertEqual(len(warnings), 1)

    def test_confirm_leave_stops_then_proceeds(self):
        engine = make_engine()
        order = []
        engine.stop.side_effect = lambda reason="manual": order.append(("stop", reason))
        guard = NavigationGuard(engine)

        guard.intercept(NavigationKind.EXIT_CONTROL, lambda: order.append(("proceed", None)))
        self.assertTrue(guard.confirm_leave())
        self.assertEqual(order, [("stop", "manual"), ("proceed", None)])
        self.assertFalse(guard.prompt_open)

    def test_confirm_stay_rearms(self):
        engine = make_engine()
        prompt = MagicMock(return_value=None)
        guard = NavigationGuard(engine, prompt=prompt)
        proceed = MagicMock()

        guard.intercept(NavigationKind.HISTORY_FORWARD, proceed)
        guard.confirm_stay()
        self.assertFalse(guard.prompt_open)
        engine.stop.assert_not_called()
        proceed.assert_not_called()

        # Guard is armed again
        guard.intercept(NavigationKind.HISTORY_BACK, proceed)
        self.assertEqual(prompt.call_count, 2)
        self.assertTrue(guard.prompt_open)

    def test_repeated_attempts_share_one_prompt(self):
        engine = make_engine()
        prompt = MagicMock(return_value=None)
        guard = NavigationGuard(engine, prompt=prompt)

        for _ in range(3):
            self.assertFalse(guard.intercept(NavigationKind.HISTORY_BACK, MagicMock()))
        prompt.assert_called_once()

    def test_immediate_leave_answer(self):
        engine = make_engine()
        proceed = MagicMock()
        guard = NavigationGuard(engine, prompt=lambda pending: True)

        self.assertTrue(guard.intercept(NavigationKind.EXIT_CONTROL, proceed))
        engine.stop.assert_called_once_with("manual")
        proceed.assert_called_once()

    def test_immediate_stay_answer(self):
        engine = make_engine()
        proceed = MagicMock()
        guard = NavigationGuard(engine, prompt=lambda pending: False)

        self.assertFalse(guard.intercept(NavigationKind.EXIT_CONTROL, proceed))
        engine.stop.assert_not_called()
        proceed.assert_not_called()
        self.assertFalse(guard.prompt_open)

    def test_confirm_without_pending(self):
        guard = NavigationGuard(make_engine())
        self.assertFalse(guard.confirm_leave())

    def test_warning_callback_errors_ignored(self):
        guard = NavigationGuard(make_engine())
        guard.on_warning = MagicMock(side_effect=RuntimeError("boom"))
        self.assertFalse(guard.intercept(NavigationKind.HISTORY_BACK, MagicMock()))


class FakeClock:

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now


class TestNavigationWithEngine(unittest.TestCase):
    """Leave confirmation against a real engine driven by a fake clock."""

    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self._tmp.cleanup)
        self.clock = FakeClock()
        self.engine = FocusSessionEngine(
            client=MagicMock(),
            monitor=PresenceMonitor(face_source=lambda: [], clock=self.clock),
            closure_store=ClosureStore(Path(self._tmp.name) / "closures.json"),
            sound_player=MagicMock(),
            clock=self.clock,
            use_timers=False,
        )
        self.engine.create_plan(90, ParentSettings(30, 15))
        self.engine.start()
        for _ in range(150):
            self.clock.now += 1
            self.engine.tick()

    def test_leave_records_partial_session_before_proceeding(self):
        seen = {}

        def proceed():
            seen["running"] = self.engine.is_running
            seen["record"] = self.engine.last_record

        guard = NavigationGuard(self.engine)
        self.assertFalse(guard.intercept(NavigationKind.HISTORY_BACK, proceed))
        self.assertTrue(self.engine.is_running)
        self.assertTrue(guard.confirm_leave())

        self.assertFalse(seen["running"])
        record = seen["record"]
        self.assertIsNotNone(record)
        self.assertIs(record.status, SessionStatus.CANCELLED)
        self.assertEqual(record.actual_study_minutes, 2)
        self.assertEqual(record.reason, "manual")
        self.engine.client.create_focus_session.assert_called_once()

    def test_stay_keeps_session_running(self):
        proceed = MagicMock()
        guard = NavigationGuard(self.engine)
        guard.intercept(NavigationKind.EXIT_CONTROL, proceed)
        guard.confirm_stay()

        proceed.assert_not_called()
        self.assertTrue(self.engine.is_running)
        self.assertIsNone(self.engine.last_record)


if __name__ == "__main__":
    unittest.main()
