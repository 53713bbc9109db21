"""
Tests for core/scheduler.py and core/sounds.py.
"""

import sys
import threading
import unittest
from pathlib import Path
from unittest.mock import patch

# Ensure project root is on the path
sys.path.insert(0, str(Path(__file__).parent.parent))

from core.scheduler import PeriodicTask
from core.sounds import SoundPlayer, get_sound_file


class TestPeriodicTask(unittest.TestCase):

    def test_runs_until_cancelled(self):
        fired = threading.Event()
        calls = []

        def callback():
            calls.append(1)
            if len(calls) >= 3:
                fired.set()

        task = PeriodicTask(0.01, callback, name="test").start()
        self.assertTrue(fired.wait(2.0))
        task.cancel()
        self.assertFalse(task.is_active)

        count = len(calls)
        threading.Event().wait(0.05)
        self.assertEqual(len(calls), count)

    def test_context_manager_cancels(self):
        with PeriodicTask(0.01, lambda: None) as task:
            self.assertTrue(task.is_active)
        self.assertFalse(task.is_active)

    def test_callback_errors_do_not_stop_task(self):
        done = threading.Event()
        calls = []

        def callback():
            calls.append(1)
            if len(calls) == 1:
                raise RuntimeError("first run fails")
            done.set()

        with PeriodicTask(0.01, callback):
            self.assertTrue(done.wait(2.0))

    def test_cancel_from_own_callback(self):
        done = threading.Event()
        holder = {}

        def callback():
            holder["task"].cancel()
            done.set()

        holder["task"] = PeriodicTask(0.01, callback).start()
        self.assertTrue(done.wait(2.0))
        self.assertFalse(holder["task"].is_active)

    def test_cancel_is_idempotent(self):
        task = PeriodicTask(0.01, lambda: None)
        task.cancel()
        task.start()
        task.cancel()
        task.cancel()
        self.assertFalse(task.is_active)

    def test_rejects_non_positive_interval(self):
        with self.assertRaises(ValueError):
            PeriodicTask(0, lambda: None)


class TestSounds(unittest.TestCase):

    def test_unknown_cue(self):
        self.assertIsNone(get_sound_file("fanfare"))

    def test_platform_suffix(self):
        with patch("core.sounds.sys.platform", "win32"):
            self.assertEqual(get_sound_file("gentle").suffix, ".wav")
        with patch("core.sounds.sys.platform", "darwin"):
            self.assertEqual(get_sound_file("alert").suffix, ".mp3")

    def test_disabled_player_is_silent(self):
        player = SoundPlayer(enabled=False)
        with patch.object(SoundPlayer, "_play_file") as play_file:
            player.play("gentle")
        play_file.assert_not_called()

    def test_missing_file_skipped(self):
        player = SoundPlayer(enabled=True)
        with patch("core.sounds.get_sound_file", return_value=Path("/nonexistent/cue.mp3")), \
                patch.object(SoundPlayer, "_play_file") as play_file:
            player.play("sharp")
            player.play("sharp")
        play_file.assert_not_called()
        self.assertEqual(player._missing_reported, {"sharp"})


if __name__ == "__main__":
    unittest.main()
