"""
Audible cues for the countdown and absence alerts.

Cross-platform: macOS (afplay), Windows (winsound), Linux (mpg123/ffplay).
Playback runs on a background thread and never blocks the countdown.
"""

import logging
import subprocess
import sys
import threading
from pathlib import Path
from typing import Optional, Set

import config

logger = logging.getLogger(__name__)


def get_sound_file(cue: str) -> Optional[Path]:
    """
    Resolve the bundled file for a cue ("gentle", "sharp", "alert").

    Returns:
        Path of the platform's preferred format, or None for unknown cues.
    """
    stem = config.SOUND_FILES.get(cue)
    if not stem:
        return None
    suffix = ".wav" if sys.platform == "win32" else ".mp3"
    return config.BUNDLED_DATA_DIR / f"{stem}{suffix}"


class SoundPlayer:
    """Plays cue files; a missing file is reported once and then skipped."""

    def __init__(self, enabled: Optional[bool] = None) -> None:
        self.enabled = config.SOUND_ENABLED if enabled is None else enabled
        self._missing_reported: Set[str] = set()

    def play(self, cue: str) -> None:
        """Play a cue asynchronously."""
        if not self.enabled:
            return

        sound_file = get_sound_file(cue)
        if sound_file is None:
            logger.warning(f"Unknown sound cue: {cue}")
            return
        if not sound_file.exists():
            if cue not in self._missing_reported:
                logger.warning(f"Sound file not found: {sound_file}. Cue '{cue}' will be silent.")
                self._missing_reported.add(cue)
            return

        threading.Thread(target=self._play_file, args=(sound_file,), daemon=True).start()

    @staticmethod
    def _play_file(sound_file: Path) -> None:
        try:
            if sys.platform == "darwin":
                subprocess.Popen(
                    ["afplay", str(sound_file)],
                    stdout=subprocess.DEVNULL, stderr=subprocess.DEVNULL,
                )
            elif sys.platform == "win32":
                import winsound
                winsound.PlaySound(
                    str(sound_file),
                    winsound.SND_FILENAME | winsound.SND_ASYNC,
                )
            else:
                try:
                    subprocess.Popen(
                        ["mpg123", "-q", str(sound_file)],
                        stdout=subprocess.DEVNULL, stderr=subprocess.DEVNULL,
                    )
                except FileNotFoundError:
                    subprocess.Popen(
                        ["ffplay", "-nodisp", "-autoexit", str(sound_file)],
                        stdout=subprocess.DEVNULL, stderr=subprocess.DEVNULL,
                    )
        except Exception as e:
            logger.warning(f"Sound playback error: {e}")
