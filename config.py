"""Configuration settings for the AttenWell focus engine."""

import os
import sys
from pathlib import Path
from dotenv import load_dotenv


def is_bundled() -> bool:
    """
    Check if the application is running from a PyInstaller bundle.

    Returns:
        True if running from a bundled executable, False otherwise.
    """
    return getattr(sys, 'frozen', False) and hasattr(sys, '_MEIPASS')


def get_base_dir() -> Path:
    """
    Get the base directory for bundled resources (sound cues).

    Returns:
        Path to the base directory.
    """
    if is_bundled():
        meipass = getattr(sys, '_MEIPASS', None)
        if meipass:
            return Path(meipass)
    return Path(__file__).parent


def get_user_data_dir() -> Path:
    """
    Get the directory for user-writable data (settings cache, closure records).

    ATTENWELL_DATA_DIR overrides everything. Development runs use
    BASE_DIR/data; bundled apps use the platform's per-user data folder.

    Returns:
        Path to the user data directory.
    """
    override = os.getenv("ATTENWELL_DATA_DIR", "")
    if override:
        return Path(override)

    if not is_bundled():
        return Path(__file__).parent / "data"

    if sys.platform == 'darwin':
        # macOS: ~/Library/Application Support/AttenWell
        return Path.home() / "Library" / "Application Support" / "AttenWell"
    if sys.platform == 'win32':
        appdata = os.environ.get('APPDATA')
        if appdata:
            return Path(appdata) / "AttenWell"
        return Path.home() / "AppData" / "Roaming" / "AttenWell"
    # Linux: ~/.local/share/AttenWell
    return Path.home() / ".local" / "share" / "AttenWell"


# Load environment variables from .env file (only in development)
if not is_bundled():
    # Explicitly load from the project root so cwd doesn't matter
    _env_path = Path(__file__).parent / ".env"
    load_dotenv(_env_path)

# Base directory (for bundled resources like sound files)
BASE_DIR = get_base_dir()
BUNDLED_DATA_DIR = BASE_DIR / "assets"

# User data directory (for writable data)
USER_DATA_DIR = get_user_data_dir()

# --- Backend API ---
API_BASE_URL = os.getenv("ATTENWELL_API_URL", "https://attenwell-bk.onrender.com/api").rstrip("/")
API_TOKEN = os.getenv("ATTENWELL_API_TOKEN", "")
API_TIMEOUT_SECONDS = float(os.getenv("ATTENWELL_API_TIMEOUT", "10"))

# Local copies of backend data (offline fallback / crash capture)
SETTINGS_CACHE_FILE = USER_DATA_DIR / "parent_settings.json"
SUDDEN_CLOSURES_FILE = USER_DATA_DIR / "sudden_closures.json"

# --- Session planning ---
MAX_TOTAL_MINUTES = 240  # Hard ceiling for one requested session

# Parent-configured phase lengths (minutes)
DEFAULT_STUDY_MINUTES = 30
DEFAULT_BREAK_MINUTES = 15
STUDY_MINUTES_RANGE = (1, 120)  # Parent dashboard allows 1 min to 2 hours
BREAK_MINUTES_RANGE = (1, 60)   # and 1 min to 1 hour for breaks

# --- Countdown ---
TICK_INTERVAL_SECONDS = 1.0
GENTLE_CUE_WINDOW = (4, 10)  # Seconds left (inclusive) for the soft cue
SHARP_CUE_WINDOW = (1, 3)    # Seconds left (inclusive) for the sharp cue

# Study break reminders: (minutes_left, only_if_study_longer_than)
BREAK_REMINDERS = [
    (15, 25, "15 minutes left! Perfect time for a stretch"),
    (10, 20, "10 minutes left! Time for a movement break"),
    (5, 10, "5 minutes left! Consider a quick eye break"),
]

# --- Presence monitoring ---
PRESENCE_SAMPLE_INTERVAL_SECONDS = 1.0
CAMERA_INDEX = int(os.getenv("ATTENWELL_CAMERA_INDEX", "0"))
FACE_MIN_SIZE = (60, 60)  # Smallest face (pixels) the Haar cascade will accept

# Probability that the simulated signal reports "present" when the detector is down
FALLBACK_PRESENT_PROBABILITY = 0.8

# Absence alert bands: (start_seconds, end_seconds or None, repeatable, severity, message)
# Bands must not overlap; only the open-ended last band repeats every sample.
ABSENCE_ALERT_BANDS = [
    (5, 8, False, "moderate", "We can't see you. Please come back to your desk."),
    (10, 13, False, "severe", "Still away! Your study time is running."),
    (15, None, True, "critical", "You have been away too long. Come back now!"),
]

# --- Sounds ---
SOUND_ENABLED = os.getenv("ATTENWELL_SOUND", "true").lower() in ("true", "1", "yes")
SOUND_FILES = {
    "gentle": "cue_gentle",
    "sharp": "cue_sharp",
    "alert": "presence_alert",
}

# Logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")  # Can override in .env: DEBUG, INFO, WARNING, ERROR
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
