"""
AttenWellClient — REST client for the AttenWell backend.

Handles:
- Session record upload after a session ends
- Break-time credit for properly completed sessions
- Parent settings fetch (with local caching for offline fallback)
- Upload of sudden-closure records captured on a previous run

Every call is a single attempt. Failures raise PersistenceError and
are surfaced by the caller; nothing here retries.
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional

import requests

import config
from errors import InvalidInputError, PersistenceError
from sync.settings import ParentSettings

logger = logging.getLogger(__name__)


class AttenWellClient:
    """Thin wrapper over the backend's JSON endpoints."""

    def __init__(
        self,
        base_url: str = "",
        token: str = "",
        timeout: Optional[float] = None,
        session: Optional[requests.Session] = None,
    ) -> None:
        """
        Initialise the client.

        Args:
            base_url: API root (falls back to config.API_BASE_URL).
            token: Bearer token (falls back to config.API_TOKEN).
            timeout: Per-request timeout in seconds.
            session: Optional requests.Session (tests inject a mock).
        """
        self.base_url = (base_url or config.API_BASE_URL).rstrip("/")
        self.token = token or config.API_TOKEN
        self.timeout = timeout if timeout is not None else config.API_TIMEOUT_SECONDS
        self.session = session or requests.Session()
        self.settings_cache_file: Path = config.SETTINGS_CACHE_FILE

    # ------------------------------------------------------------------
    # Request plumbing
    # ------------------------------------------------------------------

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    def _request(self, method: str, endpoint: str, payload: Optional[Dict] = None) -> Any:
        """
        Make one API request.

        Returns:
            Decoded JSON body, or None for empty / non-JSON responses.

        Raises:
            PersistenceError: Transport failure or non-2xx status.
        """
        url = f"{self.base_url}{endpoint}"
        try:
            response = self.session.request(
                method,
                url,
                json=payload,
                headers=self._headers(),
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise PersistenceError(f"{method} {endpoint} failed: {e}") from e

        if not response.ok:
            detail = ""
            try:
                body = response.json()
                if isinstance(body, dict):
                    detail = body.get("detail") or body.get("error") or ""
            except ValueError:
                pass
            raise PersistenceError(
                detail or f"HTTP {response.status_code}",
                status_code=response.status_code,
            )

        content_type = response.headers.get("content-type", "")
        if "application/json" in content_type:
            try:
                return response.json()
            except ValueError:
                return None
        return None

    # ------------------------------------------------------------------
    # Focus sessions
    # ------------------------------------------------------------------

    def create_focus_session(self, record: Dict[str, Any]) -> Any:
        """Upload a finished session record."""
        return self._request("POST", "/focus/sessions/", record)

    def update_break_time(self, minutes: float) -> Any:
        """Credit earned break minutes to the child's account."""
        return self._request("POST", "/break-time/update/", {"minutes": minutes})

    def create_sudden_closure(self, record: Dict[str, Any]) -> Any:
        """Upload a sudden-closure record captured on an earlier run."""
        return self._request("POST", "/sudden-closures/create/", record)

    # ------------------------------------------------------------------
    # Parent settings
    # ------------------------------------------------------------------

    def get_parent_settings(self) -> ParentSettings:
        """
        Fetch the parent's phase lengths.

        Raises:
            PersistenceError: Request failed.
            InvalidInputError: Backend returned out-of-range values.
        """
        data = self._request("GET", "/parent/settings/")
        return ParentSettings.from_api(data or {})

    def fetch_parent_settings(self) -> ParentSettings:
        """
        Fetch settings, falling back to the local cache, then defaults.

        Never raises: a session can always be planned.
        """
        try:
            settings = self.get_parent_settings()
        except (PersistenceError, InvalidInputError) as e:
            logger.warning(f"Failed to fetch parent settings, using cache: {e}")
            return self._load_cached_settings()

        self._cache_settings(settings)
        return settings

    def _cache_settings(self, settings: ParentSettings) -> None:
        """Cache settings locally for offline use."""
        try:
            self.settings_cache_file.parent.mkdir(parents=True, exist_ok=True)
            self.settings_cache_file.write_text(json.dumps(settings.to_dict(), indent=2))
        except OSError as e:
            logger.debug(f"Could not cache settings: {e}")

    def _load_cached_settings(self) -> ParentSettings:
        """Load cached settings (offline fallback)."""
        try:
            if self.settings_cache_file.exists():
                return ParentSettings.from_api(json.loads(self.settings_cache_file.read_text()))
        except (OSError, ValueError) as e:
            logger.debug(f"Could not read cached settings: {e}")
        return ParentSettings()
