"""
Local store for sudden-closure records.

When the process is about to die mid-session there is no time for a
network round-trip, so the record is appended to a JSON list on disk
and uploaded on a later run (reconcile()).
"""

import json
import logging
import os
import tempfile
import threading
from pathlib import Path
from typing import Any, Dict, List, Optional

import config
from errors import PersistenceError

logger = logging.getLogger(__name__)


class ClosureStore:
    """Appendable JSON list of pending sudden-closure payloads."""

    def __init__(self, path: Optional[Path] = None) -> None:
        """
        Args:
            path: JSON file to use (defaults to config.SUDDEN_CLOSURES_FILE).
        """
        self.path: Path = path or config.SUDDEN_CLOSURES_FILE
        self._lock = threading.Lock()

    def load(self) -> List[Dict[str, Any]]:
        """
        Read all pending records.

        Returns:
            List of payload dicts; empty if the file is missing or unreadable.
        """
        with self._lock:
            return self._read()

    def append(self, payload: Dict[str, Any]) -> None:
        """
        Append one record. Synchronous; safe to call from an exit hook.

        Raises:
            OSError: If the file cannot be written.
        """
        with self._lock:
            records = self._read()
            records.append(payload)
            self._write(records)
        logger.info(f"Sudden closure stored locally ({len(records)} pending)")

    def reconcile(self, client) -> int:
        """
        Upload pending records, keeping only the ones that failed.

        Args:
            client: Object with create_sudden_closure(payload).

        Returns:
            Number of records uploaded.
        """
        with self._lock:
            records = self._read()
            if not records:
                return 0

            remaining = []
            for payload in records:
                try:
                    client.create_sudden_closure(payload)
                except PersistenceError as e:
                    logger.warning(f"Could not upload sudden closure {payload.get('session_id')}: {e}")
                    remaining.append(payload)

            self._write(remaining)

        uploaded = len(records) - len(remaining)
        logger.info(f"Reconciled {uploaded} sudden closure(s), {len(remaining)} still pending")
        return uploaded

    # ------------------------------------------------------------------
    # File helpers (caller holds self._lock)
    # ------------------------------------------------------------------

    def _read(self) -> List[Dict[str, Any]]:
        if not self.path.exists():
            return []
        try:
            with open(self.path, 'r') as f:
                data = json.load(f)
        except (json.JSONDecodeError, OSError) as e:
            logger.warning(f"Failed to read sudden closures from {self.path}: {e}")
            return []
        if not isinstance(data, list):
            logger.warning(f"Ignoring malformed sudden closure file {self.path}")
            return []
        return data

    def _write(self, records: List[Dict[str, Any]]) -> None:
        """Atomic write: temp file in the same directory, then replace."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        temp_fd, temp_path = tempfile.mkstemp(
            suffix='.tmp',
            prefix='closures_',
            dir=self.path.parent
        )
        try:
            with os.fdopen(temp_fd, 'w') as f:
                json.dump(records, f, indent=2)
            os.replace(temp_path, self.path)
        except Exception:
            try:
                os.unlink(temp_path)
            except OSError:
                pass
            raise
