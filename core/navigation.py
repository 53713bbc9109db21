"""
Navigation guard for an active focus session.

While the engine is running, exit attempts (history back/forward, the
exit control) are held back behind a "leave or stay" confirmation.
Leaving stops the session as a manual cancellation before the original
navigation is allowed through.
"""

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Callable, Optional

logger = logging.getLogger(__name__)

WARNING_MESSAGE = "You're in a focus session. Leaving now will end it."


class NavigationKind(Enum):
    HISTORY_BACK = "history_back"
    HISTORY_FORWARD = "history_forward"
    EXIT_CONTROL = "exit_control"


@dataclass
class PendingNavigation:
    """A suppressed navigation waiting on the user's decision."""
    kind: NavigationKind
    proceed: Callable[[], None]
    requested_at: str = field(default_factory=lambda: datetime.now().isoformat())


class NavigationGuard:
    """
    Intercepts exit attempts while a session runs.

    prompt(pending) may answer right away (True = leave, False = stay) or
    return None and let the front end call confirm_leave() / confirm_stay()
    later. Only one prompt is ever open at a time.
    """

    def __init__(self, engine, prompt: Optional[Callable[[PendingNavigation], Optional[bool]]] = None) -> None:
        """
        Args:
            engine: FocusSessionEngine to consult and stop.
            prompt: Confirmation hook; None leaves every prompt open.
        """
        self.engine = engine
        self.prompt = prompt
        self._lock = threading.Lock()
        self.pending: Optional[PendingNavigation] = None

        # Fired when a navigation is suppressed
        self.on_warning: Optional[Callable[[str], None]] = None

    @property
    def prompt_open(self) -> bool:
        return self.pending is not None

    def intercept(self, kind: NavigationKind, proceed: Callable[[], None]) -> bool:
        """
        Route a navigation attempt through the guard.

        Args:
            kind: What the user tried to do.
            proceed: Performs the navigation.

        Returns:
            True if the navigation went through (now or via an immediate
            "leave" answer), False if it is suppressed.
        """
        if not self.engine.is_running:
            proceed()
            return True

        with self._lock:
            if self.pending is not None:
                logger.debug(f"Prompt already open; ignoring {kind.value}")
                return False
            pending = PendingNavigation(kind=kind, proceed=proceed)
            self.pending = pending

        logger.info(f"Navigation suppressed during session: {kind.value}")
        self._warn(WARNING_MESSAGE)

        if self.prompt is None:
            return False

        answer = self.prompt(pending)
        if answer is True:
            return self.confirm_leave()
        if answer is False:
            self.confirm_stay()
        return False

    def confirm_leave(self) -> bool:
        """
        User chose to leave: stop the session, then run the navigation.

        Returns:
            True if a pending navigation was carried out.
        """
        with self._lock:
            pending, self.pending = self.pending, None
        if pending is None:
            return False

        self.engine.stop("manual")
        logger.info(f"Leaving session via {pending.kind.value}")
        pending.proceed()
        return True

    def confirm_stay(self) -> None:
        """User chose to stay: dismiss the prompt and re-arm."""
        with self._lock:
            self.pending = None
        logger.info("Staying in session")

    def _warn(self, message: str) -> None:
        if self.on_warning:
            try:
                self.on_warning(message)
            except Exception as e:
                logger.debug(f"on_warning callback error: {e}")
