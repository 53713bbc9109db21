"""Error taxonomy for the AttenWell focus engine."""


class FocusEngineError(Exception):
    """Base class for every error raised by the engine."""


class InvalidInputError(FocusEngineError, ValueError):
    """Bad total-minutes request or parent settings. No state was changed."""


class PlanGenerationError(FocusEngineError):
    """Plan generation exceeded its iteration safety cap."""


class InvalidStateError(FocusEngineError):
    """Operation not allowed in the engine's current state."""


class DetectorUnavailableError(FocusEngineError):
    """
    Face detector missing or failing.

    Recovered locally by the presence monitor (simulated presence);
    never surfaced to the caller as a hard failure.
    """


class PersistenceError(FocusEngineError):
    """
    A call to the backend API failed.

    Attributes:
        status_code: HTTP status when the server answered, else None.
    """

    def __init__(self, message: str, status_code=None):
        super().__init__(message)
        self.status_code = status_code
