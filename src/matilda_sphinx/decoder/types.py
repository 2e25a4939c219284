"""Type definitions for decoding sessions.

Provides:
- Result: Immutable recognition result (text, score, posterior)
- SessionState: Utterance lifecycle state of a session
- DecoderError and its subclasses: typed engine failures
"""

from dataclasses import dataclass
from enum import Enum


class SessionState(Enum):
    """Utterance lifecycle state of a decoding session."""

    IDLE = "idle"
    IN_UTTERANCE = "in_utterance"
    STREAMING = "streaming"
    RELEASED = "released"


@dataclass(frozen=True)
class Result:
    """A speech recognition result.

    ``score`` is the engine's log-likelihood-like path score and ``prob`` its
    posterior-probability-like score; both are engine-defined magnitudes.
    N-best entries carry no posterior, so ``prob`` is 0 for them.
    """

    text: str
    score: float = 0
    prob: float = 0

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {"text": self.text, "score": self.score, "prob": self.prob}


class DecoderError(Exception):
    """Base exception for decoder session errors."""


class ConstructionError(DecoderError):
    """Raised when the decoder engine fails to initialise."""


class LifecycleError(DecoderError):
    """Raised when the engine rejects an utterance start/end transition."""

    def __init__(self, operation: str, status: int | None, message: str | None = None):
        self.operation = operation
        self.status = status
        super().__init__(message or f"{operation} error:{status}")


class InvalidStateError(LifecycleError):
    """Raised when a lifecycle call is made in a state that does not allow it.

    The engine is not called, so there is no status code.
    """

    def __init__(self, operation: str, state: SessionState, detail: str = ""):
        self.state = state
        message = f"{operation} not allowed in state {state.value}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(operation, None, message)


class ProcessingError(DecoderError):
    """Raised when the engine reports a negative processed-sample count."""

    def __init__(self, status: int):
        self.status = status
        super().__init__(f"process_raw error:{status}")


class NoHypothesisError(DecoderError):
    """Raised when there is no hypothesis (silence or nothing processed yet)."""

    def __init__(self, message: str = "no hypothesis"):
        super().__init__(message)


class SessionReleasedError(DecoderError):
    """Raised when a session is used after release()."""

    def __init__(self, operation: str):
        self.operation = operation
        super().__init__(f"{operation} called on a released session")


class UnknownSearchError(DecoderError, KeyError):
    """Raised when selecting a search name that was never registered."""

    def __init__(self, name: str, known: frozenset[str] = frozenset()):
        self.name = name
        self.known = known
        super().__init__(name)

    def __str__(self) -> str:
        available = ", ".join(sorted(self.known)) or "none"
        return f"Unknown search: {self.name!r} (available: {available})"


__all__ = [
    "SessionState",
    "Result",
    "DecoderError",
    "ConstructionError",
    "LifecycleError",
    "InvalidStateError",
    "ProcessingError",
    "NoHypothesisError",
    "SessionReleasedError",
    "UnknownSearchError",
]
