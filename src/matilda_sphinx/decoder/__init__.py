"""Decoding session layer over the PocketSphinx engine.

Public API:
- DecoderSession: Utterance lifecycle, audio feeding and result retrieval
- Result: Immutable recognition result
- DecoderEngine / EngineOptions: Engine contract for alternative backends
- DecoderError and subclasses: Typed engine failures
"""

from .engine import DecoderEngine, EngineFactory, EngineOptions, PocketSphinxEngine
from .session import DecoderSession
from .types import (
    ConstructionError,
    DecoderError,
    InvalidStateError,
    LifecycleError,
    NoHypothesisError,
    ProcessingError,
    Result,
    SessionReleasedError,
    SessionState,
    UnknownSearchError,
)

__all__ = [
    # Main API
    "DecoderSession",
    "Result",
    "SessionState",
    # Engine contract
    "DecoderEngine",
    "EngineFactory",
    "EngineOptions",
    "PocketSphinxEngine",
    # Errors
    "DecoderError",
    "ConstructionError",
    "LifecycleError",
    "InvalidStateError",
    "ProcessingError",
    "NoHypothesisError",
    "SessionReleasedError",
    "UnknownSearchError",
]
