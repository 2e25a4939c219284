"""Decoding session controller.

DecoderSession wraps one decoder engine and enforces the utterance lifecycle:
- IDLE -> IN_UTTERANCE via start_utt(), back via end_utt()
- IDLE -> STREAMING via start_stream(); end_utt()/start_utt() mark utterance
  boundaries without resetting acoustic context, end_stream() returns to IDLE
- process_raw() feeds PCM16 audio while an utterance or stream is active
- get_hypothesis()/iter_nbest() read results back

Sessions are not thread-safe; use one session per audio stream.
"""

import logging
import os
from collections.abc import Iterator
from contextlib import closing
from typing import TYPE_CHECKING, Any

import numpy as np

from ..audio.conversion import as_pcm16_bytes, sample_count
from .engine import DecoderEngine, EngineFactory, EngineOptions, PocketSphinxEngine
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

if TYPE_CHECKING:
    from ..core.config import ConfigLoader

logger = logging.getLogger(__name__)

AudioInput = np.ndarray | bytes | bytearray | memoryview


class _EngineHandle:
    """Exclusive owner of an engine, released exactly once."""

    def __init__(self, engine: DecoderEngine):
        self._engine: DecoderEngine | None = engine

    @property
    def released(self) -> bool:
        return self._engine is None

    def get(self, operation: str) -> DecoderEngine:
        if self._engine is None:
            raise SessionReleasedError(operation)
        return self._engine

    def release(self) -> bool:
        """Release the engine. Returns False if it was already released."""
        engine, self._engine = self._engine, None
        if engine is None:
            return False
        engine.release()
        return True


class DecoderSession:
    """Stateful wrapper around a single decoder engine.

    Example:
        with DecoderSession(hmm="/models/en-us", dictionary="/models/cmudict.dict") as session:
            session.start_utt()
            for chunk in chunks:
                session.process_raw(chunk)
            session.end_utt()
            best = session.get_hypothesis()
            alternatives = session.get_nbest(5)

    """

    def __init__(
        self,
        hmm: str | None = None,
        dictionary: str | None = None,
        sample_rate: float = 16000.0,
        log_file: str = os.devnull,
        engine_factory: EngineFactory | None = None,
        extra_options: dict[str, Any] | None = None,
    ):
        """Create the engine and an idle session around it.

        Args:
            hmm: Acoustic model path (None or "" for the engine default)
            dictionary: Dictionary path (None or "" for the engine default)
            sample_rate: Audio sample rate in Hz, validated by the engine
            log_file: Sink for the engine's own diagnostics
            engine_factory: Builds the engine from EngineOptions
                (defaults to PocketSphinxEngine)
            extra_options: Additional engine options passed through by name

        Raises:
            ConstructionError: If the engine fails to initialise

        """
        self._options = EngineOptions(
            hmm=hmm or None,
            dictionary=dictionary or None,
            sample_rate=float(sample_rate),
            log_file=log_file,
            extra=dict(extra_options or {}),
        )
        factory = engine_factory or PocketSphinxEngine

        try:
            engine = factory(self._options)
        except Exception as e:
            logger.error(f"Decoder engine failed to initialise: {e}")
            raise ConstructionError(f"Decoder engine failed to initialise: {e}") from e
        if engine is None:
            raise ConstructionError("Decoder engine returned no handle")

        self._handle = _EngineHandle(engine)
        self._state = SessionState.IDLE
        self._utterance_open = False
        self._samples_processed = 0

        initial_search = engine.current_search()
        self._searches: set[str] = {initial_search} if initial_search else set()

        logger.info(
            f"DecoderSession created: hmm={self.hmm or 'default'}, "
            f"dict={self.dictionary or 'default'}, sample_rate={self.sample_rate}"
        )

    @classmethod
    def from_config(
        cls,
        config: "ConfigLoader | None" = None,
        engine_factory: EngineFactory | None = None,
    ) -> "DecoderSession":
        """Create a session from the [sphinx] configuration."""
        if config is None:
            from ..core.config import get_config

            config = get_config()
        return cls(
            hmm=config.hmm,
            dictionary=config.dictionary,
            sample_rate=config.sample_rate,
            log_file=config.log_file,
            engine_factory=engine_factory,
            extra_options=config.engine_options,
        )

    def __enter__(self) -> "DecoderSession":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()

    def __repr__(self) -> str:
        return f"DecoderSession(state={self._state.value}, sample_rate={self.sample_rate})"

    # ------------------------------------------------------------------
    # Properties

    @property
    def state(self) -> SessionState:
        """Current lifecycle state."""
        return self._state

    @property
    def is_released(self) -> bool:
        return self._handle.released

    @property
    def utterance_open(self) -> bool:
        """Whether an utterance boundary is currently open."""
        return self._utterance_open

    @property
    def hmm(self) -> str | None:
        return self._options.hmm

    @property
    def dictionary(self) -> str | None:
        return self._options.dictionary

    @property
    def sample_rate(self) -> float:
        return self._options.sample_rate

    @property
    def samples_processed(self) -> int:
        """Total samples fed to the engine since construction."""
        return self._samples_processed

    @property
    def searches(self) -> frozenset[str]:
        """Search names that select_search() accepts."""
        return frozenset(self._searches)

    def _engine(self, operation: str) -> DecoderEngine:
        return self._handle.get(operation)

    def _check_status(self, operation: str, status: int) -> None:
        if status != 0:
            logger.warning(f"Engine rejected {operation} with status {status} (state={self._state.value})")
            raise LifecycleError(operation, status)

    # ------------------------------------------------------------------
    # Lifecycle

    def release(self) -> None:
        """Release the engine and everything it owns.

        Any call other than release() afterwards raises SessionReleasedError.
        """
        if not self._handle.release():
            logger.debug("DecoderSession.release() called twice; ignoring")
            return
        self._state = SessionState.RELEASED
        self._utterance_open = False
        logger.info("DecoderSession released")

    def start_utt(self) -> None:
        """Start utterance processing.

        From IDLE this enters IN_UTTERANCE. While STREAMING it opens the next
        utterance boundary.

        Raises:
            InvalidStateError: If an utterance is already open
            LifecycleError: If the engine rejects the transition

        """
        engine = self._engine("start_utt")
        if self._utterance_open:
            raise InvalidStateError("start_utt", self._state, "utterance already open")

        self._check_status("start_utt", engine.start_utt())
        self._utterance_open = True
        if self._state == SessionState.IDLE:
            self._state = SessionState.IN_UTTERANCE
        logger.debug(f"Utterance started (state={self._state.value})")

    def start_stream(self) -> None:
        """Start continuous stream processing with an utterance open.

        Raises:
            InvalidStateError: If the session is not IDLE
            LifecycleError: If the engine rejects the transition

        """
        engine = self._engine("start_stream")
        if self._state != SessionState.IDLE:
            raise InvalidStateError("start_stream", self._state)

        self._check_status("start_stream", engine.start_stream())
        self._state = SessionState.STREAMING
        self._utterance_open = True
        logger.debug("Stream started")

    def end_utt(self) -> None:
        """End utterance processing.

        IN_UTTERANCE returns to IDLE; STREAMING stays STREAMING with the
        boundary closed. On engine failure the state is left unchanged.

        Raises:
            InvalidStateError: If no utterance is open
            LifecycleError: If the engine rejects the transition

        """
        engine = self._engine("end_utt")
        if not self._utterance_open:
            raise InvalidStateError("end_utt", self._state, "no utterance open")

        self._check_status("end_utt", engine.end_utt())
        self._utterance_open = False
        if self._state == SessionState.IN_UTTERANCE:
            self._state = SessionState.IDLE
        logger.debug(f"Utterance ended (state={self._state.value})")

    def end_stream(self) -> None:
        """Close any open utterance and leave STREAMING for IDLE."""
        self._engine("end_stream")
        if self._state != SessionState.STREAMING:
            raise InvalidStateError("end_stream", self._state)

        if self._utterance_open:
            self.end_utt()
        self._state = SessionState.IDLE
        logger.debug("Stream ended")

    def process_raw(self, samples: AudioInput, no_search: bool = False, full_utt: bool = False) -> int:
        """Process a single channel, 16-bit PCM chunk.

        Args:
            samples: int16/float numpy array or little-endian PCM16 bytes
            no_search: Only extract features, defer the search
            full_utt: This chunk is a full utterance worth of data

        Returns:
            Processed count reported by the engine

        Raises:
            InvalidStateError: If no utterance or stream has been started
            ValueError: If the buffer is empty or not PCM16
            ProcessingError: If the engine reports a negative count

        """
        engine = self._engine("process_raw")
        if self._state == SessionState.IDLE:
            raise InvalidStateError("process_raw", self._state, "call start_utt() or start_stream() first")

        pcm = as_pcm16_bytes(samples)
        if self._state == SessionState.STREAMING and not self._utterance_open:
            self.start_utt()

        processed = engine.process_raw(pcm, bool(no_search), bool(full_utt))
        if processed < 0:
            logger.warning(f"Engine failed to process {sample_count(pcm)} samples (status {processed})")
            raise ProcessingError(processed)

        self._samples_processed += sample_count(pcm)
        return processed

    # ------------------------------------------------------------------
    # Results

    def get_hypothesis(self) -> Result:
        """Get the best hypothesis for the audio processed so far.

        Raises:
            NoHypothesisError: If nothing has been recognised

        """
        engine = self._engine("get_hypothesis")
        if self._samples_processed == 0:
            raise NoHypothesisError("no audio processed")

        hyp = engine.hypothesis()
        if hyp is None or not hyp[0]:
            raise NoHypothesisError()
        text, score, prob = hyp
        return Result(text=text, score=score, prob=prob)

    def iter_nbest(self, limit: int) -> Iterator[Result]:
        """Iterate up to ``limit`` alternative hypotheses, best first.

        The engine iterator is closed however iteration ends.
        """
        engine = self._engine("iter_nbest")
        return self._iter_nbest(engine, limit)

    def _iter_nbest(self, engine: DecoderEngine, limit: int) -> Iterator[Result]:
        if limit <= 0 or self._samples_processed == 0:
            return

        count = 0
        with closing(engine.nbest()) as entries:
            for text, score in entries:
                # Empty text marks the end of the engine's list
                if not text:
                    break
                yield Result(text=text, score=score)
                count += 1
                if count >= limit:
                    break

    def get_nbest(self, limit: int) -> list[Result]:
        """Get up to ``limit`` alternative hypotheses, best first."""
        return list(self.iter_nbest(limit))

    def process_full_utterance(self, samples: AudioInput, nbest_count: int = 1) -> list[Result]:
        """Decode one complete utterance.

        Runs start_utt, process_raw(full_utt=True), end_utt, then returns the
        best hypothesis followed by up to ``nbest_count - 1`` alternatives.

        Raises:
            DecoderError: The first failure, with the results gathered so far
                attached as ``partial_results``. Nothing is retried.

        """
        # Reject bad audio before opening an utterance
        pcm = as_pcm16_bytes(samples)
        results: list[Result] = []
        try:
            self.start_utt()
            self.process_raw(pcm, no_search=False, full_utt=True)
            self.end_utt()
            results.append(self.get_hypothesis())
            results.extend(self.get_nbest(nbest_count - 1))
        except DecoderError as e:
            e.partial_results = list(results)
            raise
        return results

    # ------------------------------------------------------------------
    # Search configuration

    def load_grammar(self, name: str, grammar_text: str) -> None:
        """Register a JSGF grammar under ``name``, replacing any previous one."""
        engine = self._engine("load_grammar")
        if not name:
            raise ValueError("Search name must not be empty")
        engine.set_jsgf_string(name, grammar_text)
        self._searches.add(name)
        logger.debug(f"Grammar registered: {name}")

    def load_keyphrase(self, name: str, phrase: str) -> None:
        """Register a keyphrase spotting search under ``name``."""
        engine = self._engine("load_keyphrase")
        if not name:
            raise ValueError("Search name must not be empty")
        engine.set_keyphrase(name, phrase)
        self._searches.add(name)
        logger.debug(f"Keyphrase registered: {name} -> {phrase!r}")

    def select_search(self, name: str) -> None:
        """Activate a previously registered search.

        Raises:
            UnknownSearchError: If ``name`` was never registered

        """
        engine = self._engine("select_search")
        if name not in self._searches:
            raise UnknownSearchError(name, self.searches)
        engine.set_search(name)
        logger.debug(f"Search selected: {name}")

    def current_search(self) -> str:
        """Name of the active search."""
        return self._engine("current_search").current_search()

    def is_speech_active(self) -> bool:
        """Whether the most recently processed chunk contained speech."""
        engine = self._engine("is_speech_active")
        if self._samples_processed == 0:
            return False
        return engine.in_speech()


__all__ = ["DecoderSession"]
