"""Decoder engine contract and the PocketSphinx adapter.

The session controller only talks to an engine through ``DecoderEngine``:
status codes for lifecycle calls, a processed count for audio, plain tuples for
hypotheses and a closable iterator for N-best lists. ``PocketSphinxEngine``
maps that contract onto ``pocketsphinx.Decoder``.
"""

import logging
import os
import threading
from collections.abc import Callable, Iterator
from dataclasses import dataclass, field
from typing import Any, Protocol

logger = logging.getLogger(__name__)

# PocketSphinx installs its log sink process-wide while a decoder initialises,
# so concurrent construction would race on it.
_ENGINE_INIT_LOCK = threading.Lock()


@dataclass(frozen=True)
class EngineOptions:
    """Options handed to an engine at construction time.

    Attributes:
        hmm: Acoustic model directory (None for the engine default)
        dictionary: Pronunciation dictionary path (None for the engine default)
        sample_rate: Audio sample rate in Hz
        log_file: Where the engine writes its own diagnostics
        extra: Additional engine options, passed through by name

    """

    hmm: str | None = None
    dictionary: str | None = None
    sample_rate: float = 16000.0
    log_file: str = os.devnull
    extra: dict[str, Any] = field(default_factory=dict)

    def to_engine_kwargs(self) -> dict[str, Any]:
        """Build PocketSphinx keyword options, leaving unset paths to the engine."""
        kwargs: dict[str, Any] = dict(self.extra)
        if self.hmm:
            kwargs["hmm"] = str(self.hmm)
        if self.dictionary:
            kwargs["dict"] = str(self.dictionary)
        kwargs["samprate"] = float(self.sample_rate)
        kwargs["logfn"] = str(self.log_file)
        return kwargs


class DecoderEngine(Protocol):
    """Interface for decoder engines driven by a DecoderSession."""

    def start_utt(self) -> int:
        """Start an utterance. Returns 0 on success, non-zero status otherwise."""
        ...

    def end_utt(self) -> int:
        """End the current utterance. Returns 0 on success."""
        ...

    def start_stream(self) -> int:
        """Start a continuous stream with an utterance open. Returns 0 on success."""
        ...

    def process_raw(self, pcm: bytes, no_search: bool, full_utt: bool) -> int:
        """Feed little-endian PCM16 audio. Returns processed count, negative on failure."""
        ...

    def hypothesis(self) -> tuple[str, float, float] | None:
        """Best hypothesis as (text, score, prob), or None."""
        ...

    def nbest(self) -> Iterator[tuple[str, float]]:
        """Iterate (text, score) alternatives, best first.

        Closing the returned iterator releases the engine iterator node.
        """
        ...

    def set_jsgf_string(self, name: str, grammar: str) -> None: ...

    def set_keyphrase(self, name: str, phrase: str) -> None: ...

    def set_search(self, name: str) -> None: ...

    def current_search(self) -> str: ...

    def in_speech(self) -> bool: ...

    def release(self) -> None: ...


EngineFactory = Callable[[EngineOptions], DecoderEngine]


def _hypothesis_fields(hyp: Any) -> tuple[str, float, float]:
    """Pull (text, score, prob) out of a ``pocketsphinx.Hypothesis``."""
    return hyp.hypstr or "", hyp.score, hyp.prob


class PocketSphinxEngine:
    """DecoderEngine backed by the ``pocketsphinx`` Python bindings."""

    def __init__(self, options: EngineOptions):
        """Initialize the PocketSphinx decoder.

        Args:
            options: Model paths, sample rate and log sink for this decoder.

        Raises:
            ImportError: If pocketsphinx is not installed.
            RuntimeError: If the decoder fails to initialise.

        """
        try:
            from pocketsphinx import Decoder
        except ImportError as e:
            raise ImportError("PocketSphinx is required for this engine. Install with: pip install pocketsphinx") from e

        self.options = options
        kwargs = options.to_engine_kwargs()
        logger.debug(f"Initialising PocketSphinx decoder with {kwargs}")
        with _ENGINE_INIT_LOCK:
            self._decoder = Decoder(**kwargs)
        if self._decoder is None:
            raise RuntimeError("PocketSphinx returned no decoder")

    def _status(self, operation: str, call: Callable[[], Any]) -> int:
        try:
            call()
        except RuntimeError as e:
            logger.debug(f"PocketSphinx {operation} rejected: {e}")
            return -1
        return 0

    def start_utt(self) -> int:
        return self._status("start_utt", self._decoder.start_utt)

    def end_utt(self) -> int:
        return self._status("end_utt", self._decoder.end_utt)

    def start_stream(self) -> int:
        # Decoder.start_stream() is deprecated since 5.0; the decoder keeps its
        # acoustic state across utterances on its own.
        return self.start_utt()

    def process_raw(self, pcm: bytes, no_search: bool, full_utt: bool) -> int:
        try:
            return self._decoder.process_raw(pcm, no_search, full_utt)
        except RuntimeError as e:
            logger.debug(f"PocketSphinx process_raw rejected: {e}")
            return -1

    def hypothesis(self) -> tuple[str, float, float] | None:
        hyp = self._decoder.hyp()
        if hyp is None:
            return None
        return _hypothesis_fields(hyp)

    def nbest(self) -> Iterator[tuple[str, float]]:
        iterator = iter(self._decoder.nbest())
        try:
            for entry in iterator:
                text, score, _ = _hypothesis_fields(entry)
                yield text, score
        finally:
            close = getattr(iterator, "close", None)
            if close is not None:
                close()
            iterator = None

    def set_jsgf_string(self, name: str, grammar: str) -> None:
        self._decoder.add_jsgf_string(name, grammar)

    def set_keyphrase(self, name: str, phrase: str) -> None:
        self._decoder.add_keyphrase(name, phrase)

    def set_search(self, name: str) -> None:
        self._decoder.activate_search(name)

    def current_search(self) -> str:
        return str(self._decoder.current_search() or "")

    def in_speech(self) -> bool:
        return bool(self._decoder.get_in_speech())

    def release(self) -> None:
        # The binding frees the native decoder when its last reference goes away
        self._decoder = None


__all__ = ["EngineOptions", "DecoderEngine", "EngineFactory", "PocketSphinxEngine"]
