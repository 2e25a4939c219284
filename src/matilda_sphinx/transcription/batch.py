"""Whole-buffer and whole-file transcription on top of a DecoderSession."""

import logging
from dataclasses import dataclass, field
from pathlib import Path

import numpy as np

from ..audio.conversion import read_wav
from ..decoder.session import AudioInput, DecoderSession
from ..decoder.types import NoHypothesisError, Result

logger = logging.getLogger(__name__)


@dataclass
class TranscriptionResult:
    """Outcome of transcribing one buffer or file.

    ``text`` is empty when the engine recognised nothing (e.g. silence).
    """

    text: str = ""
    score: float = 0
    prob: float = 0
    alternatives: list[Result] = field(default_factory=list)
    audio_path: Path | None = None
    duration_seconds: float = 0.0

    @property
    def is_empty(self) -> bool:
        return not self.text

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "text": self.text,
            "score": self.score,
            "prob": self.prob,
            "alternatives": [alt.to_dict() for alt in self.alternatives],
            "audio_path": str(self.audio_path) if self.audio_path else None,
            "duration_seconds": self.duration_seconds,
        }


def _duration(samples: AudioInput, sample_rate: float) -> float:
    if isinstance(samples, np.ndarray):
        count = samples.size
    else:
        count = len(samples) // 2
    return count / sample_rate if sample_rate > 0 else 0.0


def transcribe_samples(session: DecoderSession, samples: AudioInput, nbest: int = 1) -> TranscriptionResult:
    """Decode a complete utterance held in memory.

    Args:
        session: An IDLE session
        samples: Mono PCM16 audio (numpy array or bytes)
        nbest: Total number of results wanted, best hypothesis included

    Returns:
        TranscriptionResult; empty when nothing was recognised

    """
    duration = _duration(samples, session.sample_rate)
    try:
        results = session.process_full_utterance(samples, max(nbest, 1))
    except NoHypothesisError:
        logger.info(f"No hypothesis for {duration:.2f}s of audio")
        return TranscriptionResult(duration_seconds=duration)

    best, alternatives = results[0], results[1:]
    logger.info(f"Transcribed {duration:.2f}s of audio: {best.text!r} (score={best.score})")
    return TranscriptionResult(
        text=best.text,
        score=best.score,
        prob=best.prob,
        alternatives=alternatives,
        duration_seconds=duration,
    )


def transcribe_file(session: DecoderSession, audio_path: str | Path, nbest: int = 1) -> TranscriptionResult:
    """Decode a mono 16-bit WAV file as a single utterance.

    Raises:
        FileNotFoundError: If the file does not exist
        ValueError: If the file is not mono PCM16 at the session's sample rate

    """
    audio_path = Path(audio_path)
    samples, sample_rate = read_wav(audio_path)
    if sample_rate != int(session.sample_rate):
        raise ValueError(f"Session configured for {session.sample_rate:g} Hz but {audio_path} uses {sample_rate} Hz")

    result = transcribe_samples(session, samples, nbest=nbest)
    result.audio_path = audio_path
    return result


__all__ = ["TranscriptionResult", "transcribe_samples", "transcribe_file"]
