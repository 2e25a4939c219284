"""Transcription drivers built on DecoderSession."""

from .batch import TranscriptionResult, transcribe_file, transcribe_samples
from .continuous import segment_stream

__all__ = ["TranscriptionResult", "transcribe_file", "transcribe_samples", "segment_stream"]
