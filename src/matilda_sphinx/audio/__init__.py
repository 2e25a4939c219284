"""Audio helpers for feeding decoder sessions."""

from .conversion import as_pcm16_bytes, float32_to_int16, int16_to_float32, iter_chunks, read_wav, sample_count

__all__ = ["as_pcm16_bytes", "float32_to_int16", "int16_to_float32", "iter_chunks", "read_wav", "sample_count"]
