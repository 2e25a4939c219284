"""Audio conversion helpers for PCM16 decoder input."""

import wave
from collections.abc import Iterator
from pathlib import Path
from typing import cast

import numpy as np

BYTES_PER_SAMPLE = 2


def int16_to_float32(audio: np.ndarray) -> np.ndarray:
    """Convert int16 PCM to float32 in [-1.0, 1.0]."""
    if audio.dtype == np.int16:
        return audio.astype(np.float32) / 32768.0
    return audio.astype(np.float32)


def float32_to_int16(audio: np.ndarray) -> np.ndarray:
    """Convert float PCM in [-1.0, 1.0] to int16."""
    if audio.dtype == np.int16:
        return audio
    audio_f32 = audio.astype(np.float32)
    return cast("np.ndarray", np.clip(audio_f32 * 32768.0, -32768, 32767).astype(np.int16))


def as_pcm16_bytes(samples: "np.ndarray | bytes | bytearray | memoryview") -> bytes:
    """Coerce mono audio into little-endian 16-bit PCM bytes.

    Raw buffers are taken as PCM16 already, so their length must be even.
    Float arrays are scaled from [-1.0, 1.0]; other integer arrays are cast.

    Raises:
        ValueError: If the input is empty, has an odd byte length or more than
            one channel.

    """
    if isinstance(samples, (bytes, bytearray, memoryview)):
        data = bytes(samples)
        if not data:
            raise ValueError("Audio buffer is empty")
        if len(data) % BYTES_PER_SAMPLE:
            raise ValueError(f"PCM16 buffer length must be even, got {len(data)} bytes")
        return data

    audio = np.asarray(samples)
    if audio.ndim == 2 and 1 in audio.shape:
        audio = audio.reshape(-1)
    if audio.ndim != 1:
        raise ValueError(f"Expected mono audio, got array of shape {audio.shape}")
    if audio.size == 0:
        raise ValueError("Audio buffer is empty")

    if np.issubdtype(audio.dtype, np.floating):
        audio = float32_to_int16(audio)
    elif audio.dtype != np.int16:
        audio = audio.astype(np.int16)
    return cast("bytes", audio.astype("<i2", copy=False).tobytes())


def sample_count(pcm: bytes) -> int:
    """Number of PCM16 samples in a byte buffer."""
    return len(pcm) // BYTES_PER_SAMPLE


def read_wav(path: str | Path) -> tuple[np.ndarray, int]:
    """Read a mono 16-bit WAV file.

    Returns:
        (samples, sample_rate) with samples as an int16 array

    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(path)
    with wave.open(str(path), "rb") as wav_file:
        if wav_file.getsampwidth() != BYTES_PER_SAMPLE:
            raise ValueError(
                f"Expected 16-bit PCM, found sample width {wav_file.getsampwidth() * 8} bits in {path}"
            )
        if wav_file.getnchannels() != 1:
            raise ValueError(f"Expected mono audio, found {wav_file.getnchannels()} channels in {path}")
        sample_rate = wav_file.getframerate()
        frames = wav_file.readframes(wav_file.getnframes())
    return np.frombuffer(frames, dtype="<i2").astype(np.int16), sample_rate


def iter_chunks(samples: np.ndarray, chunk_samples: int) -> Iterator[np.ndarray]:
    """Split audio into consecutive chunks of at most chunk_samples."""
    if chunk_samples <= 0:
        raise ValueError("chunk_samples must be positive")
    for start in range(0, len(samples), chunk_samples):
        yield samples[start : start + chunk_samples]


__all__ = [
    "int16_to_float32",
    "float32_to_int16",
    "as_pcm16_bytes",
    "sample_count",
    "read_wav",
    "iter_chunks",
]
