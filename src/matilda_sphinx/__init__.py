"""MATILDA SPHINX - streaming decoding sessions over the PocketSphinx engine."""

from importlib import import_module, metadata
from pathlib import Path
import tomllib
from typing import TYPE_CHECKING


def _get_version() -> str:
    try:
        return metadata.version("goobits-matilda-sphinx")
    except metadata.PackageNotFoundError:
        pass

    try:
        pyproject_path = Path(__file__).resolve().parents[2] / "pyproject.toml"
        with open(pyproject_path, "rb") as f:
            data = tomllib.load(f)
        return str(data["project"]["version"])
    except (OSError, KeyError, tomllib.TOMLDecodeError):
        return "unknown"


__version__ = _get_version()

if TYPE_CHECKING:
    from .core.config import ConfigLoader, get_config
    from .decoder import (
        ConstructionError,
        DecoderError,
        DecoderSession,
        LifecycleError,
        NoHypothesisError,
        ProcessingError,
        Result,
        SessionState,
    )
    from .transcription import TranscriptionResult, segment_stream, transcribe_file, transcribe_samples

_LAZY_EXPORTS = {
    "DecoderSession": (".decoder", "DecoderSession"),
    "Result": (".decoder", "Result"),
    "SessionState": (".decoder", "SessionState"),
    "DecoderError": (".decoder", "DecoderError"),
    "ConstructionError": (".decoder", "ConstructionError"),
    "LifecycleError": (".decoder", "LifecycleError"),
    "ProcessingError": (".decoder", "ProcessingError"),
    "NoHypothesisError": (".decoder", "NoHypothesisError"),
    "ConfigLoader": (".core.config", "ConfigLoader"),
    "get_config": (".core.config", "get_config"),
    "TranscriptionResult": (".transcription", "TranscriptionResult"),
    "transcribe_samples": (".transcription", "transcribe_samples"),
    "transcribe_file": (".transcription", "transcribe_file"),
    "segment_stream": (".transcription", "segment_stream"),
}

__all__ = ["__version__", *_LAZY_EXPORTS]


def __getattr__(name):
    if name not in _LAZY_EXPORTS:
        raise AttributeError(f"module {__name__!r} has no attribute {name!r}")

    module_name, attr_name = _LAZY_EXPORTS[name]
    module = import_module(module_name, __name__)
    value = getattr(module, attr_name)
    globals()[name] = value
    return value
