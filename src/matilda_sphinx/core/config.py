"""Configuration loader that reads from config files."""

import logging
import os
from pathlib import Path
from typing import Any

import tomllib

logger = logging.getLogger(__name__)

DEFAULT_CONFIG: dict[str, Any] = {
    "decoder": {
        "hmm": None,
        "dict": None,
        "sample_rate": 16000.0,
        "log_file": os.devnull,
        # Extra engine options passed through by name (e.g. "lm", "kws_threshold")
        "options": {},
    },
    "session": {"nbest": 5, "chunk_samples": 1024},
    "logging": {"level": "INFO", "console": False},
}


class ConfigLoader:
    """Load configuration from config files.

    Values come from the ``[sphinx]`` table of a TOML file merged over
    ``DEFAULT_CONFIG``. A handful of environment variables take precedence over
    both for the decoder model settings.
    """

    def __init__(self, config_path: str | Path | None = None) -> None:
        if config_path is None:
            config_path = self._default_config_path()

        self.config_file = str(config_path)
        config_path = Path(config_path)
        if config_path.exists():
            with open(config_path, "rb") as f:
                full_config = tomllib.load(f)
            sphinx_config = full_config.get("sphinx", {})
            logger.debug(f"Loaded configuration from {config_path}")
        else:
            sphinx_config = {}

        self._config = self._merge_dicts(DEFAULT_CONFIG, sphinx_config)

    def _default_config_path(self) -> Path:
        env_path = os.environ.get("MATILDA_CONFIG")
        if env_path:
            return Path(env_path)
        return Path.home() / ".matilda" / "config.toml"

    def _merge_dicts(self, base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
        merged = base.copy()
        for key, value in override.items():
            if key in merged and isinstance(merged[key], dict) and isinstance(value, dict):
                merged[key] = self._merge_dicts(merged[key], value)
            else:
                merged[key] = value
        return merged

    def get(self, key_path: str, default: Any = None) -> Any:
        """Get a value using dot notation (e.g., 'decoder.sample_rate')"""
        keys = key_path.split(".")
        value = self._config

        for key in keys:
            if isinstance(value, dict) and key in value:
                value = value[key]
            else:
                return default

        return value

    @property
    def hmm(self) -> str | None:
        env_hmm = os.environ.get("SPHINX_HMM")
        if env_hmm:
            return env_hmm
        value = self.get("decoder.hmm")
        return str(value) if value else None

    @property
    def dictionary(self) -> str | None:
        env_dict = os.environ.get("SPHINX_DICT")
        if env_dict:
            return env_dict
        value = self.get("decoder.dict")
        return str(value) if value else None

    @property
    def sample_rate(self) -> float:
        env_rate = os.environ.get("SPHINX_SAMPLE_RATE")
        if env_rate:
            try:
                return float(env_rate)
            except ValueError:
                logger.warning(f"Ignoring invalid SPHINX_SAMPLE_RATE={env_rate!r}")
        return float(self.get("decoder.sample_rate", 16000.0))

    @property
    def log_file(self) -> str:
        return str(self.get("decoder.log_file") or os.devnull)

    @property
    def engine_options(self) -> dict[str, Any]:
        return dict(self.get("decoder.options", {}) or {})

    @property
    def nbest(self) -> int:
        return int(self.get("session.nbest", 5))

    @property
    def chunk_samples(self) -> int:
        return int(self.get("session.chunk_samples", 1024))

    @property
    def log_level(self) -> str:
        return str(self.get("logging.level", "INFO"))

    @property
    def console_logs(self) -> bool:
        return bool(self.get("logging.console", False))

    def as_dict(self) -> dict[str, Any]:
        """Effective configuration with environment overrides applied."""
        return {
            "config_file": self.config_file,
            "decoder": {
                "hmm": self.hmm,
                "dict": self.dictionary,
                "sample_rate": self.sample_rate,
                "log_file": self.log_file,
                "options": self.engine_options,
            },
            "session": {"nbest": self.nbest, "chunk_samples": self.chunk_samples},
            "logging": {"level": self.log_level, "console": self.console_logs},
        }


# Global singleton instance
_config_loader: ConfigLoader | None = None


def get_config() -> ConfigLoader:
    """Get the global config loader instance"""
    global _config_loader
    if _config_loader is None:
        _config_loader = ConfigLoader()
    return _config_loader


def reset_config() -> None:
    """Drop the cached loader so the next get_config() re-reads the file."""
    global _config_loader
    _config_loader = None


__all__ = ["DEFAULT_CONFIG", "ConfigLoader", "get_config", "reset_config"]
