"""Logging setup for Matilda Sphinx.

Records pass through a queue to a listener thread that owns the real sinks: a
rotating file under the Matilda log directory and, optionally, stderr. Stdout
is left to transcripts and JSON output. Engine diagnostics are not routed
here; they go to the per-session log file handed to the decoder.
"""

import atexit
import logging
import os
import sys
import threading
from logging.handlers import QueueHandler, QueueListener, RotatingFileHandler
from pathlib import Path
from queue import SimpleQueue

DEFAULT_LOG_FILENAME = "matilda-sphinx.log"
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

_lock = threading.Lock()
_queue: SimpleQueue | None = None
_listener: QueueListener | None = None


def _env_flag(name: str) -> bool:
    return os.environ.get(name, "").strip().lower() in {"1", "true", "yes"}


def _env_int(name: str, default: int) -> int:
    try:
        return int(os.environ.get(name, str(default)))
    except ValueError:
        return default


def log_file_path() -> Path:
    """Rotating log file location: $MATILDA_LOG_DIR or ~/.matilda/logs."""
    log_dir = os.environ.get("MATILDA_LOG_DIR") or Path.home() / ".matilda" / "logs"
    return Path(log_dir) / os.environ.get("MATILDA_SPHINX_LOG_FILE", DEFAULT_LOG_FILENAME)


def _sinks(level: int, include_console: bool, include_file: bool) -> list[logging.Handler]:
    sinks: list[logging.Handler] = []
    if include_file:
        path = log_file_path()
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            sinks.append(
                RotatingFileHandler(
                    path,
                    maxBytes=_env_int("MATILDA_LOG_MAX_BYTES", 10 * 1024 * 1024),
                    backupCount=_env_int("MATILDA_LOG_BACKUP_COUNT", 5),
                )
            )
        except OSError:
            # Read-only home or log dir: carry on without the file sink
            pass
    if include_console:
        sinks.append(logging.StreamHandler(sys.stderr))

    formatter = logging.Formatter(LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")
    for sink in sinks:
        sink.setLevel(level)
        sink.setFormatter(formatter)
    return sinks


def _start_listener(level: int, include_console: bool, include_file: bool) -> SimpleQueue | None:
    global _queue, _listener
    with _lock:
        if _listener is None:
            sinks = _sinks(level, include_console, include_file)
            if not sinks:
                return None
            _queue = SimpleQueue()
            _listener = QueueListener(_queue, *sinks, respect_handler_level=True)
            _listener.start()
        return _queue


def shutdown_logging() -> None:
    """Flush queued records and stop the listener thread."""
    global _queue, _listener
    with _lock:
        if _listener is not None:
            _listener.stop()
        _listener = None
        _queue = None


atexit.register(shutdown_logging)


def setup_logging(
    module_name: str,
    log_level: str = "INFO",
    include_console: bool | None = None,
    include_file: bool = True,
) -> logging.Logger:
    """Attach the shared queue sink to a logger.

    Args:
        module_name: Logger name, usually the package name
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        include_console: Also log to stderr. None defers to
            MATILDA_SPHINX_CONSOLE_LOGS ("1"/"true"/"yes" enables).
        include_file: Log to the rotating file sink

    Returns:
        Configured logger instance

    """
    logger = logging.getLogger(module_name)
    if logger.handlers:
        return logger

    level = getattr(logging, log_level.upper())
    logger.setLevel(level)
    logger.propagate = False
    if include_console is None:
        include_console = _env_flag("MATILDA_SPHINX_CONSOLE_LOGS")

    queue = _start_listener(level, include_console, include_file)
    if queue is None:
        logger.addHandler(logging.NullHandler())
    else:
        handler = QueueHandler(queue)
        handler.setLevel(level)
        logger.addHandler(handler)
    return logger


__all__ = ["setup_logging", "shutdown_logging", "log_file_path", "DEFAULT_LOG_FILENAME"]
