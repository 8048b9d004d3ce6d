"""Centralized logging configuration for the indexing engine.

Everything logs under the ``ctxgraph`` namespace. Chatty dependencies
(file observer, model download stack) are held at WARNING unless the
package itself runs at DEBUG.
"""

import logging
import os
from typing import Optional

_LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
_ROOT_LOGGER = "ctxgraph"
_NOISY_LOGGERS = ("watchdog", "sentence_transformers", "transformers", "huggingface_hub", "urllib3", "httpx", "faiss")
_configured = False


def _resolve_level(level: str) -> int:
    env_level = os.getenv("CTXGRAPH_LOG_LEVEL")
    resolved = logging.getLevelName((env_level or level or "INFO").upper())
    return resolved if isinstance(resolved, int) else logging.INFO


def _build_handlers(log_file: Optional[str]) -> list[logging.Handler]:
    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if log_file:
        try:
            handlers.append(logging.FileHandler(log_file, encoding="utf-8"))
        except OSError:
            logging.getLogger(_ROOT_LOGGER).warning(
                "Could not open log file %s, logging to stderr only", log_file
            )
    return handlers


def setup_logging(
    level: str = "INFO",
    log_file: Optional[str] = None,
    force: bool = False,
) -> None:
    """Configure the package logger with level and output destination.

    CTXGRAPH_LOG_LEVEL and CTXGRAPH_LOG_FILE override the arguments.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR)
        log_file: Optional path to log file. If None, logs to stderr only.
        force: Reconfigure even if logging was already set up
    """
    global _configured
    if _configured and not force:
        return

    log_level = _resolve_level(level)
    env_file = os.getenv("CTXGRAPH_LOG_FILE")
    if env_file is not None:
        log_file = env_file or None

    package_logger = logging.getLogger(_ROOT_LOGGER)
    package_logger.setLevel(log_level)
    for handler in list(package_logger.handlers):
        package_logger.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(_LOG_FORMAT)
    for handler in _build_handlers(log_file):
        handler.setLevel(log_level)
        handler.setFormatter(formatter)
        package_logger.addHandler(handler)

    dependency_level = logging.DEBUG if log_level <= logging.DEBUG else logging.WARNING
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(dependency_level)

    _configured = True


def get_logger(name: str) -> logging.Logger:
    """Return a module-scoped logger under the ``ctxgraph`` namespace.

    Args:
        name: Logger name, typically __name__ of the calling module.
    """
    if name == _ROOT_LOGGER or name.startswith(_ROOT_LOGGER + "."):
        return logging.getLogger(name)
    return logging.getLogger(f"{_ROOT_LOGGER}.{name}")
