"""
Centralized rotating file logging for kd_server.

A RotatingFileHandler always writes DEBUG and above to a file so that filter
fallbacks, best-effort claim cleanup failures and dropped events can be
diagnosed post-mortem. The file location is the first writable candidate of:

1. KD_LOG_FILE
2. log_dir argument, then KD_LOG_DIR
3. the package directory
4. ~/.kd_server/logs/
5. <tmp>/kd_server/logs/

Usage (call once during app startup, before creating the FastAPI app):

    from kd_server.app.logging_setup import initialize_from_env

    log_path = initialize_from_env(service_name="kd_server")

Environment variables (optional):
- KD_LOG_FILE: Absolute path to the desired log file.
- KD_LOG_DIR:  Directory where the log file should be created.
- KD_LOG_MAX_BYTES: Max file size before rotate (default: 10485760 = 10MB).
- KD_LOG_BACKUP_COUNT: Number of rotated files to keep (default: 5).
- KD_LOG_LEVEL: Base log level for app logs (default: INFO).
- LOG_LEVEL: Fallback for KD_LOG_LEVEL when unset.
"""

from __future__ import annotations

import logging
import logging.handlers
import os
import sys
import tempfile
from pathlib import Path
from typing import List, Optional, Union

__all__ = [
    "initialize_from_env",
    "setup_logging",
    "configure_third_party_loggers",
]

_DEFAULT_MAX_BYTES = 10 * 1024 * 1024
_DEFAULT_BACKUP_COUNT = 5
_FORMAT_FILE = "%(asctime)s %(levelname)s [kd_server] %(name)s pid=%(process)d %(filename)s:%(lineno)d - %(message)s"
_FORMAT_CONSOLE = "%(asctime)s %(levelname)s [kd_server] %(message)s"
_DATEFMT = "%Y-%m-%d %H:%M:%S"

_ATTACHED_LOG_PATHS: set[str] = set()


def _coerce_level(level: Optional[Union[int, str]], default: int = logging.INFO) -> int:
    if isinstance(level, int):
        return level
    if isinstance(level, str):
        return getattr(logging, level.strip().upper(), default)
    return default


def _candidate_paths(service_name: str, log_dir: Optional[Union[str, Path]]) -> List[Path]:
    file_name = f"{service_name}.log"
    candidates: List[Path] = []

    env_file = os.getenv("KD_LOG_FILE")
    if env_file:
        candidates.append(Path(env_file).expanduser())
    if log_dir:
        candidates.append(Path(log_dir).expanduser() / file_name)
    env_dir = os.getenv("KD_LOG_DIR")
    if env_dir:
        candidates.append(Path(env_dir).expanduser() / file_name)

    candidates.append(Path(__file__).resolve().parents[1] / file_name)
    candidates.append(Path.home() / ".kd_server" / "logs" / file_name)
    candidates.append(Path(tempfile.gettempdir()) / "kd_server" / "logs" / file_name)
    return candidates


def _pick_log_path(service_name: str, log_dir: Optional[Union[str, Path]]) -> Path:
    """
    Choose the first writable path. Raises RuntimeError if none are writable.
    """
    attempts: List[str] = []
    for candidate in _candidate_paths(service_name, log_dir):
        try:
            candidate.parent.mkdir(parents=True, exist_ok=True)
            with open(candidate, mode="a", encoding="utf-8"):
                pass
            return candidate
        except OSError as e:
            attempts.append(f"{candidate} -> {e.__class__.__name__}: {e}")

    reasons = "; ".join(attempts) or "no candidates were attempted"
    raise RuntimeError(f"Failed to initialize kd_server file logging (no writable paths). Attempts: {reasons}")


def configure_third_party_loggers(base_level: int) -> None:
    """
    Tame noisy third-party libraries while allowing escalation via DEBUG when needed.
    """
    lib_level = logging.INFO if base_level <= logging.DEBUG else logging.WARNING
    for name in ("uvicorn", "uvicorn.access", "uvicorn.error", "fastapi", "httpx", "kubernetes"):
        logging.getLogger(name).setLevel(lib_level)

    # The kubernetes client logs every request body through urllib3 at DEBUG
    for name in ("urllib3", "urllib3.connectionpool", "asyncio"):
        logging.getLogger(name).setLevel(logging.WARNING)


def setup_logging(
    service_name: str = "kd_server",
    *,
    level: Optional[Union[int, str]] = None,
    log_dir: Optional[Union[str, Path]] = None,
    max_bytes: Optional[int] = None,
    backup_count: Optional[int] = None,
    add_console: bool = False,
) -> Path:
    """
    Configure root logging with a rotating file handler that always writes to disk.

    Returns:
        Path to the active log file.

    Raises:
        RuntimeError if no writable log path could be created.
    """
    base_level = _coerce_level(
        level if level is not None else (os.getenv("KD_LOG_LEVEL") or os.getenv("LOG_LEVEL") or "INFO"),
    )
    bytes_limit = int(os.getenv("KD_LOG_MAX_BYTES", str(max_bytes if max_bytes is not None else _DEFAULT_MAX_BYTES)))
    keep_files = int(os.getenv("KD_LOG_BACKUP_COUNT", str(backup_count if backup_count is not None else _DEFAULT_BACKUP_COUNT)))

    log_path = _pick_log_path(service_name, log_dir)

    root = logging.getLogger()
    root.setLevel(logging.DEBUG)

    target_key = str(log_path.resolve())
    already_attached = any(
        getattr(h, "baseFilename", None) and str(Path(h.baseFilename).resolve()) == target_key
        for h in root.handlers
    )
    if not already_attached and target_key not in _ATTACHED_LOG_PATHS:
        file_handler = logging.handlers.RotatingFileHandler(
            filename=log_path,
            maxBytes=max(1, bytes_limit),
            backupCount=max(1, keep_files),
            encoding="utf-8",
        )
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(_FORMAT_FILE, datefmt=_DATEFMT))
        root.addHandler(file_handler)
        _ATTACHED_LOG_PATHS.add(target_key)

    if add_console:
        has_console = any(
            isinstance(h, logging.StreamHandler) and getattr(h, "stream", None) in (sys.stdout, sys.stderr)
            for h in root.handlers
        )
        if not has_console:
            ch = logging.StreamHandler(stream=sys.stdout)
            ch.setLevel(base_level)
            ch.setFormatter(logging.Formatter(_FORMAT_CONSOLE, datefmt=_DATEFMT))
            root.addHandler(ch)

    logging.getLogger("kd_server").setLevel(base_level)
    configure_third_party_loggers(base_level)

    logging.getLogger("kd_server").info(
        "Logging initialized: file=%s level=%s backup=%s",
        str(log_path),
        logging.getLevelName(base_level),
        keep_files,
    )
    return log_path


def initialize_from_env(service_name: str = "kd_server") -> Path:
    """
    Convenience initializer for app startup; always attaches a console handler.
    """
    return setup_logging(service_name=service_name, add_console=True)
