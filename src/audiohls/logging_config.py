"""Process-wide logging setup for the HLS transcoding service."""
from __future__ import annotations

import logging
import os
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional

from .config import SERVICE_ROOT
from .utils import coerce_int

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
DEFAULT_LOG_RETENTION = 10

_log_file: Optional[Path] = None


def _resolve_log_dir(log_dir: Optional[Path]) -> Path:
    if log_dir is not None:
        return Path(log_dir)
    env_dir = os.getenv("TRANSCODER_SERVICE_LOG_DIR")
    return Path(env_dir).expanduser() if env_dir else SERVICE_ROOT / "logs"


def _resolve_level() -> int:
    raw = (os.getenv("TRANSCODER_LOG_LEVEL") or "INFO").strip().upper()
    level = logging.getLevelName(raw)
    return level if isinstance(level, int) else logging.INFO


def prune_log_files(log_directory: Path, prefix: str, keep: int) -> List[Path]:
    """Delete all but the ``keep`` newest ``<prefix>-*.log`` files."""

    candidates = sorted(log_directory.glob(f"{prefix}-*.log"), reverse=True)
    removed: List[Path] = []
    for stale in candidates[max(keep, 1):]:
        try:
            stale.unlink()
        except OSError:
            continue
        removed.append(stale)
    return removed


def configure_logging(prefix: str = "audiohls", *, log_dir: Optional[Path] = None) -> Path:
    """Send root logging to a timestamped file and stdout, once per process."""

    global _log_file
    if _log_file is not None:
        return _log_file

    log_directory = _resolve_log_dir(log_dir)
    log_directory.mkdir(parents=True, exist_ok=True)
    stamp = datetime.now(timezone.utc).strftime("%Y%m%d-%H%M%S")
    log_path = log_directory / f"{prefix}-{stamp}.log"

    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=LOG_DATE_FORMAT)
    handlers: List[logging.Handler] = [
        logging.FileHandler(log_path, encoding="utf-8"),
        logging.StreamHandler(sys.stdout),
    ]
    root = logging.getLogger()
    for existing in list(root.handlers):
        root.removeHandler(existing)
    for handler in handlers:
        handler.setFormatter(formatter)
        root.addHandler(handler)
    root.setLevel(_resolve_level())

    # Werkzeug logs every request at INFO; keep access lines out of job logs.
    logging.getLogger("werkzeug").setLevel(logging.WARNING)

    keep = coerce_int(os.getenv("TRANSCODER_LOG_RETENTION"), DEFAULT_LOG_RETENTION)
    removed = prune_log_files(log_directory, prefix, keep)

    _log_file = log_path
    root.info("Logging to %s", log_path)
    if removed:
        root.info("Pruned %d old log file(s) from %s", len(removed), log_directory)
    return log_path


def current_log_file() -> Optional[Path]:
    """Return the log file chosen by :func:`configure_logging`, if any."""

    return _log_file


__all__ = ["configure_logging", "current_log_file", "prune_log_files"]
