"""Configuration helpers for the HLS transcoding service."""
from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Dict, Optional

from dotenv import find_dotenv, load_dotenv

from .utils import coerce_float, coerce_int, to_bool, to_optional_str


def _ensure_dotenv_loaded() -> None:
    dotenv_path = find_dotenv(usecwd=True)
    if dotenv_path:
        load_dotenv(dotenv_path, override=False)


_ensure_dotenv_loaded()

SERVICE_ROOT = Path(__file__).resolve().parents[2]


def _env(*names: str) -> Optional[str]:
    """Return the first non-blank value among ``names``."""

    for name in names:
        value = to_optional_str(os.getenv(name))
        if value is not None:
            return value
    return None


DEFAULT_JOB_ROOT = _env("TRANSCODER_JOB_ROOT") or "/tmp/hls-jobs"
DEFAULT_MAX_FILE_SIZE_MB = coerce_int(_env("TRANSCODER_MAX_FILE_SIZE_MB", "MAX_FILE_SIZE_MB"), 500, minimum=1)
DEFAULT_MAX_FILES_PER_JOB = coerce_int(_env("TRANSCODER_MAX_FILES_PER_JOB"), 50, minimum=1)
DEFAULT_AUTH_PASSWORD = _env("TRANSCODER_AUTH_PASSWORD", "AUTH_PASSWORD") or ""
DEFAULT_JOB_CLEANUP_MINUTES = coerce_float(
    _env("TRANSCODER_JOB_CLEANUP_MINUTES", "JOB_CLEANUP_MINUTES"),
    60.0,
    minimum=1.0,
)
DEFAULT_SWEEP_INTERVAL_SECONDS = coerce_float(_env("TRANSCODER_SWEEP_INTERVAL_SECONDS"), 300.0, minimum=1.0)
DEFAULT_SWEEP_ENABLED = to_bool(_env("TRANSCODER_SWEEP_ENABLED"), default=True)
DEFAULT_MAX_ACTIVE_JOBS = coerce_int(_env("TRANSCODER_MAX_ACTIVE_JOBS"), 2, minimum=1)
DEFAULT_MAX_QUEUED_JOBS = coerce_int(_env("TRANSCODER_MAX_QUEUED_JOBS"), 8, minimum=0)
DEFAULT_FFMPEG_BINARY = _env("TRANSCODER_FFMPEG_BINARY", "FFMPEG_BINARY") or "ffmpeg"
DEFAULT_SEGMENT_DURATION = coerce_int(_env("TRANSCODER_SEGMENT_DURATION"), 10, minimum=1)
DEFAULT_QUALITY_LADDER = _env("TRANSCODER_QUALITY_LADDER") or "64k,128k,256k"
DEFAULT_SYNC_CLEANUP_DELAY_SECONDS = coerce_float(_env("TRANSCODER_SYNC_CLEANUP_DELAY_SECONDS"), 1.0, minimum=0.0)
DEFAULT_CORS_ORIGIN = _env("TRANSCODER_CORS_ORIGIN") or "*"


def build_default_config() -> Dict[str, Any]:
    """Return the base configuration mapping for the service."""

    cfg: Dict[str, Any] = {
        "TRANSCODER_JOB_ROOT": DEFAULT_JOB_ROOT,
        "TRANSCODER_MAX_FILE_SIZE_MB": DEFAULT_MAX_FILE_SIZE_MB,
        "TRANSCODER_MAX_FILES_PER_JOB": DEFAULT_MAX_FILES_PER_JOB,
        "TRANSCODER_AUTH_PASSWORD": DEFAULT_AUTH_PASSWORD,
        "TRANSCODER_JOB_CLEANUP_MINUTES": DEFAULT_JOB_CLEANUP_MINUTES,
        "TRANSCODER_SWEEP_INTERVAL_SECONDS": DEFAULT_SWEEP_INTERVAL_SECONDS,
        "TRANSCODER_SWEEP_ENABLED": DEFAULT_SWEEP_ENABLED,
        "TRANSCODER_MAX_ACTIVE_JOBS": DEFAULT_MAX_ACTIVE_JOBS,
        "TRANSCODER_MAX_QUEUED_JOBS": DEFAULT_MAX_QUEUED_JOBS,
        "TRANSCODER_FFMPEG_BINARY": DEFAULT_FFMPEG_BINARY,
        "TRANSCODER_SEGMENT_DURATION": DEFAULT_SEGMENT_DURATION,
        "TRANSCODER_QUALITY_LADDER": DEFAULT_QUALITY_LADDER,
        "TRANSCODER_SYNC_CLEANUP_DELAY_SECONDS": DEFAULT_SYNC_CLEANUP_DELAY_SECONDS,
        "TRANSCODER_CORS_ORIGIN": DEFAULT_CORS_ORIGIN,
    }
    return cfg


__all__ = ["SERVICE_ROOT", "build_default_config"]
