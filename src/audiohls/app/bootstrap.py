"""Bootstrap helpers for the transcoding Flask application."""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Mapping, Optional

from flask import Flask

from ..config import build_default_config
from ..logging_config import configure_logging

LOGGER = logging.getLogger(__name__)


def init_logging() -> None:
    """Configure logging for the transcoding service."""

    configure_logging("audiohls")


def load_configuration(app: Flask, overrides: Optional[Mapping[str, Any]] = None) -> None:
    """Populate the default configuration values on the Flask app."""

    app.config.from_mapping(build_default_config())
    if overrides:
        app.config.from_mapping(dict(overrides))

    max_file_mb = int(app.config["TRANSCODER_MAX_FILE_SIZE_MB"])
    max_files = int(app.config["TRANSCODER_MAX_FILES_PER_JOB"])
    # Leave room for multipart framing on top of the per-file limit.
    if app.config.get("MAX_CONTENT_LENGTH") is None:
        app.config["MAX_CONTENT_LENGTH"] = max_file_mb * max_files * 1024 * 1024 + 1024 * 1024


def prepare_job_root(app: Flask) -> Path:
    """Ensure the job root exists and record the resolved path."""

    job_root = Path(app.config["TRANSCODER_JOB_ROOT"]).expanduser().resolve()
    job_root.mkdir(parents=True, exist_ok=True)
    app.config["TRANSCODER_JOB_ROOT"] = str(job_root)
    LOGGER.info("Job root set to %s", job_root)
    return job_root


__all__ = ["init_logging", "load_configuration", "prepare_job_root"]
