"""Transcoding application factory."""
from __future__ import annotations

from typing import Any, Mapping, Optional

from flask import Flask

from .bootstrap import init_logging, load_configuration, prepare_job_root
from .extensions import (
    configure_cors,
    init_job_store,
    init_orchestrator,
    init_sweeper,
    register_blueprints,
    register_error_handlers,
)
from ..services import init_job_services


def create_app(config_overrides: Optional[Mapping[str, Any]] = None) -> Flask:
    """Create and configure the transcoding Flask application."""

    init_logging()
    app = Flask(__name__)
    load_configuration(app, config_overrides)

    job_root = prepare_job_root(app)
    store = init_job_store(app, job_root)
    init_orchestrator(app, store)
    init_sweeper(app, store)
    init_job_services(app)

    register_blueprints(app)
    register_error_handlers(app)

    cors_origin = app.config.get("TRANSCODER_CORS_ORIGIN", "*")
    configure_cors(app, cors_origin)

    return app


__all__ = ["create_app"]
