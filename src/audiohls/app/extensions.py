"""Extension wiring for the transcoding Flask application."""
from __future__ import annotations

import atexit
import logging
from http import HTTPStatus
from pathlib import Path

from flask import Flask, Response, jsonify, request
from werkzeug.exceptions import RequestEntityTooLarge

from ..engine import ExpirySweeper, JobOrchestrator, JobStore
from ..routes import api_bp
from ..transcoder import ArchiveAssembler, EncoderSettings, HlsOptions, PackageBuilder, parse_quality_ladder
from ..utils import to_bool

LOGGER = logging.getLogger(__name__)


def build_encoder_settings(app: Flask) -> EncoderSettings:
    return EncoderSettings(
        ffmpeg_binary=str(app.config.get("TRANSCODER_FFMPEG_BINARY") or "ffmpeg"),
        hls=HlsOptions(segment_duration=int(app.config.get("TRANSCODER_SEGMENT_DURATION", 10))),
        ladder=parse_quality_ladder(app.config.get("TRANSCODER_QUALITY_LADDER") or "64k,128k,256k"),
    )


def init_job_store(app: Flask, job_root: Path) -> JobStore:
    store = JobStore(job_root)
    app.extensions["transcode_job_store"] = store
    return store


def init_orchestrator(app: Flask, store: JobStore) -> JobOrchestrator:
    settings = build_encoder_settings(app)
    orchestrator = JobOrchestrator(
        store=store,
        builder=PackageBuilder(settings),
        archiver=ArchiveAssembler(),
        max_active_jobs=int(app.config.get("TRANSCODER_MAX_ACTIVE_JOBS", 2)),
        max_queued_jobs=int(app.config.get("TRANSCODER_MAX_QUEUED_JOBS", 8)),
    )
    app.extensions["transcode_orchestrator"] = orchestrator
    LOGGER.info("Encoder settings: %s", settings.describe())
    return orchestrator


def init_sweeper(app: Flask, store: JobStore) -> ExpirySweeper:
    sweeper = ExpirySweeper(
        store,
        max_age_minutes=float(app.config.get("TRANSCODER_JOB_CLEANUP_MINUTES", 60)),
        interval_seconds=float(app.config.get("TRANSCODER_SWEEP_INTERVAL_SECONDS", 300)),
    )
    app.extensions["transcode_sweeper"] = sweeper
    if to_bool(app.config.get("TRANSCODER_SWEEP_ENABLED"), default=True):
        sweeper.start()
        atexit.register(sweeper.stop)
    return sweeper


def register_blueprints(app: Flask) -> None:
    app.register_blueprint(api_bp)


def register_error_handlers(app: Flask) -> None:
    @app.errorhandler(RequestEntityTooLarge)
    def _request_too_large(_exc: RequestEntityTooLarge):
        limit = app.config.get("TRANSCODER_MAX_FILE_SIZE_MB")
        return jsonify({"error": f"File too large. Maximum size is {limit}MB"}), HTTPStatus.BAD_REQUEST


def configure_cors(app: Flask, cors_origin: str | None) -> None:
    allowed_default = cors_origin or "*"

    @app.after_request
    def add_cors_headers(response: Response) -> Response:
        origin = request.headers.get("Origin")
        allowed_origin = allowed_default
        if allowed_default == "*" and origin:
            allowed_origin = origin
        response.headers.setdefault("Access-Control-Allow-Origin", allowed_origin)
        response.headers.setdefault("Access-Control-Allow-Headers", "Content-Type")
        response.headers.setdefault("Access-Control-Allow-Methods", "GET,POST,DELETE,OPTIONS")
        if origin:
            response.headers.add("Vary", "Origin")
        return response


__all__ = [
    "build_encoder_settings",
    "configure_cors",
    "init_job_store",
    "init_orchestrator",
    "init_sweeper",
    "register_blueprints",
    "register_error_handlers",
]
