"""HTTP routes that drive the transcoding pipeline."""
from __future__ import annotations

import time
from datetime import datetime, timezone
from http import HTTPStatus

from flask import Blueprint, Response, current_app, jsonify, request, send_file

from ..engine import InvalidSubmission, JobCapacityExceeded, JobNotFound
from ..services import (
    ArchiveUnavailable,
    PASSWORD_HEADER,
    SyncTranscodeFailed,
    TranscodeJobService,
    UploadRejected,
    get_job_service,
)

api_bp = Blueprint("audiohls_api", __name__)

SYNC_PATH = "/api/transcode-sync"


def _service() -> TranscodeJobService:
    return get_job_service(current_app)


def _error(message: str, status: HTTPStatus, /, **extra):
    payload = {"error": message}
    payload.update(extra)
    return jsonify(payload), status


@api_bp.route("/health", methods=["GET"])
def health_endpoint():
    payload = {
        "status": "ok",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
    return jsonify(payload), HTTPStatus.OK


@api_bp.route("/api/info", methods=["GET"])
def info_endpoint():
    return jsonify(_service().info_payload()), HTTPStatus.OK


@api_bp.route("/transcode", methods=["POST"])
def transcode_endpoint():
    service = _service()
    denied = service.require_password(request)
    if denied is not None:
        return denied

    storages = request.files.getlist("files")
    if len(storages) > service.max_files_per_job():
        return _error(f"Too many files. Maximum is {service.max_files_per_job()}", HTTPStatus.BAD_REQUEST)

    try:
        job = service.submit(storages)
    except (UploadRejected, InvalidSubmission) as exc:
        return _error(str(exc), HTTPStatus.BAD_REQUEST)
    except JobCapacityExceeded as exc:
        return _error(str(exc), HTTPStatus.SERVICE_UNAVAILABLE)

    payload = {
        "job_id": job.job_id,
        "files": [entry.name for entry in job.files],
        "status": job.status.value,
        "message": f"Transcoding started. Poll /status/{job.job_id} for progress.",
    }
    return jsonify(payload), HTTPStatus.OK


@api_bp.route("/status/<string:job_id>", methods=["GET"])
def status_endpoint(job_id: str):
    try:
        job = _service().status(job_id)
    except JobNotFound:
        return _error("Job not found", HTTPStatus.NOT_FOUND)
    return jsonify(job.to_payload()), HTTPStatus.OK


@api_bp.route("/download/<string:job_id>", methods=["GET"])
def download_endpoint(job_id: str):
    try:
        job, archive_path = _service().archive_for(job_id)
    except JobNotFound:
        return _error("Job not found", HTTPStatus.NOT_FOUND)
    except ArchiveUnavailable as exc:
        if exc.job.status.successful:
            return _error(str(exc), HTTPStatus.NOT_FOUND)
        return _error(str(exc), HTTPStatus.BAD_REQUEST, status=exc.job.status.value)

    return send_file(
        archive_path,
        mimetype="application/zip",
        as_attachment=True,
        download_name=f"hls-{job.job_id}.zip",
    )


@api_bp.route("/job/<string:job_id>", methods=["DELETE"])
def delete_endpoint(job_id: str):
    removed = _service().delete(job_id)
    return jsonify({"success": True, "removed": removed, "message": "Job cleaned up"}), HTTPStatus.OK


@api_bp.route(SYNC_PATH, methods=["POST", "OPTIONS"])
def transcode_sync_endpoint():
    if request.method == "OPTIONS":
        return Response(status=HTTPStatus.OK)

    service = _service()
    denied = service.require_password(request)
    if denied is not None:
        return denied

    started = time.monotonic()
    try:
        package = service.transcode_sync(request.files.get("file"))
    except (UploadRejected, InvalidSubmission) as exc:
        return _error(str(exc), HTTPStatus.BAD_REQUEST)
    except JobCapacityExceeded as exc:
        return _error(str(exc), HTTPStatus.SERVICE_UNAVAILABLE)
    except SyncTranscodeFailed as exc:
        return _error(str(exc), HTTPStatus.INTERNAL_SERVER_ERROR, job_id=exc.job_id)

    duration_ms = int((time.monotonic() - started) * 1000)
    current_app.logger.info(
        "[Job %s] Sync transcode complete: %d files in %dms",
        package.job_id,
        len(package.files),
        duration_ms,
    )
    payload = {"success": True, **package.to_payload(), "transcode_duration_ms": duration_ms}
    return jsonify(payload), HTTPStatus.OK


@api_bp.after_request
def _sync_cors_headers(response: Response) -> Response:
    if request.path == SYNC_PATH:
        response.headers["Access-Control-Allow-Origin"] = "*"
        response.headers["Access-Control-Allow-Methods"] = "POST, OPTIONS"
        response.headers["Access-Control-Allow-Headers"] = f"Content-Type, {PASSWORD_HEADER}"
    return response


__all__ = ["api_bp"]
