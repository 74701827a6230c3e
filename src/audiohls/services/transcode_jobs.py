"""Application-facing helpers that drive the job orchestrator."""
from __future__ import annotations

import logging
import shutil
from pathlib import Path
from typing import Any, Iterable, Mapping, Optional

from flask import Flask, Request
from werkzeug.datastructures import FileStorage

from ..engine import ExpirySweeper, Job, JobOrchestrator, JobStore, SyncPackage
from ..logging_config import current_log_file
from .auth import password_required, require_password
from .uploads import stage_uploads

LOGGER = logging.getLogger(__name__)


class ArchiveUnavailable(RuntimeError):
    """Raised when a job exists but has no downloadable archive."""

    def __init__(self, job: Job, message: str) -> None:
        self.job = job
        super().__init__(message)


class SyncTranscodeFailed(RuntimeError):
    """Raised when a synchronous transcode fails after its job was created."""

    def __init__(self, job_id: str, cause: BaseException) -> None:
        self.job_id = job_id
        self.cause = cause
        super().__init__(str(cause) or "Transcoding failed")


class TranscodeJobService:
    """Bridge HTTP requests onto the orchestrator and job store."""

    def __init__(self, app: Flask) -> None:
        orchestrator = app.extensions.get("transcode_orchestrator")
        if not isinstance(orchestrator, JobOrchestrator):
            raise RuntimeError("Job orchestrator not initialised on Flask app.")
        self._app = app
        self._orchestrator = orchestrator

    @property
    def app(self) -> Flask:
        return self._app

    @property
    def orchestrator(self) -> JobOrchestrator:
        return self._orchestrator

    @property
    def store(self) -> JobStore:
        return self._orchestrator.store

    # ------------------------------------------------------------------
    # Request guards
    # ------------------------------------------------------------------
    def require_password(self, request: Request):
        return require_password(self._app, request)

    # ------------------------------------------------------------------
    # Info helpers
    # ------------------------------------------------------------------
    def max_file_size_bytes(self) -> int:
        return int(self._app.config.get("TRANSCODER_MAX_FILE_SIZE_MB", 500)) * 1024 * 1024

    def max_files_per_job(self) -> int:
        return int(self._app.config.get("TRANSCODER_MAX_FILES_PER_JOB", 50))

    def info_payload(self) -> Mapping[str, Any]:
        settings = self._orchestrator.builder.settings
        sweeper = self._app.extensions.get("transcode_sweeper")
        log_path = current_log_file()
        return {
            "max_file_size_mb": int(self._app.config.get("TRANSCODER_MAX_FILE_SIZE_MB", 500)),
            "max_files_per_job": self.max_files_per_job(),
            "password_required": password_required(self._app),
            "hls_config": settings.describe(),
            "expiry": sweeper.describe() if isinstance(sweeper, ExpirySweeper) else None,
            "capacity": self._orchestrator.capacity,
            "tracked_jobs": len(self.store),
            "log_file": str(log_path) if log_path else None,
        }

    # ------------------------------------------------------------------
    # Submission
    # ------------------------------------------------------------------
    def submit(self, storages: Iterable[FileStorage]) -> Job:
        """Stage the uploads and start an asynchronous job."""

        job_id = self._orchestrator.new_job_id()
        uploads_dir = self._orchestrator.uploads_dir(job_id)
        try:
            sources = stage_uploads(storages, uploads_dir, max_file_size=self.max_file_size_bytes())
            return self._orchestrator.submit(job_id, sources)
        except Exception:
            self._discard_unadmitted(job_id)
            raise

    def transcode_sync(self, storage: Optional[FileStorage]) -> SyncPackage:
        """Transcode one upload and return its package inline.

        The job directory is always scheduled for removal after the
        configured grace delay, whether or not the transcode succeeded.
        """

        job_id = self._orchestrator.new_job_id()
        uploads_dir = self._orchestrator.uploads_dir(job_id)
        try:
            sources = stage_uploads([storage] if storage else [], uploads_dir, max_file_size=self.max_file_size_bytes())
        except Exception:
            self._discard_unadmitted(job_id)
            raise

        try:
            package = self._orchestrator.run_sync(job_id, sources[0])
        except Exception as exc:
            if self.store.exists(job_id):
                self._schedule_cleanup(job_id)
                raise SyncTranscodeFailed(job_id, exc) from exc
            self._discard_unadmitted(job_id)
            raise
        self._schedule_cleanup(job_id)
        return package

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------
    def status(self, job_id: str) -> Job:
        return self.store.require(job_id)

    def archive_for(self, job_id: str) -> tuple[Job, Path]:
        """Return the job and its archive path, or raise if not downloadable."""

        job = self.store.require(job_id)
        if not job.status.successful:
            raise ArchiveUnavailable(job, "Job not yet completed")
        if not job.archive_available or job.archive_path is None:
            raise ArchiveUnavailable(job, "ZIP file not found")
        return job, Path(job.archive_path)

    def delete(self, job_id: str) -> bool:
        return self._orchestrator.delete(job_id)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _schedule_cleanup(self, job_id: str) -> None:
        delay = float(self._app.config.get("TRANSCODER_SYNC_CLEANUP_DELAY_SECONDS", 1.0))
        self._orchestrator.schedule_cleanup(job_id, delay)

    def _discard_unadmitted(self, job_id: str) -> None:
        # The job never reached the store, so only its staging directory exists.
        if self.store.exists(job_id):
            return
        job_dir = self._orchestrator.job_dir(job_id)
        if job_dir.exists():
            LOGGER.info("[Job %s] Removing staged uploads of rejected submission", job_id)
            shutil.rmtree(job_dir, ignore_errors=True)


def init_job_services(app: Flask) -> TranscodeJobService:
    service = app.extensions.get("transcode_job_service")
    if isinstance(service, TranscodeJobService):
        return service
    service = TranscodeJobService(app)
    app.extensions["transcode_job_service"] = service
    return service


def get_job_service(app: Flask) -> TranscodeJobService:
    service = app.extensions.get("transcode_job_service")
    if isinstance(service, TranscodeJobService):
        return service
    return init_job_services(app)


__all__ = [
    "ArchiveUnavailable",
    "SyncTranscodeFailed",
    "TranscodeJobService",
    "get_job_service",
    "init_job_services",
]
