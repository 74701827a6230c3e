"""Service helpers for the transcoding runtime."""
from __future__ import annotations

from .auth import PASSWORD_HEADER, password_required, require_password
from .transcode_jobs import (
    ArchiveUnavailable,
    SyncTranscodeFailed,
    TranscodeJobService,
    get_job_service,
    init_job_services,
)
from .uploads import UploadRejected, stage_uploads

__all__ = [
    "ArchiveUnavailable",
    "PASSWORD_HEADER",
    "SyncTranscodeFailed",
    "TranscodeJobService",
    "UploadRejected",
    "get_job_service",
    "init_job_services",
    "password_required",
    "require_password",
    "stage_uploads",
]
