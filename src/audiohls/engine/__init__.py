"""Engine layer for the transcoding service."""
from __future__ import annotations

from .controller import ALL_FILES_FAILED, JobOrchestrator, SyncPackage
from .errors import DuplicateJob, InvalidSubmission, JobCapacityExceeded, JobError, JobNotFound
from .job_store import JobStore, is_valid_job_id
from .models import FileEntry, FileStatus, Job, JobMode, JobStatus, SourceFile
from .sweeper import ExpirySweeper

__all__ = [
    "ALL_FILES_FAILED",
    "DuplicateJob",
    "ExpirySweeper",
    "FileEntry",
    "FileStatus",
    "InvalidSubmission",
    "Job",
    "JobCapacityExceeded",
    "JobError",
    "JobMode",
    "JobNotFound",
    "JobOrchestrator",
    "JobStatus",
    "JobStore",
    "SourceFile",
    "SyncPackage",
    "is_valid_job_id",
]
