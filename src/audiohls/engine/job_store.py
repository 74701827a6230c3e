"""In-memory registry of transcode jobs."""
from __future__ import annotations

import copy
import logging
import re
import shutil
from datetime import datetime, timedelta, timezone
from pathlib import Path
from threading import Lock
from typing import Any, Iterable, Optional

from .errors import DuplicateJob, JobNotFound
from .models import FileEntry, FileStatus, Job, JobMode, JobStatus

LOGGER = logging.getLogger(__name__)

_UPDATABLE_FIELDS = frozenset({"status", "package_folder", "segment_count", "error", "variants"})
_JOB_ID_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_-]*$")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def is_valid_job_id(job_id: str) -> bool:
    return bool(_JOB_ID_PATTERN.match(str(job_id)))


class JobStore:
    """Serialize every read and write of job state behind a single lock.

    Reads hand out deep copies so callers never hold references into the
    registry.
    """

    def __init__(self, job_root: Path) -> None:
        self._lock = Lock()
        self._jobs: dict[str, Job] = {}
        self._job_root = Path(job_root)

    @property
    def job_root(self) -> Path:
        return self._job_root

    def job_dir(self, job_id: str) -> Path:
        if not is_valid_job_id(job_id):
            raise ValueError(f"Invalid job id: {job_id!r}")
        return self._job_root / job_id

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------
    def create(
        self,
        job_id: str,
        file_names: Iterable[str],
        *,
        mode: JobMode = JobMode.ASYNC,
        created_at: Optional[datetime] = None,
    ) -> Job:
        if not is_valid_job_id(job_id):
            raise ValueError(f"Invalid job id: {job_id!r}")
        job = Job(
            job_id=job_id,
            created_at=created_at or _utcnow(),
            status=JobStatus.PROCESSING,
            files=[FileEntry(name=str(name)) for name in file_names],
            mode=JobMode(mode),
        )
        with self._lock:
            if job_id in self._jobs:
                raise DuplicateJob(job_id)
            self._jobs[job_id] = job
            return copy.deepcopy(job)

    def update_file_status(self, job_id: str, file_name: str, **fields: Any) -> Optional[Job]:
        """Merge ``fields`` into the named file and recount the job.

        Missing jobs and unknown file names are ignored.
        """

        unknown = set(fields) - _UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Unknown file fields: {', '.join(sorted(unknown))}")
        if "status" in fields:
            fields["status"] = FileStatus(fields["status"])

        with self._lock:
            job = self._jobs.get(job_id)
            if job is None:
                LOGGER.debug("Ignoring update for missing job %s", job_id)
                return None
            if job.status.terminal:
                LOGGER.debug("Ignoring update for finished job %s", job_id)
                return copy.deepcopy(job)
            entry = job.find_file(file_name)
            if entry is None:
                LOGGER.warning("Job %s has no file named %r; update ignored", job_id, file_name)
                return copy.deepcopy(job)
            for key, value in fields.items():
                setattr(entry, key, copy.deepcopy(value))
            job.recount()
            return copy.deepcopy(job)

    def finish(
        self,
        job_id: str,
        status: JobStatus,
        *,
        archive_path: Optional[Path] = None,
        error: Optional[str] = None,
    ) -> Optional[Job]:
        """Move a job into a terminal state exactly once."""

        status = JobStatus(status)
        if not status.terminal:
            raise ValueError(f"{status.value} is not a terminal status")
        with self._lock:
            job = self._jobs.get(job_id)
            if job is None:
                return None
            if job.status.terminal:
                LOGGER.debug("Job %s already finished as %s", job_id, job.status.value)
                return copy.deepcopy(job)
            job.status = status
            job.completed_at = _utcnow()
            if status.successful:
                job.archive_path = Path(archive_path) if archive_path is not None else None
            if error is not None:
                job.error = error
            job.recount()
            return copy.deepcopy(job)

    def delete(self, job_id: str) -> bool:
        """Remove the job and its directory; returns whether an entry existed."""

        with self._lock:
            existed = self._jobs.pop(job_id, None) is not None
        self._remove_directory(job_id)
        return existed

    def sweep(self, max_age_minutes: float, *, now: Optional[datetime] = None) -> list[str]:
        """Delete every job created more than ``max_age_minutes`` ago."""

        reference = now or _utcnow()
        threshold = timedelta(minutes=max_age_minutes)
        with self._lock:
            expired = [
                job_id
                for job_id, job in self._jobs.items()
                if reference - job.created_at > threshold
            ]
            for job_id in expired:
                self._jobs.pop(job_id, None)

        for job_id in expired:
            LOGGER.info("Removing expired job %s (max age %s min)", job_id, max_age_minutes)
            self._remove_directory(job_id)
        return expired

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------
    def get(self, job_id: str) -> Optional[Job]:
        with self._lock:
            job = self._jobs.get(job_id)
            return copy.deepcopy(job) if job is not None else None

    def require(self, job_id: str) -> Job:
        job = self.get(job_id)
        if job is None:
            raise JobNotFound(job_id)
        return job

    def exists(self, job_id: str) -> bool:
        with self._lock:
            return job_id in self._jobs

    def job_ids(self) -> list[str]:
        with self._lock:
            return list(self._jobs)

    def __len__(self) -> int:
        with self._lock:
            return len(self._jobs)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _remove_directory(self, job_id: str) -> None:
        if not is_valid_job_id(job_id):
            return
        job_dir = self.job_dir(job_id)
        if not job_dir.exists():
            return
        try:
            shutil.rmtree(job_dir)
        except OSError as exc:
            LOGGER.warning("Failed to remove job directory %s: %s", job_dir, exc)
        else:
            LOGGER.info("Removed job directory %s", job_dir)


__all__ = ["JobStore", "is_valid_job_id"]
