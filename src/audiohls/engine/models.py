"""Data structures that describe transcode jobs and their files."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, List, Optional


class JobStatus(str, Enum):
    """Lifecycle of a job."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    COMPLETED_WITH_ERRORS = "completed_with_errors"
    FAILED = "failed"

    @property
    def terminal(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.COMPLETED_WITH_ERRORS, JobStatus.FAILED)

    @property
    def successful(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.COMPLETED_WITH_ERRORS)


class FileStatus(str, Enum):
    """Progress of one source file inside a job."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class JobMode(str, Enum):
    ASYNC = "async"
    SYNC = "sync"


@dataclass(frozen=True, slots=True)
class SourceFile:
    """An uploaded source file staged on disk."""

    original_name: str
    path: Path
    size: int = 0


@dataclass(slots=True)
class FileEntry:
    """Per-file progress tracked on a job."""

    name: str
    status: FileStatus = FileStatus.PENDING
    package_folder: Optional[str] = None
    segment_count: int = 0
    error: Optional[str] = None
    variants: List[dict[str, Any]] = field(default_factory=list)

    def to_payload(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "status": self.status.value,
            "package_folder": self.package_folder,
            "segment_count": self.segment_count,
            "error": self.error,
            "variants": [dict(variant) for variant in self.variants],
        }


@dataclass(slots=True)
class Job:
    """One upload batch tracked end-to-end."""

    job_id: str
    created_at: datetime
    status: JobStatus = JobStatus.PROCESSING
    files: List[FileEntry] = field(default_factory=list)
    completed_at: Optional[datetime] = None
    completed_files: int = 0
    failed_files: int = 0
    archive_path: Optional[Path] = None
    error: Optional[str] = None
    mode: JobMode = JobMode.ASYNC

    def recount(self) -> None:
        """Recompute aggregate counters from the per-file statuses."""

        self.completed_files = sum(1 for entry in self.files if entry.status is FileStatus.COMPLETED)
        self.failed_files = sum(1 for entry in self.files if entry.status is FileStatus.FAILED)

    def find_file(self, name: str) -> Optional[FileEntry]:
        # Duplicate names resolve to the first match.
        for entry in self.files:
            if entry.name == name:
                return entry
        return None

    @property
    def archive_available(self) -> bool:
        return self.archive_path is not None and Path(self.archive_path).is_file()

    def to_payload(self) -> dict[str, Any]:
        """Render the status query result."""

        return {
            "job_id": self.job_id,
            "status": self.status.value,
            "mode": self.mode.value,
            "created_at": self.created_at.isoformat(),
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "files": [entry.to_payload() for entry in self.files],
            "completed_files": self.completed_files,
            "failed_files": self.failed_files,
            "archive_available": self.archive_available,
            "error": self.error,
        }


__all__ = ["FileEntry", "FileStatus", "Job", "JobMode", "JobStatus", "SourceFile"]
