"""Errors raised by the job engine."""
from __future__ import annotations


class JobError(RuntimeError):
    """Base error for job bookkeeping."""


class JobNotFound(JobError):
    """Raised when a job id is not present in the store."""

    def __init__(self, job_id: str) -> None:
        self.job_id = job_id
        super().__init__(f"Job not found: {job_id}")


class DuplicateJob(JobError):
    """Raised when creating a job whose id already exists."""

    def __init__(self, job_id: str) -> None:
        self.job_id = job_id
        super().__init__(f"Job already exists: {job_id}")


class JobCapacityExceeded(JobError):
    """Raised when every admission slot is taken."""


class InvalidSubmission(JobError):
    """Raised when a submission cannot be turned into a job."""


__all__ = [
    "DuplicateJob",
    "InvalidSubmission",
    "JobCapacityExceeded",
    "JobError",
    "JobNotFound",
]
