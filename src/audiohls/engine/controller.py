"""Job orchestration for the HLS transcoding service."""
from __future__ import annotations

import logging
import secrets
import string
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterable, List, Mapping, Optional, Sequence

from ..transcoder import (
    UPLOADS_DIRNAME,
    ArchiveAssembler,
    PackageBuildFailure,
    PackageBuilder,
    PackageFile,
    PackageResult,
    assign_package_folders,
)
from .errors import InvalidSubmission, JobCapacityExceeded
from .job_store import JobStore
from .models import FileStatus, Job, JobMode, JobStatus, SourceFile

LOGGER = logging.getLogger(__name__)

_ID_ALPHABET = string.ascii_lowercase + string.digits
ALL_FILES_FAILED = "All files failed to transcode"


@dataclass(slots=True)
class SyncPackage:
    """In-band result of a synchronous single-file transcode."""

    job_id: str
    original_name: str
    package_folder: str
    segment_count: int
    variants: List[dict[str, Any]] = field(default_factory=list)
    files: List[PackageFile] = field(default_factory=list)

    def to_payload(self) -> dict[str, Any]:
        return {
            "job_id": self.job_id,
            "original_file_name": self.original_name,
            "package_folder": self.package_folder,
            "segment_count": self.segment_count,
            "variants": [dict(variant) for variant in self.variants],
            "files": [item.to_payload() for item in self.files],
        }


class JobOrchestrator:
    """Run submitted jobs on a bounded worker pool and record their progress."""

    def __init__(
        self,
        *,
        store: JobStore,
        builder: PackageBuilder,
        archiver: Optional[ArchiveAssembler] = None,
        max_active_jobs: int = 2,
        max_queued_jobs: int = 8,
    ) -> None:
        self._store = store
        self._builder = builder
        self._archiver = archiver or ArchiveAssembler()
        self._max_active = max(1, int(max_active_jobs))
        self._capacity = self._max_active + max(0, int(max_queued_jobs))
        self._slots = threading.BoundedSemaphore(self._capacity)
        self._executor = ThreadPoolExecutor(
            max_workers=self._max_active,
            thread_name_prefix="transcode-job",
        )
        self._lock = threading.Lock()
        self._futures: dict[str, Future] = {}

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------
    @property
    def store(self) -> JobStore:
        return self._store

    @property
    def builder(self) -> PackageBuilder:
        return self._builder

    @property
    def capacity(self) -> int:
        return self._capacity

    @staticmethod
    def new_job_id() -> str:
        suffix = "".join(secrets.choice(_ID_ALPHABET) for _ in range(9))
        return f"job-{int(time.time() * 1000)}-{suffix}"

    def job_dir(self, job_id: str) -> Path:
        return self._store.job_dir(job_id)

    def uploads_dir(self, job_id: str) -> Path:
        return self.job_dir(job_id) / UPLOADS_DIRNAME

    # ------------------------------------------------------------------
    # Submission
    # ------------------------------------------------------------------
    def submit(self, job_id: str, files: Iterable[SourceFile]) -> Job:
        """Create the job and process it in the background."""

        sources = list(files)
        self._validate(sources)
        job = self._admit(job_id, sources, JobMode.ASYNC)
        LOGGER.info("[Job %s] Starting transcode of %d file(s)", job_id, len(sources))
        self._dispatch(job_id, self._run_job_and_release, sources)
        return job

    def run_sync(self, job_id: str, source: SourceFile) -> SyncPackage:
        """Transcode one file on the worker pool and wait for the package."""

        self._validate([source])
        self._admit(job_id, [source], JobMode.SYNC)
        LOGGER.info("[Job %s] Sync transcode: %s", job_id, source.original_name)
        future = self._dispatch(job_id, self._run_single_and_release, source)
        return future.result()

    def wait(self, job_id: str, timeout: Optional[float] = None) -> Optional[Job]:
        """Block until a dispatched job settles; returns the latest snapshot."""

        with self._lock:
            future = self._futures.get(job_id)
        if future is not None:
            try:
                future.result(timeout=timeout)
            except PackageBuildFailure:
                LOGGER.debug("[Job %s] Finished with a package failure", job_id)
        return self._store.get(job_id)

    # ------------------------------------------------------------------
    # Pipeline
    # ------------------------------------------------------------------
    def run_job(self, job_id: str, files: Sequence[SourceFile]) -> Optional[Job]:
        """Process every file of an existing job and settle its final status.

        Returns ``None`` when the job was deleted while it was running.
        """

        job_dir = self.job_dir(job_id)
        try:
            names = [source.original_name for source in files]
            folders = dict(zip(names, assign_package_folders(names)))
            for source in files:
                if not self._store.exists(job_id):
                    LOGGER.info("[Job %s] Job deleted; stopping file loop", job_id)
                    break
                self._process_file(job_id, source, job_dir, folders[source.original_name])
            return self._settle(job_id, job_dir, folders)
        except Exception as exc:
            LOGGER.exception("[Job %s] Fatal error", job_id)
            finished = self._store.finish(job_id, JobStatus.FAILED, error=str(exc))
            if finished is None:
                self._discard_orphan(job_id)
            return finished

    def _process_file(
        self, job_id: str, source: SourceFile, job_dir: Path, folder: str
    ) -> Optional[PackageResult]:
        name = source.original_name
        self._store.update_file_status(job_id, name, status=FileStatus.PROCESSING)
        try:
            result = self._builder.build(source.path, name, job_dir, folder=folder)
        except Exception as exc:
            # One bad file must not strand the rest of the job.
            LOGGER.error(
                "[Job %s] File failed: %s: %s",
                job_id,
                name,
                exc,
                exc_info=not isinstance(exc, PackageBuildFailure),
            )
            self._store.update_file_status(job_id, name, status=FileStatus.FAILED, error=str(exc))
            return None
        self._store.update_file_status(
            job_id,
            name,
            status=FileStatus.COMPLETED,
            package_folder=result.folder,
            segment_count=result.segment_count,
            variants=result.variant_metadata(),
        )
        return result

    def _settle(self, job_id: str, job_dir: Path, folders: Mapping[str, str]) -> Optional[Job]:
        snapshot = self._store.get(job_id)
        if snapshot is None:
            self._discard_orphan(job_id)
            return None

        completed = [entry for entry in snapshot.files if entry.status is FileStatus.COMPLETED]
        if not completed:
            LOGGER.warning("[Job %s] %s", job_id, ALL_FILES_FAILED)
            return self._store.finish(job_id, JobStatus.FAILED, error=ALL_FILES_FAILED)

        completed_folders = {entry.package_folder for entry in completed}
        failed_folders = {
            folders[entry.name]
            for entry in snapshot.files
            if entry.status is not FileStatus.COMPLETED and entry.name in folders
        } - completed_folders

        LOGGER.info("[Job %s] Creating ZIP archive", job_id)
        archive_path = self._archiver.assemble(job_dir, exclude=failed_folders)
        status = JobStatus.COMPLETED_WITH_ERRORS if snapshot.failed_files else JobStatus.COMPLETED
        finished = self._store.finish(job_id, status, archive_path=archive_path)
        if finished is None:
            self._discard_orphan(job_id)
            return None
        LOGGER.info("[Job %s] Finished: %s", job_id, finished.status.value)
        return finished

    def _run_single(self, job_id: str, source: SourceFile) -> SyncPackage:
        name = source.original_name
        job_dir = self.job_dir(job_id)
        self._store.update_file_status(job_id, name, status=FileStatus.PROCESSING)
        try:
            result = self._builder.build(source.path, name, job_dir)
            files = self._builder.collect_files(result.path)
        except Exception as exc:
            LOGGER.error("[Job %s] Sync transcode failed: %s: %s", job_id, name, exc)
            self._store.update_file_status(job_id, name, status=FileStatus.FAILED, error=str(exc))
            self._store.finish(job_id, JobStatus.FAILED, error=str(exc))
            raise

        variants = result.variant_metadata()
        self._store.update_file_status(
            job_id,
            name,
            status=FileStatus.COMPLETED,
            package_folder=result.folder,
            segment_count=result.segment_count,
            variants=variants,
        )
        self._store.finish(job_id, JobStatus.COMPLETED)
        LOGGER.info("[Job %s] Sync transcode complete: %d files", job_id, len(files))
        return SyncPackage(
            job_id=job_id,
            original_name=name,
            package_folder=result.folder,
            segment_count=result.segment_count,
            variants=variants,
            files=files,
        )

    # ------------------------------------------------------------------
    # Cleanup
    # ------------------------------------------------------------------
    def delete(self, job_id: str) -> bool:
        """Forget the job and remove its files; running loops stop at the next file."""

        existed = self._store.delete(job_id)
        if existed:
            LOGGER.info("[Cleanup] Removed job %s", job_id)
        return existed

    def schedule_cleanup(self, job_id: str, delay_seconds: float) -> threading.Timer:
        """Delete the job after ``delay_seconds`` on a background timer."""

        timer = threading.Timer(max(0.0, float(delay_seconds)), self.delete, args=(job_id,))
        timer.daemon = True
        timer.start()
        return timer

    def shutdown(self, *, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait, cancel_futures=not wait)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    @staticmethod
    def _validate(sources: Sequence[SourceFile]) -> None:
        if not sources:
            raise InvalidSubmission("No files uploaded")
        seen: set[str] = set()
        duplicates: list[str] = []
        for source in sources:
            if source.original_name in seen:
                duplicates.append(source.original_name)
            seen.add(source.original_name)
        if duplicates:
            raise InvalidSubmission(f"Duplicate file names in submission: {', '.join(sorted(set(duplicates)))}")

    def _admit(self, job_id: str, sources: Sequence[SourceFile], mode: JobMode) -> Job:
        if not self._slots.acquire(blocking=False):
            LOGGER.warning("Rejecting job %s: %d job(s) already admitted", job_id, self._capacity)
            raise JobCapacityExceeded(
                f"Too many jobs in progress (limit {self._capacity}); try again later"
            )
        try:
            return self._store.create(job_id, [source.original_name for source in sources], mode=mode)
        except Exception:
            self._slots.release()
            raise

    def _dispatch(self, job_id: str, target, *args: Any) -> Future:
        try:
            future = self._executor.submit(target, job_id, *args)
        except RuntimeError as exc:
            self._slots.release()
            self._store.finish(job_id, JobStatus.FAILED, error=str(exc))
            raise
        with self._lock:
            self._futures[job_id] = future
        future.add_done_callback(lambda _done, job_id=job_id: self._forget(job_id, _done))
        return future

    def _forget(self, job_id: str, future: Future) -> None:
        with self._lock:
            if self._futures.get(job_id) is future:
                del self._futures[job_id]

    def _run_job_and_release(self, job_id: str, sources: Sequence[SourceFile]) -> Optional[Job]:
        try:
            return self.run_job(job_id, sources)
        finally:
            self._slots.release()

    def _run_single_and_release(self, job_id: str, source: SourceFile) -> SyncPackage:
        try:
            return self._run_single(job_id, source)
        finally:
            self._slots.release()

    def _discard_orphan(self, job_id: str) -> None:
        # An in-flight encode may have recreated the directory after deletion.
        LOGGER.info("[Job %s] Discarding output of deleted job", job_id)
        self._store.delete(job_id)


__all__ = ["ALL_FILES_FAILED", "JobOrchestrator", "SyncPackage"]
