from __future__ import annotations

import threading
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from audiohls.engine import DuplicateJob, FileStatus, JobMode, JobNotFound, JobStatus, JobStore


def test_create_and_snapshot_isolation(store: JobStore) -> None:
    job = store.create("job-1", ["a.mp3", "b.mp3"])

    assert job.status is JobStatus.PROCESSING
    assert job.mode is JobMode.ASYNC
    assert [entry.status for entry in job.files] == [FileStatus.PENDING, FileStatus.PENDING]

    job.files[0].status = FileStatus.FAILED
    assert store.require("job-1").files[0].status is FileStatus.PENDING


def test_create_rejects_duplicates_and_bad_ids(store: JobStore) -> None:
    store.create("job-1", ["a.mp3"])
    with pytest.raises(DuplicateJob):
        store.create("job-1", ["a.mp3"])
    with pytest.raises(ValueError):
        store.create("../escape", ["a.mp3"])


def test_update_file_status_recounts(store: JobStore) -> None:
    store.create("job-1", ["a.mp3", "b.mp3", "c.mp3"])

    store.update_file_status("job-1", "a.mp3", status=FileStatus.COMPLETED, package_folder="a", segment_count=9)
    job = store.update_file_status("job-1", "b.mp3", status="failed", error="boom")

    assert job is not None
    assert job.completed_files == 1
    assert job.failed_files == 1
    assert job.files[0].package_folder == "a"
    assert job.files[1].error == "boom"
    assert job.completed_files + job.failed_files <= len(job.files)


def test_update_ignores_missing_job_and_unknown_file(store: JobStore) -> None:
    assert store.update_file_status("nope", "a.mp3", status=FileStatus.COMPLETED) is None

    store.create("job-1", ["a.mp3"])
    job = store.update_file_status("job-1", "other.mp3", status=FileStatus.COMPLETED)
    assert job is not None
    assert job.completed_files == 0


def test_update_rejects_unknown_fields(store: JobStore) -> None:
    store.create("job-1", ["a.mp3"])
    with pytest.raises(ValueError):
        store.update_file_status("job-1", "a.mp3", name="renamed.mp3")


def test_finish_is_terminal_once(store: JobStore, tmp_path: Path) -> None:
    store.create("job-1", ["a.mp3"])
    store.update_file_status("job-1", "a.mp3", status=FileStatus.COMPLETED)
    archive = tmp_path / "out.zip"

    job = store.finish("job-1", JobStatus.COMPLETED, archive_path=archive)
    again = store.finish("job-1", JobStatus.FAILED, error="late")
    store.update_file_status("job-1", "a.mp3", status=FileStatus.FAILED)

    assert job is not None and job.completed_at is not None
    assert again is not None
    assert again.status is JobStatus.COMPLETED
    assert again.error is None
    assert store.require("job-1").files[0].status is FileStatus.COMPLETED
    with pytest.raises(ValueError):
        store.finish("job-1", JobStatus.PROCESSING)


def test_failed_jobs_never_carry_archive(store: JobStore, tmp_path: Path) -> None:
    store.create("job-1", ["a.mp3"])
    job = store.finish("job-1", JobStatus.FAILED, archive_path=tmp_path / "x.zip", error="bad")
    assert job is not None
    assert job.archive_path is None
    assert job.error == "bad"


def test_delete_removes_directory(store: JobStore) -> None:
    store.create("job-1", ["a.mp3"])
    job_dir = store.job_dir("job-1")
    (job_dir / "uploads").mkdir(parents=True)

    assert store.delete("job-1") is True
    assert not job_dir.exists()
    assert store.get("job-1") is None
    with pytest.raises(JobNotFound):
        store.require("job-1")
    assert store.delete("job-1") is False


def test_sweep_uses_creation_age(store: JobStore) -> None:
    now = datetime.now(timezone.utc)
    store.create("old", ["a.mp3"], created_at=now - timedelta(minutes=61))
    store.create("fresh", ["a.mp3"], created_at=now - timedelta(minutes=59))
    store.job_dir("old").mkdir(parents=True)

    removed = store.sweep(60, now=now)

    assert removed == ["old"]
    assert store.job_ids() == ["fresh"]
    assert not store.job_dir("old").exists()


def test_concurrent_updates_keep_counts_consistent(store: JobStore) -> None:
    names = [f"track-{index}.mp3" for index in range(40)]
    store.create("job-1", names)
    barrier = threading.Barrier(8)
    observed: list[tuple[int, int, int]] = []
    observed_lock = threading.Lock()

    def _writer(offset: int) -> None:
        barrier.wait()
        for name in names[offset::4]:
            status = FileStatus.COMPLETED if hash(name) % 2 else FileStatus.FAILED
            store.update_file_status("job-1", name, status=FileStatus.PROCESSING)
            store.update_file_status("job-1", name, status=status)

    def _reader() -> None:
        barrier.wait()
        for _ in range(200):
            job = store.require("job-1")
            with observed_lock:
                observed.append((job.completed_files, job.failed_files, len(job.files)))

    threads = [threading.Thread(target=_writer, args=(offset,)) for offset in range(4)]
    threads += [threading.Thread(target=_reader) for _ in range(4)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    final = store.require("job-1")
    assert final.completed_files + final.failed_files == len(names)
    for completed, failed, total in observed:
        assert completed + failed <= total
    assert len(store) == 1
