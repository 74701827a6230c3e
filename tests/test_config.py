from __future__ import annotations

import importlib
import io

import pytest
from werkzeug.datastructures import FileStorage

from audiohls.services import UploadRejected, stage_uploads


@pytest.fixture()
def reload_config(monkeypatch: pytest.MonkeyPatch):
    module = importlib.import_module("audiohls.config")
    yield lambda: importlib.reload(module)
    monkeypatch.undo()
    importlib.reload(module)


def test_defaults(monkeypatch: pytest.MonkeyPatch, reload_config) -> None:
    for name in (
        "TRANSCODER_MAX_FILE_SIZE_MB",
        "MAX_FILE_SIZE_MB",
        "TRANSCODER_JOB_CLEANUP_MINUTES",
        "JOB_CLEANUP_MINUTES",
        "TRANSCODER_AUTH_PASSWORD",
        "AUTH_PASSWORD",
        "TRANSCODER_QUALITY_LADDER",
    ):
        monkeypatch.delenv(name, raising=False)
    config = reload_config().build_default_config()

    assert config["TRANSCODER_MAX_FILE_SIZE_MB"] == 500
    assert config["TRANSCODER_MAX_FILES_PER_JOB"] == 50
    assert config["TRANSCODER_JOB_CLEANUP_MINUTES"] == 60.0
    assert config["TRANSCODER_AUTH_PASSWORD"] == ""
    assert config["TRANSCODER_QUALITY_LADDER"] == "64k,128k,256k"


def test_legacy_environment_names(monkeypatch: pytest.MonkeyPatch, reload_config) -> None:
    monkeypatch.delenv("TRANSCODER_MAX_FILE_SIZE_MB", raising=False)
    monkeypatch.delenv("TRANSCODER_AUTH_PASSWORD", raising=False)
    monkeypatch.delenv("TRANSCODER_JOB_CLEANUP_MINUTES", raising=False)
    monkeypatch.setenv("MAX_FILE_SIZE_MB", "25")
    monkeypatch.setenv("AUTH_PASSWORD", "hunter2")
    monkeypatch.setenv("JOB_CLEANUP_MINUTES", "15")
    monkeypatch.setenv("TRANSCODER_MAX_ACTIVE_JOBS", "not-a-number")

    config = reload_config().build_default_config()

    assert config["TRANSCODER_MAX_FILE_SIZE_MB"] == 25
    assert config["TRANSCODER_AUTH_PASSWORD"] == "hunter2"
    assert config["TRANSCODER_JOB_CLEANUP_MINUTES"] == 15.0
    assert config["TRANSCODER_MAX_ACTIVE_JOBS"] == 2


def _storage(data: bytes, name: str, content_type: str = "audio/mpeg") -> FileStorage:
    return FileStorage(stream=io.BytesIO(data), filename=name, content_type=content_type)


def test_stage_uploads_keeps_original_names(tmp_path) -> None:
    staged = stage_uploads(
        [_storage(b"ID3aaa", "My Song.mp3"), _storage(b"ID3bbb", "../../etc/other.mp3")],
        tmp_path / "uploads",
        max_file_size=1024,
    )

    assert [item.original_name for item in staged] == ["My Song.mp3", "other.mp3"]
    assert [item.path.name for item in staged] == ["My_Song.mp3", "other.mp3"]
    assert all(item.path.parent == tmp_path / "uploads" for item in staged)
    assert staged[0].size == 6


def test_stage_uploads_rejections(tmp_path) -> None:
    with pytest.raises(UploadRejected):
        stage_uploads([], tmp_path / "u1", max_file_size=1024)
    with pytest.raises(UploadRejected):
        stage_uploads([_storage(b"RIFF", "clip.wav", "audio/wav")], tmp_path / "u2", max_file_size=1024)
    with pytest.raises(UploadRejected):
        stage_uploads([_storage(b"ID3" * 100, "big.mp3")], tmp_path / "u3", max_file_size=10)
    with pytest.raises(UploadRejected):
        stage_uploads([_storage(b"", "empty.mp3")], tmp_path / "u4", max_file_size=1024)


def test_prune_log_files_keeps_newest(tmp_path) -> None:
    from audiohls.logging_config import prune_log_files

    for stamp in ("20240101-000000", "20240102-000000", "20240103-000000"):
        (tmp_path / f"audiohls-{stamp}.log").write_text("x", encoding="utf-8")
    (tmp_path / "other-20240101-000000.log").write_text("x", encoding="utf-8")

    removed = prune_log_files(tmp_path, "audiohls", keep=2)

    assert [path.name for path in removed] == ["audiohls-20240101-000000.log"]
    assert (tmp_path / "other-20240101-000000.log").exists()
