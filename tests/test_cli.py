"""Tests for the s3cloud command line.

Tests cover:
1. check: JSON report on a healthy storage directory (exit code 0)
2. check: corrupt catalog (exit code 1, error code in the report)
3. Invalid configuration (exit code 2)
4. serve: hands the loaded app to uvicorn with the configured address
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import pytest

from s3cloud import cli
from s3cloud.cli import create_parser, main
from s3cloud.config import ENV_PORT, ENV_STORAGE_DIR
from s3cloud.storage.catalog import BUCKETS_CATALOG
from s3cloud.storage.filesystem_store import FilesystemObjectStore
from s3cloud.storage.registry import BucketRegistry


class TestParser:
    def test_help_exits_zero(self, capsys: pytest.CaptureFixture[str]) -> None:
        with pytest.raises(SystemExit) as exc_info:
            main(["--help"])

        assert exc_info.value.code == 0
        assert "s3cloud" in capsys.readouterr().out

    def test_version(self, capsys: pytest.CaptureFixture[str]) -> None:
        with pytest.raises(SystemExit) as exc_info:
            main(["--version"])

        assert exc_info.value.code == 0
        assert "0.1.0" in capsys.readouterr().out

    def test_log_level_is_case_insensitive(self) -> None:
        args = create_parser().parse_args(["--log-level", "debug", "check"])

        assert args.log_level == "DEBUG"
        assert args.command == "check"

    def test_non_numeric_port_is_a_usage_error(self) -> None:
        with pytest.raises(SystemExit) as exc_info:
            main(["--port", "http"])

        assert exc_info.value.code == 2


class TestCheck:
    def test_check_reports_counts(
        self,
        registry: BucketRegistry,
        store: FilesystemObjectStore,
        storage_dir: Path,
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        registry.create_bucket("photos")
        registry.create_bucket("empty")
        upload = store.open_upload("photos", "cat.png", 3)
        with upload:
            upload.write(b"abc")
            registry.commit_upload(upload)

        exit_code = main(["--dir", str(storage_dir), "check"])
        output = json.loads(capsys.readouterr().out)

        assert exit_code == 0
        assert output["ok"] is True
        assert output["buckets"] == 2
        assert output["active_buckets"] == 1
        assert output["objects"] == 1
        assert output["storage_dir"] == str(storage_dir.resolve())

    def test_check_creates_empty_storage(
        self, storage_dir: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        exit_code = main(["--dir", str(storage_dir), "check"])
        output = json.loads(capsys.readouterr().out)

        assert exit_code == 0
        assert output["buckets"] == 0
        assert (storage_dir / BUCKETS_CATALOG).is_file()

    def test_check_corrupt_catalog_exits_1(
        self, storage_dir: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        storage_dir.mkdir()
        (storage_dir / BUCKETS_CATALOG).write_text("photos,not-enough\n", encoding="utf-8")

        exit_code = main(["--dir", str(storage_dir), "check"])
        output = json.loads(capsys.readouterr().out)

        assert exit_code == 1
        assert output["ok"] is False
        assert output["error"]["code"] == "CatalogCorrupted"

    def test_storage_dir_from_environment(
        self,
        storage_dir: Path,
        monkeypatch: pytest.MonkeyPatch,
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        monkeypatch.setenv(ENV_STORAGE_DIR, str(storage_dir))

        exit_code = main(["check"])
        output = json.loads(capsys.readouterr().out)

        assert exit_code == 0
        assert output["storage_dir"] == str(storage_dir.resolve())


class TestConfigErrors:
    def test_port_zero_exits_2(self, capsys: pytest.CaptureFixture[str]) -> None:
        exit_code = main(["--port", "0", "check"])

        assert exit_code == 2
        assert "port must be between" in capsys.readouterr().err

    def test_bad_environment_exits_2(
        self, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
    ) -> None:
        monkeypatch.setenv(ENV_PORT, "eighty")

        exit_code = main(["check"])

        assert exit_code == 2
        assert ENV_PORT in capsys.readouterr().err


class TestServe:
    def test_serve_runs_uvicorn(self, storage_dir: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        calls: list[dict[str, Any]] = []

        def fake_run(app: Any, **kwargs: Any) -> None:
            calls.append({"app": app, **kwargs})

        monkeypatch.setattr(cli.uvicorn, "run", fake_run)

        exit_code = main(["--dir", str(storage_dir), "--port", "4100", "--host", "0.0.0.0"])

        assert exit_code == 0
        assert len(calls) == 1
        assert calls[0]["host"] == "0.0.0.0"
        assert calls[0]["port"] == 4100
        assert calls[0]["log_level"] == "info"
        assert calls[0]["app"].state.registry.list_buckets() == []

    def test_serve_refuses_corrupt_catalog(
        self, storage_dir: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        storage_dir.mkdir()
        (storage_dir / BUCKETS_CATALOG).write_text("photos,x,y,bogus\n", encoding="utf-8")
        monkeypatch.setattr(cli.uvicorn, "run", lambda *a, **k: pytest.fail("server started"))

        assert main(["--dir", str(storage_dir), "serve"]) == 1
