"""Test configuration and fixtures for scanledger."""

import json
import stat
import sys
import tempfile
from collections.abc import Generator
from datetime import UTC, datetime
from pathlib import Path

import pytest

from scanledger.config import WorkerConfig
from scanledger.db.models import schema_version
from scanledger.db.store import ResultStore
from scanledger.errors import ScannerExecutionError
from scanledger.runtime import CommandResult

VULNDB_MODIFIED = "2024-01-02T03:04:05.123456Z"

CONFIG_MESSAGE = {
    "config": {
        "protocol_version": "v0.1.0",
        "scanner_name": "govulncheck",
        "scanner_version": "v1.0.0",
        "db": "file:///vulndb",
        "db_last_modified": "2024-01-02T03:04:05Z",
        "go_version": "go1.22.1",
        "scan_level": "symbol",
    }
}
PROGRESS_MESSAGE = {"progress": {"message": "Scanning your code and 12 packages across 3 modules"}}
OSV_MESSAGE = {
    "osv": {
        "id": "GO-2023-0001",
        "modified": "2023-05-01T12:00:00Z",
        "aliases": ["CVE-2023-0001"],
        "summary": "Request smuggling in net/http",
    }
}
CALLED_FINDING = {
    "finding": {
        "osv": "GO-2023-0001",
        "fixed_version": "v1.20.4",
        "trace": [
            {
                "module": "stdlib",
                "version": "v1.20.1",
                "package": "net/http",
                "function": "Get",
            },
            {
                "module": "example.com/m",
                "version": "v1.2.0",
                "package": "example.com/m",
                "function": "main",
                "position": {"filename": "main.go", "offset": 120, "line": 9, "column": 2},
            },
        ],
    }
}
IMPORTED_FINDING = {
    "finding": {
        "osv": "GO-2022-0969",
        "trace": [
            {
                "module": "golang.org/x/text",
                "version": "v0.3.7",
                "package": "golang.org/x/text/language",
            }
        ],
    }
}


def encode_stream(*messages: dict, indent: int | None = None) -> bytes:
    """Serialize messages the way the scanner writes them."""
    return b"".join(json.dumps(m, indent=indent).encode() + b"\n" for m in messages)


SAMPLE_STREAM = encode_stream(
    CONFIG_MESSAGE, PROGRESS_MESSAGE, OSV_MESSAGE, CALLED_FINDING, IMPORTED_FINDING
)


# Pid handed to memory probes by the fake command runner.
FAKE_PID = 4321


class FakeCommandRunner:
    """Stands in for runtime.run_command; records every command it is given."""

    def __init__(self, stdout: bytes = b"", stderr: str = "", returncode: int = 0, exc=None):
        self.stdout = stdout
        self.stderr = stderr
        self.returncode = returncode
        self.exc = exc
        self.calls: list[dict] = []

    async def __call__(
        self,
        command,
        timeout=None,
        error_class=ScannerExecutionError,
        memory_probe=None,
        usage=None,
        **kwargs,
    ):
        self.calls.append({"command": command, "timeout": timeout, "error_class": error_class})
        if memory_probe is not None and usage is not None:
            usage.max_rss = memory_probe(FAKE_PID)
        if self.exc is not None:
            raise self.exc
        if self.returncode != 0:
            raise error_class(self.stderr, self.returncode)
        return CommandResult(
            command=list(command),
            returncode=self.returncode,
            stdout=self.stdout,
            stderr=self.stderr,
        )


@pytest.fixture(autouse=True)
def isolated_config(monkeypatch, tmp_path: Path) -> None:
    """Keep the host's scanledger settings out of every test."""
    import os

    for key in list(os.environ):
        if key.startswith("SCANLEDGER_"):
            monkeypatch.delenv(key)
    monkeypatch.setattr(
        "scanledger.config.env_loader.GLOBAL_CONFIG_DIR", tmp_path / "global-config"
    )


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for testing."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def project_dir(temp_dir: Path) -> Path:
    """Create a project directory with its .scanledger marker."""
    project_path = temp_dir / "test_project"
    project_path.mkdir()
    (project_path / ".scanledger").mkdir()
    return project_path


@pytest.fixture
def db_path(project_dir: Path) -> Path:
    """Return the database path for a project."""
    return project_dir / ".scanledger" / "scanledger.db"


@pytest.fixture
def store(db_path: Path) -> ResultStore:
    """Open a result store on a fresh SQLite file."""
    return ResultStore.open(db_path)


@pytest.fixture
def vulndb_dir(temp_dir: Path) -> Path:
    """Create a local vuln DB with an index/db.json."""
    db = temp_dir / "vulndb"
    (db / "index").mkdir(parents=True)
    (db / "index" / "db.json").write_text(json.dumps({"modified": VULNDB_MODIFIED}))
    return db


@pytest.fixture
def vulndb_modified() -> datetime:
    return datetime(2024, 1, 2, 3, 4, 5, 123456, tzinfo=UTC)


@pytest.fixture
def worker_config(db_path: Path, vulndb_dir: Path) -> WorkerConfig:
    """Worker settings that need neither a toolchain nor a scanner binary."""
    return WorkerConfig(
        db_url=str(db_path),
        vulndb=str(vulndb_dir),
        schema_version=schema_version(),
        go_version="go1.22.1",
        scan_timeout=30.0,
    )


@pytest.fixture
def fake_scanner(temp_dir: Path):
    """Return a factory writing an executable that mimics the scanner.

    The script ignores its arguments, holds ``allocate_mb`` megabytes of
    touched memory, writes the given stdout and stderr, then exits with
    ``exit_code`` after ``sleep`` seconds.
    """

    def make(
        stdout: bytes = b"",
        stderr: str = "",
        exit_code: int = 0,
        sleep: float = 0.0,
        allocate_mb: int = 0,
    ) -> Path:
        out_file = temp_dir / f"scanner-{len(list(temp_dir.iterdir()))}.out"
        out_file.write_bytes(stdout)
        script = temp_dir / f"fake-scanner-{len(list(temp_dir.iterdir()))}"
        script.write_text(
            f"#!{sys.executable}\n"
            "import sys, time\n"
            f"blob = b'x' * ({allocate_mb} * 1024 * 1024)\n"
            f"time.sleep({sleep!r})\n"
            f"sys.stdout.buffer.write(open({str(out_file)!r}, 'rb').read())\n"
            "sys.stdout.flush()\n"
            f"sys.stderr.write({stderr!r})\n"
            f"sys.exit({exit_code})\n"
        )
        script.chmod(script.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
        return script

    return make
