"""Tests for the scanledger command line."""

from pathlib import Path

import pytest
from conftest import SAMPLE_STREAM
from typer.testing import CliRunner

from scanledger.cli import app
from scanledger.db.store import ResultStore

runner = CliRunner()


@pytest.fixture
def configured_project(project_dir: Path, vulndb_dir: Path, fake_scanner, monkeypatch) -> Path:
    """A project whose scanner is a local fake and whose toolchain version is fixed."""
    monkeypatch.chdir(project_dir)
    monkeypatch.setenv("SCANLEDGER_VULNDB", str(vulndb_dir))
    monkeypatch.setenv("SCANLEDGER_GO_VERSION", "go1.22.1")
    monkeypatch.setenv("SCANLEDGER_SCANNER_PATH", str(fake_scanner(stdout=SAMPLE_STREAM)))
    return project_dir


def _store(project_dir: Path) -> ResultStore:
    return ResultStore.open(project_dir / ".scanledger" / "scanledger.db")


def test_version():
    result = runner.invoke(app, ["version"])
    assert result.exit_code == 0
    assert "scanledger" in result.output


def test_init_creates_project(temp_dir: Path, monkeypatch):
    monkeypatch.chdir(temp_dir)
    result = runner.invoke(app, ["init"])

    assert result.exit_code == 0
    assert (temp_dir / ".scanledger" / ".env").exists()
    assert (temp_dir / ".scanledger" / "scanledger.db").exists()

    again = runner.invoke(app, ["init"])
    assert again.exit_code == 0
    assert "already initialized" in again.output


def test_scan_records_result(configured_project: Path):
    result = runner.invoke(app, ["scan", "example.com/m@v1.2.0", "-C", str(configured_project)])

    assert result.exit_code == 0, result.output
    assert "2 vulnerabilities" in result.output
    row = _store(configured_project).latest_result("example.com/m", "v1.2.0")
    assert row.scan_mode == "SOURCE"
    assert len(row.vulns) == 2


def test_second_scan_is_skipped(configured_project: Path):
    runner.invoke(app, ["scan", "example.com/m/@v/v1.2.0"])
    result = runner.invoke(app, ["scan", "example.com/m/@v/v1.2.0"])

    assert result.exit_code == 0
    assert "skipped" in result.output
    assert len(_store(configured_project).list_results()) == 1


def test_scan_failure_exits_nonzero(configured_project: Path, fake_scanner, monkeypatch):
    failing = fake_scanner(stderr="db unreachable", exit_code=1)
    monkeypatch.setenv("SCANLEDGER_SCANNER_PATH", str(failing))

    result = runner.invoke(app, ["scan", "example.com/m@v1.2.0"])

    assert result.exit_code == 1
    assert "VULNDB_UNAVAILABLE" in result.output
    row = _store(configured_project).latest_result("example.com/m", "v1.2.0")
    assert row.error == "db unreachable"
    assert row.vulns == []


def test_scan_serve_prints_without_storing(configured_project: Path):
    result = runner.invoke(app, ["scan", "example.com/m@v1.2.0", "--serve"])

    assert result.exit_code == 0, result.output
    assert "GO-2023-0001" in result.output
    assert _store(configured_project).list_results() == []


def test_scan_without_vulndb(project_dir: Path, monkeypatch):
    monkeypatch.chdir(project_dir)
    result = runner.invoke(app, ["scan", "example.com/m@v1.2.0"])
    assert result.exit_code == 1
    assert "no vulnerability database" in result.output


@pytest.mark.parametrize(
    "args",
    [
        ["scan", "example.com/m"],
        ["scan", "example.com/m@v1.2.0", "--mode", "compare"],
        ["scan", "example.com/m@v1.2.0", "--mode", "fuzz"],
    ],
)
def test_scan_rejects_bad_arguments(configured_project: Path, args):
    result = runner.invoke(app, args)
    assert result.exit_code == 1


def test_status(configured_project: Path):
    before = runner.invoke(app, ["status", "example.com/m@v1.2.0"])
    assert before.exit_code == 0
    assert "No results stored" in before.output

    runner.invoke(app, ["scan", "example.com/m@v1.2.0"])
    after = runner.invoke(app, ["status", "example.com/m@v1.2.0"])
    assert after.exit_code == 0
    assert "go1.22.1" in after.output
    assert "up to date" in after.output


def test_results(configured_project: Path):
    empty = runner.invoke(app, ["results"])
    assert "No results stored yet" in empty.output

    runner.invoke(app, ["scan", "example.com/m@v1.2.0"])
    listed = runner.invoke(app, ["results", "--module", "example.com/m"])
    assert listed.exit_code == 0
    assert "Scan results" in listed.output
