"""Tests for running the scanner subprocess."""

import os
import sys
from pathlib import Path, PureWindowsPath

import pytest
from conftest import FAKE_PID, SAMPLE_STREAM, FakeCommandRunner

from scanledger.errors import (
    ScannerExecutionError,
    ScanTimeoutError,
    ToolNotFoundError,
    TruncatedStreamError,
)
from scanledger.modes import ScanMode
from scanledger.pipeline import (
    ScanRunner,
    ScanStats,
    no_memory_probe,
    proc_peak_rss,
    vulndb_uri,
)
from scanledger.runtime import ProcessUsage, run_command

# -- Command construction --


def test_vulndb_uri_posix_path():
    assert vulndb_uri("/var/lib/vulndb") == "file:///var/lib/vulndb"
    assert vulndb_uri(Path("/var/lib/vulndb")) == "file:///var/lib/vulndb"


def test_vulndb_uri_windows_path():
    assert vulndb_uri("C:\\vulndb\\data") == "file:///C:/vulndb/data"
    assert vulndb_uri(PureWindowsPath("D:\\db")) == "file:///D:/db"


def test_vulndb_uri_relative_path():
    uri = vulndb_uri("vulndb")
    assert uri.startswith("file:///")
    assert uri.endswith("/vulndb")


def test_vulndb_uri_passes_urls_through():
    assert vulndb_uri("https://vuln.go.dev") == "https://vuln.go.dev"
    assert vulndb_uri("file:///srv/vulndb") == "file:///srv/vulndb"


def test_build_command_source():
    runner = ScanRunner("govulncheck")
    cmd = runner.build_command(ScanMode.SOURCE, "./...", "/srv/vulndb", Path("/src/m"))
    assert cmd == [
        "govulncheck",
        "-mode",
        "source",
        "-json",
        "-db",
        "file:///srv/vulndb",
        "-C",
        "/src/m",
        "./...",
    ]


def test_build_command_binary():
    runner = ScanRunner("/opt/bin/govulncheck")
    cmd = runner.build_command(ScanMode.COMPARE_BINARY, "/tmp/out/app", "https://vuln.go.dev")
    assert cmd == [
        "/opt/bin/govulncheck",
        "-mode",
        "binary",
        "-json",
        "-db",
        "https://vuln.go.dev",
        "/tmp/out/app",
    ]


# -- Injected command runner --


class TestScanRunnerWithFakeCommand:
    @pytest.mark.asyncio
    async def test_collects_findings(self):
        fake = FakeCommandRunner(stdout=SAMPLE_STREAM)
        runner = ScanRunner(memory_probe=lambda pid: 4242, command_runner=fake)

        output = await runner.run(ScanMode.SOURCE, "./...", "/srv/vulndb", timeout=60.0)

        assert [f.osv for f in output.findings] == ["GO-2023-0001", "GO-2022-0969"]
        assert output.messages == 5
        assert output.header.go_version == "go1.22.1"
        assert output.stats.scan_memory == 4242
        assert output.stats.scan_seconds >= 0
        assert fake.calls[0]["timeout"] == 60.0
        assert fake.calls[0]["error_class"] is ScannerExecutionError
        assert fake.calls[0]["command"][0] == "govulncheck"

    @pytest.mark.asyncio
    async def test_failure_keeps_stats(self):
        fake = FakeCommandRunner(stdout=SAMPLE_STREAM, stderr="db unreachable\n", returncode=1)
        runner = ScanRunner(memory_probe=lambda pid: 77, command_runner=fake)
        stats = ScanStats()

        with pytest.raises(ScannerExecutionError) as exc_info:
            await runner.run(ScanMode.SOURCE, "./...", "/srv/vulndb", stats=stats)

        assert str(exc_info.value) == "db unreachable"
        assert exc_info.value.category == "VULNDB_UNAVAILABLE"
        assert stats.scan_memory == 77
        assert stats.scan_seconds >= 0

    @pytest.mark.asyncio
    async def test_truncated_output(self):
        fake = FakeCommandRunner(stdout=SAMPLE_STREAM[:-20])
        runner = ScanRunner(memory_probe=no_memory_probe, command_runner=fake)

        with pytest.raises(TruncatedStreamError):
            await runner.run(ScanMode.SOURCE, "./...", "/srv/vulndb")

    @pytest.mark.asyncio
    async def test_empty_output(self):
        runner = ScanRunner(memory_probe=no_memory_probe, command_runner=FakeCommandRunner())

        output = await runner.run(ScanMode.BINARY, "/tmp/app", "/srv/vulndb")

        assert output.findings == []
        assert output.header is None
        assert output.stats.scan_memory == 0


# -- Real subprocesses --


class TestScanRunnerSubprocess:
    @pytest.mark.asyncio
    async def test_successful_scan(self, fake_scanner, temp_dir: Path):
        scanner = fake_scanner(stdout=SAMPLE_STREAM)
        runner = ScanRunner(str(scanner), memory_probe=lambda pid: 1)

        output = await runner.run(ScanMode.SOURCE, "./...", temp_dir, module_dir=temp_dir)

        assert len(output.findings) == 2
        assert output.command[0] == str(scanner)
        assert "-C" in output.command

    @pytest.mark.asyncio
    async def test_nonzero_exit(self, fake_scanner, temp_dir: Path):
        scanner = fake_scanner(stdout=b'{"config": {}}\n', stderr="db unreachable", exit_code=1)
        runner = ScanRunner(str(scanner), memory_probe=lambda pid: 0)
        stats = ScanStats()

        with pytest.raises(ScannerExecutionError) as exc_info:
            await runner.run(ScanMode.SOURCE, "./...", temp_dir, stats=stats)

        assert str(exc_info.value) == "db unreachable"
        assert exc_info.value.returncode == 1
        assert stats.scan_seconds > 0

    @pytest.mark.asyncio
    async def test_timeout(self, fake_scanner, temp_dir: Path):
        scanner = fake_scanner(stdout=SAMPLE_STREAM, sleep=10)
        runner = ScanRunner(str(scanner), memory_probe=lambda pid: 0)
        stats = ScanStats()

        with pytest.raises(ScanTimeoutError) as exc_info:
            await runner.run(ScanMode.SOURCE, "./...", temp_dir, stats=stats, timeout=0.5)

        assert exc_info.value.category == "TIMEOUT"
        assert 0.4 <= stats.scan_seconds < 10

    @pytest.mark.asyncio
    async def test_missing_scanner(self, temp_dir: Path):
        runner = ScanRunner(str(temp_dir / "no-such-scanner"))
        with pytest.raises(ToolNotFoundError):
            await runner.run(ScanMode.SOURCE, "./...", temp_dir)

    @pytest.mark.asyncio
    async def test_scanner_not_on_path(self, temp_dir: Path, monkeypatch):
        monkeypatch.setenv("PATH", str(temp_dir))
        runner = ScanRunner("govulncheck")
        with pytest.raises(ToolNotFoundError):
            await runner.run(ScanMode.SOURCE, "./...", temp_dir)


@pytest.mark.asyncio
async def test_run_command_allowed_exit_codes(fake_scanner):
    scanner = fake_scanner(stdout=b"partial", exit_code=3)
    result = await run_command([str(scanner)], allowed_exit_codes=(0, 3))
    assert result.returncode == 3
    assert result.stdout == b"partial"
    assert result.stdout_text() == "partial"


@pytest.mark.asyncio
async def test_fake_runner_probe_gets_pid():
    seen: list[int] = []

    def probe(pid: int) -> int:
        seen.append(pid)
        return 512

    runner = ScanRunner(memory_probe=probe, command_runner=FakeCommandRunner(stdout=SAMPLE_STREAM))
    output = await runner.run(ScanMode.SOURCE, "./...", "/srv/vulndb")

    assert seen == [FAKE_PID]
    assert output.stats.scan_memory == 512


# -- Peak memory --


def test_proc_peak_rss_missing_process():
    assert proc_peak_rss(2**22 + 12345) == 0


@pytest.mark.skipif(not sys.platform.startswith("linux"), reason="reads /proc")
def test_proc_peak_rss_current_process():
    assert proc_peak_rss(os.getpid()) > 0


@pytest.mark.asyncio
async def test_run_command_samples_the_child(fake_scanner):
    seen: list[int] = []
    usage = ProcessUsage()

    def probe(pid: int) -> int:
        seen.append(pid)
        return 100 + len(seen)

    scanner = fake_scanner(sleep=0.3)
    await run_command([str(scanner)], memory_probe=probe, usage=usage)

    assert len(set(seen)) == 1
    assert seen[0] != os.getpid()
    assert usage.max_rss == 100 + len(seen)


@pytest.mark.skipif(not sys.platform.startswith("linux"), reason="reads /proc")
@pytest.mark.asyncio
async def test_small_scan_after_large_scan_reports_its_own_peak(fake_scanner, temp_dir: Path):
    large = ScanRunner(str(fake_scanner(stdout=SAMPLE_STREAM, allocate_mb=200, sleep=0.5)))
    small = ScanRunner(str(fake_scanner(stdout=SAMPLE_STREAM, sleep=0.5)))

    large_output = await large.run(ScanMode.SOURCE, "./...", temp_dir)
    small_output = await small.run(ScanMode.SOURCE, "./...", temp_dir)

    assert large_output.stats.scan_memory > 150 * 1024
    assert 0 < small_output.stats.scan_memory < large_output.stats.scan_memory // 2
