"""Run the external vulnerability scanner and collect its findings."""

from __future__ import annotations

import logging
import re
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from pathlib import Path, PurePath, PureWindowsPath

from scanledger.errors import ScannerExecutionError, ToolNotFoundError
from scanledger.modes import ScanMode
from scanledger.protocol import Config, Finding, FindingsHandler, handle_stream
from scanledger.runtime import CommandResult, ProcessUsage, resolve_binary, run_command

from .stats import MemoryProbe, ScanStats, default_memory_probe

logger = logging.getLogger(__name__)

CommandRunner = Callable[..., Awaitable[CommandResult]]

_URI_SCHEME = re.compile(r"^[A-Za-z][A-Za-z0-9+.-]*://")
_WINDOWS_DRIVE = re.compile(r"^[A-Za-z]:[\\/]")


def vulndb_uri(location: str | PurePath) -> str:
    """Return the vuln DB location as a URI the scanner accepts.

    Local paths become ``file:///`` URIs with forward slashes, for both
    POSIX and Windows paths. Values that already are URIs pass through.
    """
    if isinstance(location, str):
        if _URI_SCHEME.match(location):
            return location
        if _WINDOWS_DRIVE.match(location):
            return PureWindowsPath(location).as_uri()
        location = Path(location)
    if not location.is_absolute():
        location = Path(location).absolute()
    return location.as_uri()


@dataclass
class ScanOutput:
    """Findings of a successful run plus its statistics."""

    findings: list[Finding]
    stats: ScanStats
    header: Config | None = None
    stderr: str = ""
    messages: int = 0
    command: list[str] = field(default_factory=list)


class ScanRunner:
    """Wrapper for scanner subprocess calls.

    ``command_runner`` and ``memory_probe`` are injectable so tests can
    substitute the process and the platform measurement.
    """

    def __init__(
        self,
        scanner_path: str = "govulncheck",
        memory_probe: MemoryProbe | None = None,
        command_runner: CommandRunner | None = None,
    ):
        self.scanner_path = scanner_path
        self._memory_probe = memory_probe or default_memory_probe()
        self._runner = command_runner or run_command

    def build_command(
        self,
        mode: ScanMode,
        pattern: str,
        vulndb: str | PurePath,
        module_dir: Path | str | None = None,
    ) -> list[str]:
        """Assemble the scanner CLI invocation."""
        cmd = [self.scanner_path, "-mode", mode.flag, "-json", "-db", vulndb_uri(vulndb)]
        if module_dir:
            cmd.extend(["-C", str(module_dir)])
        cmd.append(pattern)
        return cmd

    def _resolve_scanner(self) -> None:
        if Path(self.scanner_path).is_absolute():
            if not Path(self.scanner_path).exists():
                raise ToolNotFoundError(f"scanner not found at {self.scanner_path}")
            return
        resolved = resolve_binary(self.scanner_path)
        if resolved is None:
            raise ToolNotFoundError(f"{self.scanner_path} binary not found in PATH")
        self.scanner_path = resolved

    async def run(
        self,
        mode: ScanMode,
        pattern: str,
        vulndb: str | PurePath,
        module_dir: Path | str | None = None,
        stats: ScanStats | None = None,
        timeout: float | None = None,
    ) -> ScanOutput:
        """Scan ``pattern`` and return its findings.

        ``stats`` is filled in even when the run fails, so callers keep the
        duration measured up to the failure. A non-zero exit raises
        ScannerExecutionError without looking at stdout.
        """
        if stats is None:
            stats = ScanStats()
        if self._runner is run_command:
            self._resolve_scanner()
        command = self.build_command(mode, pattern, vulndb, module_dir)

        usage = ProcessUsage()
        started = time.perf_counter()
        try:
            result = await self._runner(
                command,
                timeout=timeout,
                error_class=ScannerExecutionError,
                memory_probe=self._memory_probe,
                usage=usage,
            )
        finally:
            stats.scan_seconds = time.perf_counter() - started
            stats.scan_memory = usage.max_rss

        handler = FindingsHandler()
        count = handle_stream([result.stdout], handler)
        findings = handler.findings()
        logger.info(
            "%s scan of %s: %d findings in %.2fs (%d messages)",
            mode.flag,
            pattern,
            len(findings),
            stats.scan_seconds,
            count,
        )
        return ScanOutput(
            findings=findings,
            stats=stats,
            header=handler.header,
            stderr=result.stderr,
            messages=count,
            command=command,
        )
