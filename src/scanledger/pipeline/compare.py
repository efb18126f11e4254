"""Comparison runs: scan each package in both binary and source mode."""

from __future__ import annotations

import logging
import tempfile
import time
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from pathlib import Path, PurePath

from scanledger.errors import BuildError, ScanLedgerError
from scanledger.modes import ScanMode
from scanledger.runtime import run_command

from .normalize import convert_findings
from .runner import ScanRunner
from .sandbox import ComparePair, CompareResponse, SandboxResponse
from .stats import ScanStats

logger = logging.getLogger(__name__)

# (package, module_dir, out_dir, timeout) -> (binary path, build seconds)
BinaryBuilder = Callable[[str, Path, Path, float | None], Awaitable[tuple[Path, float]]]


def make_go_builder(go_path: str = "go") -> BinaryBuilder:
    """Return a builder that runs ``go build`` inside the module directory."""

    async def build(
        package: str, module_dir: Path, out_dir: Path, timeout: float | None
    ) -> tuple[Path, float]:
        binary = out_dir / (package.rstrip("/").rsplit("/", 1)[-1] or "main")
        started = time.perf_counter()
        await run_command(
            [go_path, "build", "-o", str(binary), package],
            timeout=timeout,
            cwd=module_dir,
            error_class=BuildError,
        )
        return binary, time.perf_counter() - started

    return build


async def _scan_side(
    runner: ScanRunner,
    mode: ScanMode,
    pattern: str,
    vulndb: str | PurePath,
    module_dir: Path | None,
    timeout: float | None,
    response: SandboxResponse,
) -> None:
    try:
        output = await runner.run(
            mode,
            pattern,
            vulndb,
            module_dir=module_dir,
            stats=response.stats,
            timeout=timeout,
        )
    except ScanLedgerError as e:
        response.error = str(e)
        return
    response.findings = output.findings


async def compare_package(
    runner: ScanRunner,
    builder: BinaryBuilder,
    package: str,
    module_dir: Path,
    vulndb: str | PurePath,
    out_dir: Path,
    timeout: float | None = None,
) -> ComparePair:
    """Build and scan one package both ways.

    The two sides run independently. Failures are recorded as strings on
    the side that failed and on the pair, keeping any stats captured.
    """
    pair = ComparePair(
        binary_results=SandboxResponse(stats=ScanStats(build_seconds=0.0)),
        source_results=SandboxResponse(),
    )
    binary: Path | None = None
    try:
        binary, pair.binary_results.stats.build_seconds = await builder(
            package, module_dir, out_dir, timeout
        )
    except ScanLedgerError as e:
        pair.binary_results.error = f"building {package}: {e}"

    if binary is not None:
        await _scan_side(
            runner,
            ScanMode.COMPARE_BINARY,
            str(binary),
            vulndb,
            None,
            timeout,
            pair.binary_results,
        )
    await _scan_side(
        runner,
        ScanMode.COMPARE_SOURCE,
        package,
        vulndb,
        module_dir,
        timeout,
        pair.source_results,
    )

    errors = [
        f"{side}: {resp.error}"
        for side, resp in (("binary", pair.binary_results), ("source", pair.source_results))
        if resp.error
    ]
    pair.error = "; ".join(errors)
    return pair


async def run_compare(
    runner: ScanRunner,
    packages: Sequence[str],
    module_dir: Path,
    vulndb: str | PurePath,
    builder: BinaryBuilder | None = None,
    timeout: float | None = None,
) -> CompareResponse:
    """Compare binary and source findings for each package of a module."""
    if builder is None:
        builder = make_go_builder()
    response = CompareResponse()
    with tempfile.TemporaryDirectory(prefix="scanledger-bin-") as tmpdir:
        for package in packages:
            pair = await compare_package(
                runner, builder, package, module_dir, vulndb, Path(tmpdir), timeout
            )
            if pair.error:
                logger.warning("compare %s: %s", package, pair.error)
            response.findings_for_mod[package] = pair
    return response


@dataclass
class CompareDiff:
    """Vulnerability ids found by one mode, the other, or both."""

    binary_only: list[str]
    source_only: list[str]
    both: list[str]


def diff_pair(pair: ComparePair, called_only: bool = False) -> CompareDiff:
    """Diff the vuln ids of a pair.

    With ``called_only``, source findings whose vulnerable symbol is only
    imported are left out, matching what binary mode can see.
    """
    binary_ids = {v.id for v in convert_findings(pair.binary_results.findings)}
    source_ids = {
        v.id
        for v in convert_findings(pair.source_results.findings)
        if v.called or not called_only
    }
    return CompareDiff(
        binary_only=sorted(binary_ids - source_ids),
        source_only=sorted(source_ids - binary_ids),
        both=sorted(binary_ids & source_ids),
    )
