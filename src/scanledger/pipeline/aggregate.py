"""Assemble scan outcomes into result rows."""

from __future__ import annotations

from collections.abc import Iterable
from datetime import UTC, datetime

from scanledger.db.models import ScanResult, VulnRow
from scanledger.errors import categorize_error
from scanledger.modes import ScanMode
from scanledger.request import ScanRequest

from .normalize import Vuln, convert_findings
from .sandbox import CompareResponse, SandboxResponse
from .sortversion import sort_version
from .stats import ScanStats
from .workversion import WorkVersion


def add_error(row: ScanResult, error: BaseException | str | None) -> None:
    """Record an error on a row and drop its vulns."""
    if error is None or error == "":
        return
    row.error = str(error)
    row.error_category = categorize_error(error)
    row.vulns = []


def set_work_version(row: ScanResult, wv: WorkVersion | None) -> None:
    if wv is None:
        return
    row.go_version = wv.go_version
    row.worker_version = wv.worker_version
    row.schema_version = wv.schema_version
    row.vulndb_last_modified = wv.vulndb_last_modified


def row_work_version(row: ScanResult) -> WorkVersion:
    return WorkVersion(
        go_version=row.go_version or "",
        worker_version=row.worker_version or "",
        schema_version=row.schema_version or "",
        vulndb_last_modified=row.vulndb_last_modified,
    )


def build_result(
    request: ScanRequest,
    mode: ScanMode,
    work_version: WorkVersion | None,
    stats: ScanStats | None = None,
    vulns: Iterable[Vuln] = (),
    error: BaseException | str | None = None,
    commit_time: datetime | None = None,
    created_at: datetime | None = None,
) -> ScanResult:
    """Build an unsaved result row.

    A row with an error never carries vulns, whatever was passed in.
    """
    stats = stats or ScanStats()
    row = ScanResult(
        created_at=created_at or datetime.now(UTC),
        module_path=request.module,
        version=request.version,
        suffix=request.suffix,
        sort_version=sort_version(request.version),
        imported_by=request.imported_by,
        error="",
        error_category="",
        commit_time=commit_time,
        scan_seconds=stats.scan_seconds,
        build_seconds=stats.build_seconds if mode is ScanMode.COMPARE_BINARY else None,
        scan_memory=stats.scan_memory,
        scan_mode=mode.value,
    )
    set_work_version(row, work_version)
    row.vulns = [
        VulnRow(
            vuln_id=v.id,
            package_path=v.package_path,
            module_path=v.module_path,
            version=v.version,
        )
        for v in vulns
    ]
    add_error(row, error)
    return row


def _merge_side(
    request: ScanRequest,
    mode: ScanMode,
    sides: list[tuple[str, SandboxResponse]],
    work_version: WorkVersion | None,
    commit_time: datetime | None,
    created_at: datetime | None,
) -> ScanResult:
    stats = ScanStats(build_seconds=0.0 if mode is ScanMode.COMPARE_BINARY else None)
    vulns: dict[tuple[str, str], Vuln] = {}
    errors: list[str] = []
    for package, response in sides:
        stats.scan_seconds += response.stats.scan_seconds
        stats.scan_memory = max(stats.scan_memory, response.stats.scan_memory)
        if stats.build_seconds is not None:
            stats.build_seconds += response.stats.build_seconds or 0.0
        if response.error:
            errors.append(f"{package}: {response.error}")
            continue
        for vuln in convert_findings(response.findings):
            vulns.setdefault((vuln.id, vuln.package_path), vuln)
    return build_result(
        request,
        mode,
        work_version,
        stats=stats,
        vulns=sorted(vulns.values(), key=lambda v: (v.id, v.package_path)),
        error="; ".join(errors) or None,
        commit_time=commit_time,
        created_at=created_at,
    )


def build_compare_results(
    request: ScanRequest,
    response: CompareResponse,
    work_version: WorkVersion | None,
    commit_time: datetime | None = None,
    created_at: datetime | None = None,
) -> list[ScanResult]:
    """Aggregate a compare run into one binary row and one source row.

    Stats are summed across packages (memory takes the peak); vulns are
    deduplicated by (id, package). A failure on any package fails that
    side's row.
    """
    pairs = sorted(response.findings_for_mod.items())
    binary = [(pkg, pair.binary_results) for pkg, pair in pairs]
    source = [(pkg, pair.source_results) for pkg, pair in pairs]
    return [
        _merge_side(
            request, ScanMode.COMPARE_BINARY, binary, work_version, commit_time, created_at
        ),
        _merge_side(
            request, ScanMode.COMPARE_SOURCE, source, work_version, commit_time, created_at
        ),
    ]
