"""Scan worker: runs one request through the pipeline, start to finish.

The worker holds no per-target lock. Callers must not run two scans of the
same module version at once; the job queue deduplicates by
``ScanRequest.name()``.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path

from scanledger.config import WorkerConfig
from scanledger.db.models import ScanResult
from scanledger.db.store import ResultStore
from scanledger.errors import ScanLedgerError, StorageError
from scanledger.modes import ScanMode
from scanledger.pipeline import (
    CompareResponse,
    ScanRunner,
    ScanStats,
    Vuln,
    WorkVersion,
    build_compare_results,
    build_result,
    compute_current,
    convert_findings,
    run_compare,
    should_skip,
)
from scanledger.pipeline.compare import BinaryBuilder, make_go_builder
from scanledger.request import ScanRequest

logger = logging.getLogger(__name__)

DEFAULT_PATTERN = "./..."


@dataclass
class ScanOutcome:
    """What happened to a request.

    ``results`` is empty when the scan was skipped as redundant.
    """

    request: ScanRequest
    results: list[ScanResult] = field(default_factory=list)
    skipped: bool = False
    work_version: WorkVersion | None = None
    compare: CompareResponse | None = None

    @property
    def result(self) -> ScanResult | None:
        return self.results[0] if self.results else None


class ScanWorker:
    """Decide, scan, normalize, aggregate and persist."""

    def __init__(
        self,
        config: WorkerConfig,
        store: ResultStore | None = None,
        runner: ScanRunner | None = None,
        builder: BinaryBuilder | None = None,
    ):
        self.config = config
        self.store = store
        self.runner = runner or ScanRunner(config.scanner_path)
        self.builder = builder or make_go_builder(config.go_path)

    async def current_work_version(self) -> WorkVersion:
        return await compute_current(
            worker_version=self.config.worker_version,
            schema_version=self.config.schema_version,
            vulndb=self.config.vulndb,
            go_version=self.config.go_version,
            go_path=self.config.go_path,
        )

    def _skip(self, request: ScanRequest, wv: WorkVersion | None) -> bool:
        if self.store is None or request.serve:
            return False
        try:
            state = self.store.read_work_state(request.module, request.version)
        except StorageError as e:
            logger.warning("could not read work state of %s, scanning: %s", request.name(), e)
            return False
        if should_skip(wv, state):
            logger.info("skipping %s: work version unchanged", request.name())
            return True
        return False

    def _persist(self, request: ScanRequest, rows: list[ScanResult]) -> None:
        if request.serve or self.store is None:
            return
        self.store.write_results(rows)

    async def scan(
        self,
        request: ScanRequest,
        module_dir: Path | None = None,
        pattern: str | None = None,
        commit_time: datetime | None = None,
        force: bool = False,
    ) -> ScanOutcome:
        """Scan a module version in source or binary mode.

        Source mode scans ``pattern`` (default ``./...``) inside
        ``module_dir``; binary mode scans the binary at ``pattern``. Scan
        errors are recorded on the result row, not raised.
        """
        if request.mode is ScanMode.COMPARE:
            raise ValueError("use compare() for compare requests")
        if pattern is None:
            if request.mode is ScanMode.BINARY:
                raise ValueError("binary mode needs the path of the binary to scan")
            pattern = DEFAULT_PATTERN

        wv: WorkVersion | None = None
        error: ScanLedgerError | None = None
        try:
            wv = await self.current_work_version()
        except ScanLedgerError as e:
            error = e
        if not force and self._skip(request, wv):
            return ScanOutcome(request=request, skipped=True, work_version=wv)

        stats = ScanStats()
        vulns: list[Vuln] = []
        if error is None:
            try:
                output = await self.runner.run(
                    request.mode,
                    pattern,
                    self.config.vulndb,
                    module_dir=module_dir if request.mode is ScanMode.SOURCE else None,
                    stats=stats,
                    timeout=self.config.scan_timeout,
                )
                vulns = convert_findings(output.findings)
            except ScanLedgerError as e:
                error = e
        if error is not None:
            logger.warning("scan of %s failed (%s): %s", request.name(), error.category, error)

        row = build_result(
            request,
            request.mode,
            wv,
            stats=stats,
            vulns=vulns,
            error=error,
            commit_time=commit_time,
        )
        self._persist(request, [row])
        return ScanOutcome(request=request, results=[row], work_version=wv)

    async def compare(
        self,
        request: ScanRequest,
        module_dir: Path,
        packages: Sequence[str],
        commit_time: datetime | None = None,
    ) -> ScanOutcome:
        """Scan each package in binary and source mode and record both sides."""
        wv: WorkVersion | None = None
        response = CompareResponse()
        try:
            wv = await self.current_work_version()
        except ScanLedgerError as e:
            rows = [
                build_result(request, mode, None, error=e, commit_time=commit_time)
                for mode in (ScanMode.COMPARE_BINARY, ScanMode.COMPARE_SOURCE)
            ]
        else:
            response = await run_compare(
                self.runner,
                packages,
                module_dir,
                self.config.vulndb,
                builder=self.builder,
                timeout=self.config.scan_timeout,
            )
            try:
                rows = build_compare_results(request, response, wv, commit_time=commit_time)
            except ScanLedgerError as e:
                rows = [
                    build_result(request, mode, wv, error=e, commit_time=commit_time)
                    for mode in (ScanMode.COMPARE_BINARY, ScanMode.COMPARE_SOURCE)
                ]
        self._persist(request, rows)
        return ScanOutcome(request=request, results=rows, work_version=wv, compare=response)
