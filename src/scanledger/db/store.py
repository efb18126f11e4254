"""Read and write scan result rows."""

import logging
from pathlib import Path

from sqlalchemy import select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from scanledger.db.init import init_db
from scanledger.db.models import ScanResult
from scanledger.errors import StorageError
from scanledger.pipeline.aggregate import row_work_version
from scanledger.pipeline.workversion import WorkState

logger = logging.getLogger(__name__)


class ResultStore:
    """Append-only store of scan results.

    Each operation runs in its own session and transaction, so a reader sees
    a result row either with all of its vulns or not at all.
    """

    def __init__(self, engine: Engine):
        self.engine = engine
        self._sessions = sessionmaker(bind=engine, expire_on_commit=False)

    @classmethod
    def open(cls, db: Path | str) -> "ResultStore":
        """Open (and create if needed) the database at a path or URL."""
        return cls(init_db(db))

    def write_result(self, row: ScanResult) -> ScanResult:
        """Insert a result row and its vulns."""
        try:
            with self._sessions.begin() as session:
                session.add(row)
        except SQLAlchemyError as e:
            raise StorageError(f"writing result for {row.module_path}@{row.version}: {e}") from e
        logger.debug(
            "stored %s@%s (%s): %d vulns, error=%r",
            row.module_path,
            row.version,
            row.scan_mode,
            len(row.vulns),
            row.error_category,
        )
        return row

    def write_results(self, rows: list[ScanResult]) -> list[ScanResult]:
        """Insert several rows in one transaction."""
        try:
            with self._sessions.begin() as session:
                session.add_all(rows)
        except SQLAlchemyError as e:
            raise StorageError(f"writing {len(rows)} results: {e}") from e
        return rows

    def latest_result(
        self, module_path: str, version: str, scan_mode: str | None = None
    ) -> ScanResult | None:
        """Return the most recent row for exactly module_path@version."""
        query = select(ScanResult).where(
            ScanResult.module_path == module_path,
            ScanResult.version == version,
        )
        if scan_mode is not None:
            query = query.where(ScanResult.scan_mode == scan_mode)
        query = query.order_by(ScanResult.created_at.desc(), ScanResult.id.desc()).limit(1)
        try:
            with self._sessions() as session:
                return session.scalars(query).first()
        except SQLAlchemyError as e:
            raise StorageError(f"reading result for {module_path}@{version}: {e}") from e

    def read_work_state(self, module_path: str, version: str) -> WorkState | None:
        """Read the work version and error category of the newest row.

        Returns None when the module version has never been stored.
        """
        row = self.latest_result(module_path, version)
        if row is None:
            return None
        return WorkState(
            work_version=row_work_version(row),
            error_category=row.error_category or "",
        )

    def list_results(self, module_path: str | None = None, limit: int = 20) -> list[ScanResult]:
        """Return recent rows, newest first."""
        query = select(ScanResult)
        if module_path:
            query = query.where(ScanResult.module_path == module_path)
        query = query.order_by(ScanResult.created_at.desc(), ScanResult.id.desc()).limit(limit)
        try:
            with self._sessions() as session:
                return list(session.scalars(query).all())
        except SQLAlchemyError as e:
            raise StorageError(f"listing results: {e}") from e
