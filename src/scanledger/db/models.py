"""Database models for scan results using SQLAlchemy.

Rows are append-only: a rescan writes a new row and readers pick the most
recent one by ``created_at``.
"""

import hashlib
from datetime import UTC, datetime

from sqlalchemy import (
    Column,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    MetaData,
    String,
    Text,
)
from sqlalchemy.orm import declarative_base, relationship
from sqlalchemy.types import TypeDecorator


def _utc_now() -> datetime:
    return datetime.now(UTC)


class UTCDateTime(TypeDecorator):
    """Timezone-aware datetime stored as naive UTC.

    SQLite drops tzinfo, so values are normalized on the way in and
    re-tagged as UTC on the way out.
    """

    impl = DateTime
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is not None:
            value = value.astimezone(UTC).replace(tzinfo=None)
        return value

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return value.replace(tzinfo=UTC)


Base = declarative_base()


class ScanResult(Base):
    """One scan attempt of module_path@version in a given mode."""

    __tablename__ = "scan_results"

    id = Column(Integer, primary_key=True)
    created_at = Column(UTCDateTime, nullable=False, default=_utc_now)

    module_path = Column(String, nullable=False)
    version = Column(String, nullable=False)
    suffix = Column(String, default="")
    sort_version = Column(String, default="")
    imported_by = Column(Integer, default=0)

    error = Column(Text, default="")
    error_category = Column(String, default="")
    commit_time = Column(UTCDateTime, nullable=True)

    scan_seconds = Column(Float, default=0.0)
    # Only set for binary scans in compare runs.
    build_seconds = Column(Float, nullable=True)
    scan_memory = Column(Integer, default=0)  # kB
    scan_mode = Column(String, nullable=False)

    # Work version
    go_version = Column(String, default="")
    worker_version = Column(String, default="")
    schema_version = Column(String, default="")
    vulndb_last_modified = Column(UTCDateTime, nullable=True)

    vulns = relationship(
        "VulnRow",
        back_populates="result",
        cascade="all, delete-orphan",
        order_by="VulnRow.id",
        lazy="selectin",
    )

    __table_args__ = (Index("ix_scan_results_target", "module_path", "version", "created_at"),)


class VulnRow(Base):
    """A vulnerability recorded on a scan result."""

    __tablename__ = "scan_vulns"

    id = Column(Integer, primary_key=True)
    result_id = Column(Integer, ForeignKey("scan_results.id"), nullable=False)

    vuln_id = Column(String, nullable=False)  # OSV id, e.g. GO-2023-0001
    package_path = Column(String, default="")
    module_path = Column(String, default="")
    version = Column(String, default="")

    result = relationship("ScanResult", back_populates="vulns")


def schema_version(metadata: MetaData = Base.metadata) -> str:
    """Return a digest of the table layout.

    Any column added, removed, retyped or made nullable changes the value,
    which in turn invalidates stored work versions.
    """
    h = hashlib.sha256()
    for table in sorted(metadata.tables.values(), key=lambda t: t.name):
        h.update(table.name.encode())
        for column in sorted(table.columns, key=lambda c: c.name):
            h.update(f"|{column.name}:{column.type!r}:{column.nullable}".encode())
        h.update(b"\n")
    return h.hexdigest()[:16]
