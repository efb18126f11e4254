"""Work versions: fingerprints of everything that can change a scan's outcome.

Given two WorkVersion values for the same module path and version, if they
are equal there is no need to scan the module again.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from urllib.parse import urlparse
from urllib.request import url2pathname

import httpx

from scanledger.errors import ScanLedgerError, ToolNotFoundError, is_retryable
from scanledger.protocol.models import parse_timestamp
from scanledger.runtime import resolve_binary, run_command

logger = logging.getLogger(__name__)

VULNDB_INDEX = "index/db.json"


class VulnDBError(ScanLedgerError):
    """The vuln DB metadata could not be read."""

    category = "VULNDB_UNAVAILABLE"


@dataclass(frozen=True)
class WorkVersion:
    """Inputs that determine a scan result."""

    # Toolchain version; allows precise interpretation of stdlib vulns.
    go_version: str
    # Version of the scanning and processing logic.
    worker_version: str
    # Version of the result table layout.
    schema_version: str
    # When the vuln DB was last modified.
    vulndb_last_modified: datetime | None


def work_versions_equal(v1: WorkVersion | None, v2: WorkVersion | None) -> bool:
    """Field-wise equality. A missing value on either side is never equal."""
    if v1 is None or v2 is None:
        return False
    return v1 == v2


@dataclass(frozen=True)
class WorkState:
    """Work version and error category of the most recent stored row."""

    work_version: WorkVersion
    error_category: str = ""


def should_skip(current: WorkVersion | None, state: WorkState | None) -> bool:
    """Decide whether a rescan can be skipped.

    True only when a stored row exists, its work version equals the current
    one and it did not fail in a way that a retry could fix.
    """
    if state is None:
        return False
    if not work_versions_equal(current, state.work_version):
        return False
    return not is_retryable(state.error_category)


async def toolchain_version(go_path: str = "go") -> str:
    """Return the active toolchain version, e.g. "go1.22.1"."""
    binary = resolve_binary(go_path)
    if binary is None:
        raise ToolNotFoundError(f"{go_path} binary not found in PATH")
    result = await run_command([binary, "env", "GOVERSION"], timeout=30.0)
    return result.stdout_text().strip()


def _modified_from_index(data: bytes | str, where: str) -> datetime:
    try:
        index = json.loads(data)
        modified = parse_timestamp(index.get("modified"))
    except (json.JSONDecodeError, AttributeError, ScanLedgerError) as e:
        raise VulnDBError(f"invalid vuln DB index at {where}: {e}") from e
    if modified is None:
        raise VulnDBError(f"vuln DB index at {where} has no modified time")
    return modified


def local_vulndb_dir(location: str) -> Path:
    """Return the directory of a local DB given as a path or a ``file://`` URI."""
    if not location.startswith("file:"):
        return Path(location)
    parsed = urlparse(location)
    if parsed.netloc not in ("", "localhost"):
        raise VulnDBError(f"unsupported vuln DB location {location!r}: remote file host")
    return Path(url2pathname(parsed.path))


async def vulndb_last_modified(location: str, client: httpx.AsyncClient | None = None) -> datetime:
    """Read the last-modified time of a vuln DB.

    ``location`` is a local DB directory, a ``file://`` URI or an http(s)
    base URL; the time comes from its ``index/db.json``.
    """
    if location.startswith(("http://", "https://")):
        url = f"{location.rstrip('/')}/{VULNDB_INDEX}"
        try:
            if client is None:
                async with httpx.AsyncClient(timeout=30.0) as owned:
                    response = await owned.get(url)
            else:
                response = await client.get(url)
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise VulnDBError(f"fetching {url}: {e}") from e
        return _modified_from_index(response.content, url)

    path = local_vulndb_dir(location) / VULNDB_INDEX
    try:
        data = path.read_bytes()
    except OSError as e:
        raise VulnDBError(f"reading {path}: {e}") from e
    return _modified_from_index(data, str(path))


async def compute_current(
    worker_version: str,
    schema_version: str,
    vulndb: str,
    go_version: str | None = None,
    go_path: str = "go",
) -> WorkVersion:
    """Gather the work version for a scan about to run.

    ``go_version`` skips asking the toolchain when it is already known.
    """
    if go_version is None:
        go_version = await toolchain_version(go_path)
    modified = await vulndb_last_modified(vulndb)
    wv = WorkVersion(
        go_version=go_version,
        worker_version=worker_version,
        schema_version=schema_version,
        vulndb_last_modified=modified,
    )
    logger.debug("current work version: %s", wv)
    return wv
