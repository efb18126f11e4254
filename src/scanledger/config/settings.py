"""Worker settings assembled from configuration."""

from dataclasses import dataclass
from pathlib import Path

from scanledger.db.models import Base, schema_version

from .getters import get_bool, get_config, get_float
from .project_setup import find_project_dir, get_project_db_path

# Bump when a change to scanning or processing logic should invalidate
# previously stored results.
WORKER_VERSION = "1"

DEFAULT_SCAN_TIMEOUT = 1800.0


@dataclass
class WorkerConfig:
    """Everything a worker needs to run and record scans."""

    db_url: str
    vulndb: str = ""
    scanner_path: str = "govulncheck"
    go_path: str = "go"
    worker_version: str = WORKER_VERSION
    schema_version: str = ""
    scan_timeout: float | None = DEFAULT_SCAN_TIMEOUT
    # Skip asking the toolchain for its version when set.
    go_version: str | None = None
    verbose: bool = False


def load_worker_config(project_dir: Path | None = None) -> WorkerConfig:
    """Read settings for the project (or the current directory's project)."""
    if project_dir is None:
        project_dir = find_project_dir()

    db_url = get_config("SCANLEDGER_DB_URL", project_dir)
    if not db_url:
        base = project_dir or Path.cwd()
        db_url = f"sqlite:///{get_project_db_path(base)}"

    return WorkerConfig(
        db_url=db_url,
        vulndb=get_config("SCANLEDGER_VULNDB", project_dir, default=""),
        scanner_path=get_config("SCANLEDGER_SCANNER_PATH", project_dir, default="govulncheck"),
        go_path=get_config("SCANLEDGER_GO_PATH", project_dir, default="go"),
        worker_version=str(
            get_config("SCANLEDGER_WORKER_VERSION", project_dir, default=WORKER_VERSION)
        ),
        schema_version=schema_version(Base.metadata),
        scan_timeout=get_float("SCANLEDGER_SCAN_TIMEOUT", project_dir, DEFAULT_SCAN_TIMEOUT),
        go_version=get_config("SCANLEDGER_GO_VERSION", project_dir),
        verbose=get_bool("SCANLEDGER_VERBOSE", project_dir),
    )
