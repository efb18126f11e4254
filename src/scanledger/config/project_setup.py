"""Project storage directory setup."""

from pathlib import Path

PROJECT_MARKER = ".scanledger"
DB_FILENAME = "scanledger.db"

ENV_TEMPLATE = """# scanledger configuration
# Uncomment and fill in your values

# Scanner binary (govulncheck-compatible, JSON output)
# SCANLEDGER_SCANNER_PATH=govulncheck

# Go toolchain used for version detection and binary builds
# SCANLEDGER_GO_PATH=go

# Vulnerability database: local directory or https URL
# SCANLEDGER_VULNDB=/path/to/vulndb

# SQLAlchemy URL of the result store (defaults to a SQLite file here)
# SCANLEDGER_DB_URL=sqlite:////path/to/scanledger.db

# Bump when scanning or processing logic changes
# SCANLEDGER_WORKER_VERSION=1

# Per-scan timeout in seconds
# SCANLEDGER_SCAN_TIMEOUT=1800

# Toolchain version recorded in work versions (asks the toolchain when unset)
# SCANLEDGER_GO_VERSION=go1.22.1

# SCANLEDGER_VERBOSE=false
"""


def find_project_dir(start: Path | None = None) -> Path | None:
    """Walk up from ``start`` (default: cwd) to a directory with a .scanledger marker."""
    current = (start or Path.cwd()).resolve()
    for candidate in (current, *current.parents):
        if (candidate / PROJECT_MARKER).is_dir():
            return candidate
    return None


def get_project_storage_dir(project_dir: Path) -> Path:
    return project_dir / PROJECT_MARKER


def ensure_project_storage_dir(project_dir: Path) -> Path:
    """Create the storage directory and its .env template; return the directory."""
    storage = get_project_storage_dir(project_dir)
    storage.mkdir(parents=True, exist_ok=True)
    env_path = storage / ".env"
    if not env_path.exists():
        env_path.write_text(ENV_TEMPLATE)
    return storage


def get_project_db_path(project_dir: Path) -> Path:
    """Get the project database path."""
    return get_project_storage_dir(project_dir) / DB_FILENAME


def get_project_env_path(project_dir: Path) -> Path:
    """Get the project .env path."""
    return get_project_storage_dir(project_dir) / ".env"
