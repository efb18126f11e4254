"""Environment variable and configuration file loading."""

from pathlib import Path
from typing import Any

import yaml

GLOBAL_CONFIG_DIR = Path.home() / ".scanledger"


def load_env_file(env_path: Path) -> dict[str, str]:
    """Load KEY=VALUE pairs from a .env file."""
    env_vars = {}
    if env_path.exists():
        with open(env_path) as f:
            for line in f:
                line = line.strip()
                if line and not line.startswith("#") and "=" in line:
                    key, value = line.split("=", 1)
                    env_vars[key.strip()] = value.strip().strip("\"'")
    return env_vars


def load_global_config(config_dir: Path | None = None) -> dict[str, Any]:
    """Load global configuration from ~/.scanledger/config.yml."""
    config_path = (config_dir or GLOBAL_CONFIG_DIR) / "config.yml"
    if config_path.exists():
        with open(config_path) as f:
            return yaml.safe_load(f) or {}
    return {}


def load_project_config(project_dir: Path | None = None) -> dict[str, str]:
    """Load project-specific configuration from .scanledger/.env."""
    from .project_setup import find_project_dir, get_project_env_path

    if project_dir is None:
        project_dir = find_project_dir()
    if project_dir is None:
        return {}
    return load_env_file(get_project_env_path(project_dir))
