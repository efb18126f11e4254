"""
Configuration management for scanledger.

Supports multiple configuration sources in order of priority:
1. Environment variables (highest priority)
2. Project .env file (.scanledger/.env)
3. Global config file (~/.scanledger/config.yml)
4. Default values (lowest priority)
"""

from .env_loader import load_env_file, load_global_config, load_project_config
from .getters import get_bool, get_config, get_float
from .project_setup import (
    ensure_project_storage_dir,
    find_project_dir,
    get_project_db_path,
    get_project_env_path,
)
from .settings import DEFAULT_SCAN_TIMEOUT, WORKER_VERSION, WorkerConfig, load_worker_config

__all__ = [
    "DEFAULT_SCAN_TIMEOUT",
    "WORKER_VERSION",
    "WorkerConfig",
    "ensure_project_storage_dir",
    "find_project_dir",
    "get_bool",
    "get_config",
    "get_float",
    "get_project_db_path",
    "get_project_env_path",
    "load_env_file",
    "load_global_config",
    "load_project_config",
    "load_worker_config",
]
