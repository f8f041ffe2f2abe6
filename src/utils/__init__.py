"""Utility modules for the sheet-to-tracker sync.
"""

from .hash_utils import record_fingerprint, stable_values_hash
from .io_utils import load_settings, read_source_file, reload_settings
from .logging_utils import setup_logging
from .path_utils import get_config_path, get_project_root, resolve_state_path
from .settings import ConfigError, SyncConfig, build_sync_config, get_credentials
from .state_utils import PersistentState, StateStore

__all__ = [
    # Logging utilities
    "setup_logging",
    # Path utilities
    "get_project_root",
    "get_config_path",
    "resolve_state_path",
    # I/O utilities
    "load_settings",
    "reload_settings",
    "read_source_file",
    # Configuration
    "ConfigError",
    "SyncConfig",
    "build_sync_config",
    "get_credentials",
    # Hash utilities
    "stable_values_hash",
    "record_fingerprint",
    # State
    "PersistentState",
    "StateStore",
]
