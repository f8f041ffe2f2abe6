"""Path utilities for the sheet-to-tracker sync."""

from pathlib import Path
from typing import Optional


def get_project_root() -> Path:
    """Directory holding ``config/`` and the default ``data/`` state location."""
    return Path(__file__).parent.parent.parent


def get_config_path(filename: str = "settings.yaml") -> Path:
    """Locate ``config/<filename>`` from the working directory upwards.

    Args:
        filename: Config file name (default: settings.yaml)

    Returns:
        First match walking up from the cwd, else ``config/<filename>``

    """
    cwd = Path.cwd()
    for candidate in [cwd, *cwd.parents]:
        config_file = candidate / "config" / filename
        if config_file.is_file():
            return config_file
    return Path("config") / filename


def resolve_state_path(configured: str, override: Optional[str] = None) -> Path:
    """Resolve the sync state file location.

    Relative paths are taken relative to the project root so scheduled runs
    started from another working directory still find the same file.
    """
    path = Path(override or configured)
    if not path.is_absolute():
        path = get_project_root() / path
    return path
