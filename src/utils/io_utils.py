"""IO utilities for settings loading and local sheet exports."""

import copy
import functools
from pathlib import Path
from typing import Any, Optional

import pandas as pd
import yaml

from src.utils.logging_utils import get_logger

logger = get_logger(__name__)

# Settings loading counter for debugging
_settings_load_count = 0

# Default settings, mirrored by config/settings.yaml
DEFAULTS: dict[str, Any] = {
    "source": {"sheet_name": "JIRA format"},
    "tracker": {
        "base_url": "https://leapfinance.atlassian.net",
        "project_key": "BUS",
        "max_results": 1000,
        "live_search_max_results": 5,
        "timeout_seconds": 30,
        "max_retries": 3,
        "retry_delay": 1.0,
    },
    "hierarchy": {
        "levels": ["JTBD", "Thread", "Milestone"],
        "issue_type_ids": {"JTBD": "10223", "Thread": "10224", "Milestone": "10225"},
    },
    "fields": {
        "key": "Issue Key",
        "kind": "Issue Type",
        "summary": "Summary",
        "parent": "Parent",
        "assignee": "Assignee (Owner Mail ID)",
        "due_date": "Due Date",
        "status": "Status",
    },
    "metrics": [
        {
            "name": "Function",
            "column": "Function  (add only for JTBD)",
            "custom_field": "customfield_10475",
            "default": "LS Core Business",
            "option": True,
        },
        {
            "name": "Metric In Focus",
            "column": "Metric in Focus (add only for JTBD)",
            "custom_field": "customfield_10478",
            "default": "N/A",
        },
        {
            "name": "Metric Target",
            "column": "Metric Target (add only for JTBD)",
            "custom_field": "customfield_10477",
            "default": "N/A",
        },
        {
            "name": "Metric Current State",
            "column": "Metric Current State (add only for JTBD)",
            "custom_field": "customfield_10511",
            "default": "N/A",
        },
        {
            "name": "Metric Start State",
            "column": "Metric Start State (add only for JTBD)",
            "custom_field": "customfield_10476",
            "default": "N/A",
        },
    ],
    "statuses": {
        "valid": [
            "On track",
            "Not on track",
            "Delayed",
            "Done",
            "Done, BAU",
            "Dependent",
            "Deprioritised",
            "Review Stage",
            "Not picked yet",
        ],
        "default": "Not picked yet",
        "done": ["Done", "Done, BAU"],
        "in_progress": ["On track", "Not on track", "Delayed", "Review Stage"],
        "not_started": ["Not picked yet", "To Do"],
        "cascade_done": "Done",
        "cascade_in_progress": "On track",
    },
    "due_date": {"default_offset_days": 30},
    "state": {"path": "data/sync_state.json"},
    "logging": {
        "level": "INFO",
        "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        "file": "sync.log",
    },
}

SUPPORTED_SOURCE_FORMATS = (".csv", ".xlsx")


def deep_merge(base: dict[str, Any], update: dict[str, Any]) -> dict[str, Any]:
    """Recursively merge ``update`` into ``base`` (in place) and return it."""
    for key, value in update.items():
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            deep_merge(base[key], value)
        else:
            base[key] = value
    return base


@functools.lru_cache(maxsize=1)
def load_settings(path: str) -> dict[str, Any]:
    """Load settings from YAML file with defaults.

    This function is cached to prevent repeated file I/O and parsing.
    Use reload_settings() to force a fresh load.

    Args:
        path: Path to settings YAML file

    Returns:
        Dictionary with settings (user config merged over defaults)

    """
    global _settings_load_count
    _settings_load_count += 1

    logger.debug(f"Settings loaded (count: {_settings_load_count}) from {path}")

    defaults = copy.deepcopy(DEFAULTS)
    try:
        with open(path) as f:
            user_config = yaml.safe_load(f) or {}
        if not isinstance(user_config, dict):
            logger.warning(f"Settings file {path} is not a mapping. Using defaults.")
            return defaults
        return deep_merge(defaults, user_config)

    except FileNotFoundError:
        logger.warning(f"Settings file not found: {path}. Using defaults.")
        return defaults
    except yaml.YAMLError as e:
        logger.error(f"Invalid YAML in {path}: {e}. Using defaults.")
        return defaults


def reload_settings(path: str) -> dict[str, Any]:
    """Force reload settings from file (clears cache).

    Args:
        path: Path to settings YAML file

    Returns:
        Freshly loaded settings

    """
    load_settings.cache_clear()
    return load_settings(path)


def get_settings_load_count() -> int:
    """Get the total number of times settings have been loaded."""
    return _settings_load_count


def detect_file_format(path: str) -> str:
    """Return 'csv', 'xlsx' or 'unsupported' based on the file extension."""
    suffix = Path(path).suffix.lower()
    if suffix == ".csv":
        return "csv"
    if suffix == ".xlsx":
        return "xlsx"
    return "unsupported"


def read_source_file(path: str, *, sheet: Optional[str] = None) -> pd.DataFrame:
    """Read a local CSV/XLSX export of the planning sheet.

    Every cell is read as a string and blanks stay empty strings, so the
    frame matches what the Google Sheets reader produces.

    Args:
        path: Path to the export
        sheet: Optional Excel sheet name (first sheet when omitted)

    Returns:
        DataFrame with stripped string headers and values

    Raises:
        FileNotFoundError: If the file does not exist
        ValueError: If the file format is unsupported

    """
    if not Path(path).exists():
        raise FileNotFoundError(f"Source file not found: {path}")

    fmt = detect_file_format(path)
    if fmt == "csv":
        df = pd.read_csv(path, dtype=str, keep_default_na=False)
    elif fmt == "xlsx":
        df = pd.read_excel(
            path, dtype=str, engine="openpyxl", sheet_name=sheet or 0, keep_default_na=False
        )
    else:
        raise ValueError(
            f"Unsupported source format for {path} (expected one of {SUPPORTED_SOURCE_FORMATS})"
        )

    df.columns = [str(c).strip() for c in df.columns]
    df = df.fillna("").astype(str).apply(lambda col: col.str.strip())

    logger.info(f"Loaded {len(df)} rows, {len(df.columns)} columns from {path}")
    return df
