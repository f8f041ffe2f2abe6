"""
Persistent sync state.

The state file holds three maps: sheet key -> issue key, assignee email ->
account id, and sheet key -> last applied fingerprint. It is read once at
the start of a run and rewritten in full once at the end.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional, Union

STATE_VERSION = 1

# camelCase layout written by earlier versions of the sync
LEGACY_KEYS = {
    "issueMapping": "issue_mapping",
    "userCache": "user_cache",
    "lastHashes": "last_hashes",
}

logger = logging.getLogger(__name__)


@dataclass
class PersistentState:
    """Identity mapping, user cache and fingerprint cache for one project."""

    issue_mapping: Dict[str, str] = field(default_factory=dict)  # sheet key -> issue key
    user_cache: Dict[str, str] = field(default_factory=dict)  # email -> account id
    last_hashes: Dict[str, str] = field(default_factory=dict)  # sheet key -> fingerprint
    version: int = STATE_VERSION
    saved_at: Optional[str] = None

    def forget(self, key: str) -> None:
        """Drop the mapping and fingerprint for a sheet key."""
        self.issue_mapping.pop(key, None)
        self.last_hashes.pop(key, None)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "version": self.version,
            "saved_at": self.saved_at,
            "issue_mapping": dict(sorted(self.issue_mapping.items())),
            "user_cache": dict(sorted(self.user_cache.items())),
            "last_hashes": dict(sorted(self.last_hashes.items())),
        }


def migrate_legacy_keys(raw: Dict[str, Any]) -> Dict[str, Any]:
    """Map camelCase keys from the legacy layout onto the current names."""
    migrated = dict(raw)
    for legacy, current in LEGACY_KEYS.items():
        if legacy in migrated:
            value = migrated.pop(legacy)
            migrated.setdefault(current, value)
    return migrated


def _string_map(raw: Dict[str, Any], name: str, source: Path) -> Dict[str, str]:
    value = raw.get(name, {})
    if not isinstance(value, dict):
        logger.warning(f"Ignoring malformed '{name}' in {source}: expected an object")
        return {}
    return {str(k): str(v) for k, v in value.items() if k and v}


class StateStore:
    """Loads and saves ``PersistentState`` as a single JSON file."""

    def __init__(self, path: Union[str, Path]) -> None:
        self.path = Path(path)

    def load(self) -> PersistentState:
        """Load state, falling back to an empty state on any problem.

        A missing file, unreadable file, corrupt JSON or wrong top-level
        type all yield an empty ``PersistentState``; a run never fails
        because of its own state file.
        """
        if not self.path.exists():
            logger.info(f"No state file at {self.path}; starting with empty state")
            return PersistentState()

        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as e:
            logger.error(f"Corrupted state file {self.path}: {e}; starting with empty state")
            return PersistentState()
        except OSError as e:
            logger.warning(f"Failed to read state file {self.path}: {e}; starting with empty state")
            return PersistentState()

        if not isinstance(raw, dict):
            logger.error(f"State file {self.path} does not contain an object; starting with empty state")
            return PersistentState()

        if any(k in raw for k in LEGACY_KEYS):
            logger.info(f"Migrating legacy state layout in {self.path}")
            raw = migrate_legacy_keys(raw)

        version = raw.get("version", STATE_VERSION)
        if not isinstance(version, int) or version > STATE_VERSION:
            logger.warning(
                f"State file {self.path} has version {version!r}; reading it as version {STATE_VERSION}"
            )

        state = PersistentState(
            issue_mapping=_string_map(raw, "issue_mapping", self.path),
            user_cache=_string_map(raw, "user_cache", self.path),
            last_hashes=_string_map(raw, "last_hashes", self.path),
            saved_at=raw.get("saved_at"),
        )
        logger.info(
            f"Loaded state: {len(state.issue_mapping)} mappings, "
            f"{len(state.user_cache)} cached users, {len(state.last_hashes)} fingerprints"
        )
        return state

    def save(self, state: PersistentState) -> None:
        """Overwrite the state file with ``state``.

        The whole aggregate is written to a temporary file in the same
        directory and swapped in with ``os.replace``, so readers only ever
        see the old file or the new one.

        Raises:
            OSError: If the file cannot be written

        """
        state.version = STATE_VERSION
        state.saved_at = datetime.now().isoformat(timespec="seconds")
        self._atomic_write(self.path, json.dumps(state.to_dict(), indent=2, ensure_ascii=False))
        logger.info(f"Saved state to {self.path}")

    @staticmethod
    def _atomic_write(path: Path, content: str) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        with tempfile.NamedTemporaryFile(
            "w", delete=False, dir=str(path.parent), encoding="utf-8", suffix=".tmp"
        ) as tmp:
            tmp.write(content)
            tmp_path = Path(tmp.name)
        try:
            os.replace(tmp_path, path)
        except OSError:
            tmp_path.unlink(missing_ok=True)
            raise
