"""Hash utilities for the sheet-to-tracker sync.

This module provides the stable record fingerprint used to decide whether a
sheet row needs any sync work at all.
"""

import hashlib
import json
from collections.abc import Sequence
from typing import Any, Optional

from src.models import SourceRecord
from src.utils.settings import SyncConfig


def stable_values_hash(values: Sequence[Optional[Any]]) -> str:
    """Generate a stable hash for an ordered list of values.

    Args:
        values: Values to hash; order is significant, None hashes as ""

    Returns:
        SHA256 hash of the JSON-encoded values

    """
    # JSON list encoding keeps ["a|b", ""] and ["a", "b"] distinct
    normalized = json.dumps(
        ["" if v is None else str(v) for v in values],
        separators=(",", ":"),
        ensure_ascii=False,
    )
    return hashlib.sha256(normalized.encode("utf-8")).hexdigest()


def record_fingerprint(record: SourceRecord, config: SyncConfig) -> str:
    """Fingerprint the sync-relevant fields of a sheet record.

    Covers summary, parent, assignee, due date, status and every configured
    metric, always in that order. Row position and fetch time never enter
    the hash.

    Args:
        record: Sheet record
        config: Sync configuration (supplies the metric order)

    Returns:
        Hex digest

    """
    values: list[Optional[str]] = [
        record.summary,
        record.parent_key,
        record.assignee_email,
        record.due_date,
        record.status,
    ]
    values.extend(record.metrics.get(m.name) for m in config.metrics)
    return stable_values_hash(values)
