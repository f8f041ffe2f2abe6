"""Change detection between the sheet and the last applied fingerprints."""

import logging
from dataclasses import dataclass, field

from src.models import SourceRecord
from src.utils.hash_utils import record_fingerprint
from src.utils.settings import SyncConfig
from src.utils.state_utils import PersistentState

logger = logging.getLogger(__name__)


@dataclass
class ChangeSet:
    """Sheet records split by whether they need sync work."""

    changed: list[SourceRecord] = field(default_factory=list)
    unchanged: list[SourceRecord] = field(default_factory=list)
    fingerprints: dict[str, str] = field(default_factory=dict)  # key -> fresh fingerprint
    ignored: int = 0  # rows without a key

    def by_kind(self, kind: str) -> list[SourceRecord]:
        return [r for r in self.changed if r.kind == kind]


def select_changed_records(
    records: list[SourceRecord], state: PersistentState, config: SyncConfig
) -> ChangeSet:
    """Partition keyed records into changed and unchanged.

    Must run after stale mappings are cleaned, so rows whose issue was
    deleted come back as changed.
    """
    result = ChangeSet()
    for record in records:
        if not record.key:
            result.ignored += 1
            continue
        fingerprint = record_fingerprint(record, config)
        if state.last_hashes.get(record.key) == fingerprint:
            result.unchanged.append(record)
        else:
            result.changed.append(record)
            result.fingerprints[record.key] = fingerprint

    logger.info(f"{len(result.changed)} changed rows to process")
    return result
