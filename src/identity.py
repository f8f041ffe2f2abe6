"""Duplicate-prevention guard for sheet rows without a known issue.

Before a row is allowed to create an issue, its summary is matched against
the bulk snapshot and then, right before creation, against a live search.
Only when both come up empty is the row a genuine creation candidate.
"""

import logging
from typing import Optional

from src.models import SourceRecord
from src.normalize import normalize_display_text
from src.snapshot import RemoteSnapshot
from src.tracker_client import IssueTracker, TrackerError
from src.utils.settings import SyncConfig
from src.utils.state_utils import PersistentState

logger = logging.getLogger(__name__)


class IdentityResolver:
    """Binds unmapped sheet rows to existing issues by summary."""

    def __init__(
        self,
        client: IssueTracker,
        snapshot: RemoteSnapshot,
        state: PersistentState,
        config: SyncConfig,
    ) -> None:
        self.client = client
        self.snapshot = snapshot
        self.state = state
        self.config = config

    def resolve_from_snapshot(self, records: list[SourceRecord]) -> int:
        """Bind every unmapped record whose summary is already in the snapshot.

        Returns:
            Number of records newly mapped

        """
        mapped = 0
        for record in records:
            if self.state.issue_mapping.get(record.key):
                continue
            match = self.snapshot.find_by_summary(record.summary)
            if match:
                self.state.issue_mapping[record.key] = match
                mapped += 1
                logger.info(f"Mapped existing: {record.key} -> {match}")
        return mapped

    def resolve_live(self, record: SourceRecord) -> Optional[str]:
        """Search the tracker for an issue with exactly this summary.

        The snapshot can be stale by the time a row is processed, or may have
        missed the issue entirely, so this runs just before a create. Only an
        exact normalized match is accepted; a failed search means "not found".

        Returns:
            The bound issue key, or None

        """
        wanted = normalize_display_text(record.summary)
        if not wanted:
            return None
        try:
            hits = self.client.search_by_summary(
                record.summary, max_results=self.config.live_search_max_results
            )
        except TrackerError as e:
            logger.warning(f"Duplicate check search failed for {record.key}: {e}")
            return None

        for issue in hits:
            summary = (issue.get("fields") or {}).get("summary")
            if normalize_display_text(summary) == wanted:
                key = str(issue["key"])
                self.state.issue_mapping[record.key] = key
                logger.info(f"Found existing issue by search: {record.key} -> {key} (preventing duplicate)")
                return key
        return None
