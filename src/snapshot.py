"""Bulk snapshot of the tracker project.

One paged search returns every issue in the project (up to ``max_results``).
The snapshot backs drift cleaning, duplicate detection and the status
cascade. Issues past the bound are simply not in the snapshot, so the
project must stay below it.
"""

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Optional

from src.models import RemoteEntity
from src.normalize import normalize_display_text
from src.tracker_client import IssueTracker, TrackerError
from src.utils.settings import SyncConfig

logger = logging.getLogger(__name__)


@dataclass
class RemoteSnapshot:
    """Issues of the project as of one bulk search."""

    entities: list[RemoteEntity] = field(default_factory=list)
    degraded: bool = False  # True when the search failed and this is a stand-in

    def __post_init__(self) -> None:
        self.by_id: dict[str, RemoteEntity] = {e.remote_id: e for e in self.entities}
        self._by_summary: dict[str, str] = {}
        self._children: dict[str, list[RemoteEntity]] = defaultdict(list)
        for entity in self.entities:
            # Last one wins on duplicate summaries, as in the search order
            norm = normalize_display_text(entity.summary)
            if norm:
                self._by_summary[norm] = entity.remote_id
            if entity.parent_id:
                self._children[entity.parent_id].append(entity)

    @property
    def ids(self) -> set[str]:
        return set(self.by_id)

    def __len__(self) -> int:
        return len(self.entities)

    def find_by_summary(self, summary: str) -> Optional[str]:
        """Issue key whose normalized summary equals ``summary``'s."""
        return self._by_summary.get(normalize_display_text(summary))

    def children_of(self, remote_id: str) -> list[RemoteEntity]:
        return list(self._children.get(remote_id, ()))

    def entities_of_kind(self, kind: str) -> list[RemoteEntity]:
        return [e for e in self.entities if e.kind == kind]


def fetch_snapshot(client: IssueTracker, config: SyncConfig) -> RemoteSnapshot:
    """Fetch the project snapshot, degrading to empty on failure.

    A failed search never aborts the run: an empty snapshot only means no
    drift is detected and no name matches are found, which leaves the live
    duplicate check in the reconciler as the guard.
    """
    try:
        issues = client.search_project_issues(max_results=config.max_results)
    except TrackerError as e:
        logger.error(f"Jira search failed: {e}")
        return RemoteSnapshot(degraded=True)

    entities = []
    for issue in issues:
        try:
            issuetype = (issue.get("fields") or {}).get("issuetype") or {}
            kind = config.kind_for_issue_type(issuetype.get("id"), issuetype.get("name"))
            entities.append(RemoteEntity.from_issue(issue, kind=kind))
        except (KeyError, TypeError, AttributeError) as e:
            logger.warning(f"Skipping malformed issue in search result: {e}")

    if len(issues) >= config.max_results:
        logger.warning(
            f"Snapshot hit the {config.max_results}-issue bound; issues beyond it are invisible "
            "to drift cleaning and duplicate detection"
        )
    snapshot = RemoteSnapshot(entities=entities)
    logger.info(f"Found {len(snapshot)} existing Jira issues")
    return snapshot
