"""Bottom-up status roll-up from children to their parent issues.

For every parent issue with at least one child:

- all children done, parent not done           -> parent moves to done
- some child done or in progress, parent still
  in a not-started status                        -> parent moves to on-track
- anything else                                  -> left alone

Parents that are already past "not started" are never moved back or
sideways; manual status decisions on them win.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Optional

from src.models import RemoteEntity
from src.snapshot import RemoteSnapshot
from src.status import StatusTransitioner
from src.utils.settings import StatusVocabulary, SyncConfig

logger = logging.getLogger(__name__)

SnapshotLoader = Callable[[], RemoteSnapshot]


@dataclass
class CascadeResult:
    cascaded: int = 0
    failed: int = 0


def evaluate_parent_status(
    parent_status: Optional[str],
    child_statuses: list[Optional[str]],
    vocabulary: StatusVocabulary,
) -> Optional[str]:
    """Target status for a parent given its children's statuses, or None."""
    if not child_statuses:
        return None

    if all(vocabulary.is_done(s) for s in child_statuses):
        if vocabulary.is_done(parent_status):
            return None
        return vocabulary.cascade_done

    started = any(vocabulary.is_done(s) or vocabulary.is_in_progress(s) for s in child_statuses)
    if started and vocabulary.is_not_started(parent_status):
        return vocabulary.cascade_in_progress
    return None


class StatusCascadePropagator:
    """Rolls child statuses up the hierarchy one level pair at a time."""

    def __init__(self, transitioner: StatusTransitioner, config: SyncConfig) -> None:
        self.transitioner = transitioner
        self.config = config

    def propagate(self, snapshot_loader: SnapshotLoader) -> CascadeResult:
        """Run the cascade from the deepest level pair up to the top.

        ``snapshot_loader`` is called once per level pair so each pass sees
        the statuses written by the one below it.
        """
        result = CascadeResult()
        levels = self.config.levels
        for depth in range(len(levels) - 1, 0, -1):
            parent_kind, child_kind = levels[depth - 1], levels[depth]
            snapshot = snapshot_loader()
            if snapshot.degraded:
                logger.warning(f"Skipping {child_kind} -> {parent_kind} cascade: snapshot unavailable")
                continue
            logger.info(f"Cascading {child_kind} statuses to {parent_kind}s...")
            self._cascade_level(snapshot, parent_kind, child_kind, result)

        logger.info(f"Cascade complete: {result.cascaded} updated, {result.failed} failed")
        return result

    def _cascade_level(
        self,
        snapshot: RemoteSnapshot,
        parent_kind: str,
        child_kind: str,
        result: CascadeResult,
    ) -> None:
        for parent in snapshot.entities_of_kind(parent_kind):
            children = [c for c in snapshot.children_of(parent.remote_id) if c.kind == child_kind]
            target = evaluate_parent_status(
                parent.status, [c.status for c in children], self.config.statuses
            )
            if target is None:
                continue
            self._apply(parent, target, len(children), result)

    def _apply(self, parent: RemoteEntity, target: str, child_count: int, result: CascadeResult) -> None:
        logger.info(
            f"{parent.remote_id}: {child_count} children -> cascading '{parent.status}' to '{target}'"
        )
        if self.transitioner.transition_from(parent.remote_id, parent.status, target):
            result.cascaded += 1
        else:
            result.failed += 1
