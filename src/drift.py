"""Stale-mapping cleanup for issues deleted in the tracker."""

import logging

from src.snapshot import RemoteSnapshot
from src.utils.state_utils import PersistentState

logger = logging.getLogger(__name__)


def clean_stale_mappings(state: PersistentState, snapshot: RemoteSnapshot) -> int:
    """Forget mappings whose issue is no longer in the project.

    The stored fingerprint goes too, so an unchanged sheet row is treated
    as changed on this run and gets re-matched or recreated instead of
    being skipped forever.

    Args:
        state: Persistent state (mutated in place)
        snapshot: Current project snapshot

    Returns:
        Number of mappings removed

    """
    if snapshot.degraded:
        # Mappings dropped here are re-bound by summary on the next healthy run
        logger.warning("Project snapshot unavailable; every mapping will look stale")

    live_ids = snapshot.ids
    stale = [
        (sheet_key, issue_key)
        for sheet_key, issue_key in state.issue_mapping.items()
        if issue_key not in live_ids
    ]
    for sheet_key, issue_key in stale:
        logger.info(f"Deleted from Jira: {sheet_key} -> {issue_key} (removing mapping)")
        state.forget(sheet_key)

    if stale:
        logger.info(f"Cleaned {len(stale)} stale mappings")
    else:
        logger.info("No deleted issues found")
    return len(stale)
