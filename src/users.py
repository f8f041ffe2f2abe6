"""Assignee email -> tracker account id lookup, cached in the sync state."""

import logging
from typing import Optional

from src.tracker_client import IssueTracker, TrackerError
from src.utils.state_utils import PersistentState

logger = logging.getLogger(__name__)


class UserResolver:
    """Resolves assignee emails, remembering hits across runs."""

    def __init__(self, client: IssueTracker, state: PersistentState) -> None:
        self.client = client
        self.state = state
        self._misses: set[str] = set()

    def resolve(self, email: Optional[str]) -> Optional[str]:
        """Account id for ``email``; None when blank, unknown or the lookup fails.

        Misses are remembered for the rest of the run only, so a user added
        to the tracker later is picked up by the next run.
        """
        if not email:
            return None
        key = email.strip().lower()
        cached = self.state.user_cache.get(key)
        if cached:
            return cached
        if key in self._misses:
            return None

        try:
            account_id = self.client.find_account_id(key)
        except TrackerError as e:
            logger.error(f"User search failed: {email}: {e}")
            return None

        if account_id:
            self.state.user_cache[key] = account_id
            return account_id
        logger.warning(f"No tracker user found for {email}; leaving assignee unset")
        self._misses.add(key)
        return None
