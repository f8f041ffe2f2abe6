"""Status transitions by capability probe.

The tracker's workflow graph is not known up front, so moving an issue to a
status works by asking which transitions are available right now and taking
the one whose destination has the wanted name:

1. The target must be one of the configured status labels (matched
   case-insensitively); anything else is rejected, never guessed.
2. If the issue is already in the target status, nothing is sent.
3. Otherwise the available transitions are listed and the first whose
   destination name equals the target (case-insensitively) is executed.
4. No such transition means the workflow forbids the jump from the current
   status. That is a soft failure: reported as ``False``, not retried.
"""

import logging
from typing import Any, Optional

from src.tracker_client import IssueTracker, TrackerError
from src.utils.settings import StatusVocabulary

logger = logging.getLogger(__name__)


def match_transition(transitions: list[dict[str, Any]], target: str) -> Optional[dict[str, Any]]:
    """First transition whose destination status name equals ``target``."""
    wanted = target.strip().lower()
    for transition in transitions:
        to_name = str((transition.get("to") or {}).get("name") or "")
        if to_name.strip().lower() == wanted:
            return transition
    return None


class StatusTransitioner:
    """Moves issues to a named status through whatever transition allows it."""

    def __init__(self, client: IssueTracker, vocabulary: StatusVocabulary, dry_run: bool = False) -> None:
        self.client = client
        self.vocabulary = vocabulary
        self.dry_run = dry_run

    def transition(self, remote_id: str, target: Optional[str]) -> bool:
        """Move ``remote_id`` to ``target``, reading its current status first.

        Returns:
            True if the issue is (now) in the target status

        """
        if not target:
            return True
        canonical = self._canonical(remote_id, target)
        if canonical is None:
            return False
        if self.dry_run:
            logger.info(f"[dry-run] {remote_id}: would ensure status '{canonical}'")
            return True

        try:
            current = self.client.get_issue_status(remote_id)
        except TrackerError as e:
            logger.error(f"Transition failed for {remote_id}: {e}")
            return False
        return self._apply(remote_id, current, canonical)

    def transition_from(self, remote_id: str, current: Optional[str], target: str) -> bool:
        """Like ``transition`` when the caller already knows the current status."""
        canonical = self._canonical(remote_id, target)
        if canonical is None:
            return False
        if self.dry_run:
            logger.info(f"[dry-run] {remote_id}: would move '{current}' -> '{canonical}'")
            return True
        return self._apply(remote_id, current, canonical)

    def _canonical(self, remote_id: str, target: str) -> Optional[str]:
        canonical = self.vocabulary.canonical(target)
        if canonical is None:
            logger.warning(
                f"'{target}' is not a valid status for {remote_id}. "
                f"Allowed: {', '.join(self.vocabulary.valid)}"
            )
        return canonical

    def _apply(self, remote_id: str, current: Optional[str], target: str) -> bool:
        if current and current.strip().lower() == target.lower():
            logger.info(f"{remote_id}: Already in '{current}' - no change needed")
            return True

        try:
            transitions = self.client.get_transitions(remote_id)
            chosen = match_transition(transitions, target)
            if chosen is None:
                available = ", ".join(
                    str((t.get("to") or {}).get("name")) for t in transitions
                ) or "None"
                logger.info(f"Cannot transition {remote_id} from '{current}' to '{target}'.")
                logger.info(f"   Available transitions: {available}")
                return False
            self.client.transition_issue(remote_id, str(chosen["id"]))
        except TrackerError as e:
            logger.error(f"Transition failed for {remote_id}: {e}")
            return False

        logger.info(f"{remote_id}: Status changed: '{current}' -> '{target}'")
        return True
