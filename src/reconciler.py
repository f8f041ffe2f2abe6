"""Dependency-ordered create/update of sheet rows in the tracker.

Levels are processed strictly top-down: every JTBD is handled before any
Thread, every Thread before any Milestone, so a parent created in this run
already has its issue key in the mapping when its children need it.

A row counts as synced (and its fingerprint is stored) only when both the
create/update and the status transition succeed. Failures are isolated per
row: logged, counted, and the batch moves on.
"""

import logging
from typing import Any, Optional

from src.change_set import ChangeSet
from src.identity import IdentityResolver
from src.models import SourceRecord
from src.normalize import default_due_date, parse_due_date
from src.results import SyncResults
from src.status import StatusTransitioner
from src.tracker_client import IssueTracker, NotFoundError, TrackerError
from src.users import UserResolver
from src.utils.settings import SyncConfig
from src.utils.state_utils import PersistentState

logger = logging.getLogger(__name__)

DRY_RUN_PREFIX = "DRYRUN-"


class HierarchicalReconciler:
    """Applies changed sheet rows to the tracker in hierarchy order."""

    def __init__(
        self,
        client: IssueTracker,
        state: PersistentState,
        config: SyncConfig,
        resolver: IdentityResolver,
        transitioner: StatusTransitioner,
        users: UserResolver,
        results: SyncResults,
        dry_run: bool = False,
    ) -> None:
        self.client = client
        self.state = state
        self.config = config
        self.resolver = resolver
        self.transitioner = transitioner
        self.users = users
        self.results = results
        self.dry_run = dry_run
        self._records_by_key: dict[str, SourceRecord] = {}

    def reconcile(self, change_set: ChangeSet, records: list[SourceRecord]) -> None:
        """Process every changed row, one hierarchy level at a time.

        Args:
            change_set: Output of the change-set selector
            records: All keyed sheet rows (used to check parent levels)

        """
        self._records_by_key = {r.key: r for r in records if r.key}

        for record in change_set.changed:
            if self.config.level_index(record.kind) is None:
                logger.error(
                    f"Unknown issue type '{record.kind}' for {record.key}; "
                    f"expected one of {', '.join(self.config.levels)}"
                )
                self.results.failed += 1

        for level in self.config.levels:
            batch = change_set.by_kind(level)
            logger.info(f"Processing {len(batch)} {level}s...")
            for record in batch:
                try:
                    self.process_record(record, change_set.fingerprints[record.key])
                except Exception:
                    logger.exception(f"Unexpected error processing {record.key}")
                    self.results.failed += 1

    def process_record(self, record: SourceRecord, fingerprint: str) -> None:
        """Create or update one row and record the outcome."""
        remote_id = self.state.issue_mapping.get(record.key)
        if not remote_id:
            # Last guard against duplicates before creating
            remote_id = self.resolver.resolve_live(record)
            if remote_id:
                self.results.mapped_existing += 1

        if remote_id:
            self._update(record, remote_id, fingerprint)
        else:
            self._create(record, fingerprint)

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    def _parent_for(self, record: SourceRecord) -> tuple[bool, Optional[str]]:
        """Parent issue key for a new issue.

        Returns:
            (ok, parent_id). ``ok`` is False when the row cannot be created
            yet; the failure has already been logged and counted.

        """
        parent_kind = self.config.parent_level(record.kind)
        if parent_kind is None:
            return True, None

        parent_id = self.state.issue_mapping.get(record.parent_key) if record.parent_key else None
        if not parent_id:
            logger.error(f"No parent for: {record.key} (parent '{record.parent_key or ''}' is not synced)")
            self.results.failed += 1
            self.results.failed_no_parent += 1
            return False, None

        parent_record = self._records_by_key.get(record.parent_key or "")
        if parent_record is None or parent_record.kind != parent_kind:
            found = parent_record.kind if parent_record else "missing from sheet"
            logger.error(
                f"Invalid parent for {record.key}: {record.kind} must sit under a {parent_kind}, "
                f"but {record.parent_key} is {found}"
            )
            self.results.failed += 1
            return False, None

        return True, parent_id

    def build_create_fields(self, record: SourceRecord, parent_id: Optional[str]) -> dict[str, Any]:
        """Field payload for creating ``record``."""
        fields: dict[str, Any] = {
            "summary": record.summary,
            "project": {"key": self.config.project_key},
            "issuetype": {"id": self.config.issue_type_ids[record.kind]},
            "duedate": parse_due_date(record.due_date)
            or default_due_date(self.config.default_due_offset_days),
        }
        if parent_id:
            fields["parent"] = {"key": parent_id}

        account_id = self.users.resolve(record.assignee_email)
        if account_id:
            fields["assignee"] = {"accountId": account_id}

        # Top-level custom fields are mandatory in the tracker
        if record.kind == self.config.top_level:
            for metric in self.config.metrics:
                value = (record.metrics.get(metric.name) or "").strip() or metric.default
                fields[metric.custom_field] = {"value": value} if metric.option else value

        return fields

    def _create(self, record: SourceRecord, fingerprint: str) -> None:
        ok, parent_id = self._parent_for(record)
        if not ok:
            return

        fields = self.build_create_fields(record, parent_id)
        if self.dry_run:
            new_id = f"{DRY_RUN_PREFIX}{record.key}"
            logger.info(f"[dry-run] Would create {record.label} under {parent_id or 'project'}")
        else:
            logger.info(f"Creating {record.key}...")
            try:
                new_id = self.client.create_issue(fields)
            except TrackerError as e:
                logger.error(f"Failed: {record.key} - {e}")
                self.results.failed += 1
                return
            logger.info(f"Created: {record.key} -> {new_id}")

        # Children later in this run look their parent up here
        self.state.issue_mapping[record.key] = new_id

        if self.transitioner.transition(new_id, record.status or self.config.statuses.default):
            self.state.last_hashes[record.key] = fingerprint
            self.results.created += 1
        else:
            self.results.failed += 1

    # ------------------------------------------------------------------
    # Update
    # ------------------------------------------------------------------

    def build_update_fields(self, record: SourceRecord) -> dict[str, Any]:
        """Field payload for updating ``record``; unparseable dates are left alone."""
        fields: dict[str, Any] = {"summary": record.summary}
        due = parse_due_date(record.due_date)
        if due:
            fields["duedate"] = due
        account_id = self.users.resolve(record.assignee_email)
        if account_id:
            fields["assignee"] = {"accountId": account_id}
        return fields

    def _update(self, record: SourceRecord, remote_id: str, fingerprint: str) -> None:
        fields = self.build_update_fields(record)
        if self.dry_run:
            logger.info(f"[dry-run] Would update {record.key} -> {remote_id}")
        else:
            try:
                self.client.update_issue(remote_id, fields)
            except NotFoundError as e:
                # Deleted since the snapshot; the next run recreates or re-matches it
                logger.error(f"Update failed: {record.key} - {remote_id} no longer exists ({e})")
                self.state.forget(record.key)
                self.results.failed += 1
                return
            except TrackerError as e:
                logger.error(f"Update failed: {record.key} - {e}")
                self.results.failed += 1
                return

        if self.transitioner.transition(remote_id, record.status or self.config.statuses.default):
            logger.info(f"Updated: {record.key} -> {remote_id}")
            self.state.last_hashes[record.key] = fingerprint
            self.results.updated += 1
        else:
            self.results.failed += 1
