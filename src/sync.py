"""
Sheet -> Jira sync run orchestration and CLI.

One run: fetch the planning sheet, snapshot the project, drop mappings for
issues deleted in Jira, pick the rows whose fingerprint changed, bind them
to existing issues by summary, create/update level by level, roll statuses
up the hierarchy, and save the state once at the end.
"""

import argparse
import logging
import sys
from typing import Optional

from src.cascade import StatusCascadePropagator
from src.change_set import select_changed_records
from src.drift import clean_stale_mappings
from src.identity import IdentityResolver
from src.models import SourceRecord
from src.reconciler import HierarchicalReconciler
from src.results import SyncResults
from src.sheet_source import SourceDataError, load_source_records
from src.snapshot import RemoteSnapshot, fetch_snapshot
from src.status import StatusTransitioner
from src.tracker_client import IssueTracker, JiraClient
from src.users import UserResolver
from src.utils.io_utils import load_settings
from src.utils.logging_utils import setup_logging
from src.utils.path_utils import get_config_path, resolve_state_path
from src.utils.settings import ConfigError, SyncConfig, build_sync_config, get_credentials
from src.utils.state_utils import StateStore

logger = logging.getLogger(__name__)

__version__ = "1.0.0"


class SyncEngine:
    """Runs one reconciliation pass against an issue tracker."""

    def __init__(
        self,
        client: IssueTracker,
        store: StateStore,
        config: SyncConfig,
        dry_run: bool = False,
    ) -> None:
        self.client = client
        self.store = store
        self.config = config
        self.dry_run = dry_run

    def _snapshot(self) -> RemoteSnapshot:
        return fetch_snapshot(self.client, self.config)

    def run(self, records: list[SourceRecord]) -> SyncResults:
        """Reconcile ``records`` and persist the resulting state.

        Args:
            records: Freshly fetched sheet rows

        Returns:
            Counts for the run summary

        """
        results = SyncResults()
        state = self.store.load()

        snapshot = self._snapshot()
        results.cleaned = clean_stale_mappings(state, snapshot)

        change_set = select_changed_records(records, state, self.config)
        results.skipped = len(change_set.unchanged)
        if change_set.ignored:
            logger.info(f"Ignoring {change_set.ignored} rows without an issue key")

        resolver = IdentityResolver(self.client, snapshot, state, self.config)
        results.mapped_existing = resolver.resolve_from_snapshot(change_set.changed)

        transitioner = StatusTransitioner(self.client, self.config.statuses, dry_run=self.dry_run)
        reconciler = HierarchicalReconciler(
            self.client,
            state,
            self.config,
            resolver,
            transitioner,
            UserResolver(self.client, state),
            results,
            dry_run=self.dry_run,
        )
        reconciler.reconcile(change_set, records)

        cascade = StatusCascadePropagator(transitioner, self.config).propagate(self._snapshot)
        results.cascaded = cascade.cascaded
        results.cascade_failed = cascade.failed

        if self.dry_run:
            logger.info("[dry-run] State not saved")
        else:
            self.store.save(state)

        logger.info("Sync complete:")
        for line in results.summary_lines():
            logger.info(line)
        return results


def run_sync(
    config_path: str,
    *,
    state_path: Optional[str] = None,
    input_path: Optional[str] = None,
    sheet: Optional[str] = None,
    dry_run: bool = False,
    log_level: Optional[str] = None,
) -> SyncResults:
    """Load configuration and credentials, then run one sync.

    Raises:
        ConfigError: If settings or credentials are missing or malformed
        SourceDataError: If the planning sheet cannot be read

    """
    settings = load_settings(config_path)
    log_cfg = settings.get("logging") or {}
    setup_logging(
        level=log_level or log_cfg.get("level", "INFO"),
        log_file=log_cfg.get("file"),
        fmt=log_cfg.get("format") or "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    config = build_sync_config(settings)
    creds = get_credentials(config, require_sheet=input_path is None)

    logger.info(f"Starting sync for project {config.project_key}{' (dry run)' if dry_run else ''}")
    records = load_source_records(
        config,
        input_path=input_path,
        sheet=sheet or creds.sheet_name,
        spreadsheet_id=creds.sheet_id,
        credentials_info=creds.google_credentials,
    )

    store = StateStore(resolve_state_path(config.state_path, state_path))
    with JiraClient(
        creds.jira_base_url,
        creds.jira_email,
        creds.jira_token,
        config.project_key,
        timeout=config.timeout_seconds,
        max_retries=config.max_retries,
        retry_delay=config.retry_delay,
    ) as client:
        return SyncEngine(client, store, config, dry_run=dry_run).run(records)


def main(argv: Optional[list[str]] = None) -> None:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Sync the planning sheet into the Jira JTBD/Thread/Milestone hierarchy",
    )
    parser.add_argument(
        "--config",
        default=str(get_config_path()),
        help="Configuration file path",
    )
    parser.add_argument("--state-path", help="Override the sync state file path")
    parser.add_argument("--input", help="Local CSV/XLSX export to read instead of Google Sheets")
    parser.add_argument("--sheet", help="Sheet tab (Google Sheets) or Excel sheet name")
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Plan the sync without writing to Jira or the state file",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Override the configured log level",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"Sheet Tracker Sync v{__version__}",
        help="Show version information and exit",
    )

    args = parser.parse_args(argv)

    try:
        run_sync(
            args.config,
            state_path=args.state_path,
            input_path=args.input,
            sheet=args.sheet,
            dry_run=args.dry_run,
            log_level=args.log_level,
        )
    except ConfigError as e:
        logger.error(f"Configuration error: {e}")
        sys.exit(2)
    except KeyboardInterrupt:
        logger.warning("Sync interrupted by user (Ctrl+C)")
        sys.exit(130)  # Standard exit code for interrupt
    except SourceDataError as e:
        logger.error(f"Sync failed: {e}")
        sys.exit(1)
    except Exception:
        logger.exception("Sync failed")
        sys.exit(1)


if __name__ == "__main__":
    main()
