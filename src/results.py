"""Run summary counters."""

from dataclasses import dataclass


@dataclass
class SyncResults:
    """Per-category counts for one sync run."""

    created: int = 0
    updated: int = 0
    skipped: int = 0  # unchanged fingerprint
    cleaned: int = 0  # stale mappings removed
    mapped_existing: int = 0  # bound to an existing issue by summary
    failed: int = 0
    failed_no_parent: int = 0  # subset of failed
    cascaded: int = 0
    cascade_failed: int = 0

    def summary_lines(self) -> list[str]:
        return [
            f"   Created: {self.created}",
            f"   Updated: {self.updated}",
            f"   Skipped: {self.skipped}",
            f"   Cleaned: {self.cleaned}",
            f"   Mapped existing: {self.mapped_existing}",
            f"   Failed: {self.failed} (no parent: {self.failed_no_parent})",
            f"   Cascaded: {self.cascaded} (failed: {self.cascade_failed})",
        ]
