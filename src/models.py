"""Record types shared by the sync engine.

``SourceRecord`` is one sheet row, rebuilt on every fetch. ``RemoteEntity``
is one tracker issue as seen in a search result.
"""

from dataclasses import dataclass, field
from typing import Any, Mapping, Optional


@dataclass(frozen=True)
class SourceRecord:
    """One row of the planning sheet."""

    key: str
    kind: str
    summary: str
    parent_key: Optional[str] = None
    assignee_email: Optional[str] = None
    due_date: Optional[str] = None
    status: Optional[str] = None
    metrics: Mapping[str, str] = field(default_factory=dict)

    @property
    def label(self) -> str:
        """Short human-readable handle for log lines."""
        return f"{self.key} ({self.kind})"


@dataclass(frozen=True)
class RemoteEntity:
    """One tracker issue."""

    remote_id: str
    summary: str
    kind: Optional[str]
    parent_id: Optional[str]
    status: Optional[str]

    @classmethod
    def from_issue(cls, issue: Mapping[str, Any], kind: Optional[str] = None) -> "RemoteEntity":
        """Build from a Jira search hit (``{"key": ..., "fields": {...}}``).

        Args:
            issue: Raw issue payload
            kind: Hierarchy level already resolved by the caller; falls back
                to the issue type name

        """
        fields = issue.get("fields") or {}
        parent = fields.get("parent") or {}
        status = fields.get("status") or {}
        issuetype = fields.get("issuetype") or {}
        return cls(
            remote_id=str(issue["key"]),
            summary=str(fields.get("summary") or ""),
            kind=kind if kind is not None else issuetype.get("name"),
            parent_id=parent.get("key"),
            status=status.get("name"),
        )
