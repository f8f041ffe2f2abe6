"""
Typed sync configuration.

The raw settings dict produced by ``load_settings`` is turned into an
immutable ``SyncConfig`` once per run and handed to every component, so
tests can build their own fixtures instead of patching module globals.
"""

import json
import os
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Mapping, Optional

__all__ = [
    "ConfigError",
    "Credentials",
    "FieldNames",
    "MetricField",
    "StatusVocabulary",
    "SyncConfig",
    "build_sync_config",
    "get_credentials",
]


class ConfigError(Exception):
    """Raised when settings or credentials are missing or malformed."""


@dataclass(frozen=True)
class FieldNames:
    """Sheet header names for the sync-managed columns."""

    key: str = "Issue Key"
    kind: str = "Issue Type"
    summary: str = "Summary"
    parent: str = "Parent"
    assignee: str = "Assignee (Owner Mail ID)"
    due_date: str = "Due Date"
    status: str = "Status"


@dataclass(frozen=True)
class MetricField:
    """A top-level-only sheet column written to a mandatory custom field."""

    name: str
    column: str
    custom_field: str
    default: str = "N/A"
    option: bool = False  # select-list fields take {"value": ...}


def _fold(values: Any) -> frozenset[str]:
    return frozenset(str(v).strip().lower() for v in values or ())


@dataclass(frozen=True)
class StatusVocabulary:
    """Recognized status labels and the groups used by the cascade."""

    valid: tuple[str, ...]
    default: str
    done: tuple[str, ...]
    in_progress: tuple[str, ...]
    not_started: tuple[str, ...]
    cascade_done: str
    cascade_in_progress: str

    def canonical(self, label: Optional[str]) -> Optional[str]:
        """Return the configured spelling of ``label``, or None if unknown."""
        if not label:
            return None
        wanted = label.strip().lower()
        for known in self.valid:
            if known.lower() == wanted:
                return known
        return None

    def is_done(self, label: Optional[str]) -> bool:
        return bool(label) and label.strip().lower() in _fold(self.done)

    def is_in_progress(self, label: Optional[str]) -> bool:
        return bool(label) and label.strip().lower() in _fold(self.in_progress)

    def is_not_started(self, label: Optional[str]) -> bool:
        return bool(label) and label.strip().lower() in _fold(self.not_started)


@dataclass(frozen=True)
class SyncConfig:
    """Everything the engine needs to know about the sheet and the tracker."""

    project_key: str
    levels: tuple[str, ...]
    issue_type_ids: Mapping[str, str]
    fields: FieldNames
    metrics: tuple[MetricField, ...]
    statuses: StatusVocabulary
    base_url: str = ""
    sheet_name: str = "JIRA format"
    max_results: int = 1000
    live_search_max_results: int = 5
    timeout_seconds: float = 30.0
    max_retries: int = 3
    retry_delay: float = 1.0
    default_due_offset_days: int = 30
    state_path: str = "data/sync_state.json"

    @property
    def top_level(self) -> str:
        return self.levels[0]

    def level_index(self, kind: Optional[str]) -> Optional[int]:
        """Depth of ``kind`` in the hierarchy (0 = top), None if unmanaged."""
        if kind is None:
            return None
        try:
            return self.levels.index(kind)
        except ValueError:
            return None

    def parent_level(self, kind: str) -> Optional[str]:
        """Kind that a ``kind`` entity must hang under (None for the top)."""
        idx = self.level_index(kind)
        if idx is None or idx == 0:
            return None
        return self.levels[idx - 1]

    def kind_for_issue_type(self, type_id: Optional[str], type_name: Optional[str]) -> Optional[str]:
        """Map a tracker issue type back to a hierarchy level."""
        for kind, tid in self.issue_type_ids.items():
            if type_id is not None and str(tid) == str(type_id):
                return kind
        return type_name


def _require(section: Mapping[str, Any], key: str, where: str) -> Any:
    if key not in section or section[key] in (None, ""):
        raise ConfigError(f"Missing required setting '{where}.{key}'")
    return section[key]


def build_sync_config(settings: Mapping[str, Any]) -> SyncConfig:
    """Build a ``SyncConfig`` from a merged settings dict.

    Args:
        settings: Output of ``load_settings``

    Returns:
        Immutable configuration object

    Raises:
        ConfigError: If a required section is missing or malformed

    """
    tracker = settings.get("tracker") or {}
    hierarchy = settings.get("hierarchy") or {}
    statuses = settings.get("statuses") or {}

    levels = tuple(_require(hierarchy, "levels", "hierarchy"))
    if not levels or len(set(levels)) != len(levels):
        raise ConfigError("hierarchy.levels must be a non-empty list of distinct kinds")

    type_ids = dict(_require(hierarchy, "issue_type_ids", "hierarchy"))
    missing = [lvl for lvl in levels if lvl not in type_ids]
    if missing:
        raise ConfigError(f"hierarchy.issue_type_ids has no id for: {', '.join(missing)}")

    try:
        metrics = tuple(
            MetricField(
                name=str(m["name"]),
                column=str(m["column"]),
                custom_field=str(m["custom_field"]),
                default=str(m.get("default", "N/A")),
                option=bool(m.get("option", False)),
            )
            for m in settings.get("metrics") or []
        )
    except (KeyError, TypeError) as e:
        raise ConfigError(f"Malformed metrics entry: {e}") from e

    valid = tuple(_require(statuses, "valid", "statuses"))
    vocab = StatusVocabulary(
        valid=valid,
        default=str(statuses.get("default", valid[0])),
        done=tuple(statuses.get("done", ())),
        in_progress=tuple(statuses.get("in_progress", ())),
        not_started=tuple(statuses.get("not_started", ())),
        cascade_done=str(statuses.get("cascade_done", "Done")),
        cascade_in_progress=str(statuses.get("cascade_in_progress", "On track")),
    )
    if vocab.canonical(vocab.default) is None:
        raise ConfigError(f"statuses.default '{vocab.default}' is not in statuses.valid")

    fields_cfg = settings.get("fields") or {}
    due = settings.get("due_date") or {}

    return SyncConfig(
        project_key=str(_require(tracker, "project_key", "tracker")),
        levels=levels,
        issue_type_ids=MappingProxyType({k: str(v) for k, v in type_ids.items()}),
        fields=FieldNames(**{k: str(v) for k, v in fields_cfg.items() if k in FieldNames.__dataclass_fields__}),
        metrics=metrics,
        statuses=vocab,
        base_url=str(tracker.get("base_url", "")),
        sheet_name=str((settings.get("source") or {}).get("sheet_name", "JIRA format")),
        max_results=int(tracker.get("max_results", 1000)),
        live_search_max_results=int(tracker.get("live_search_max_results", 5)),
        timeout_seconds=float(tracker.get("timeout_seconds", 30)),
        max_retries=int(tracker.get("max_retries", 3)),
        retry_delay=float(tracker.get("retry_delay", 1.0)),
        default_due_offset_days=int(due.get("default_offset_days", 30)),
        state_path=str((settings.get("state") or {}).get("path", "data/sync_state.json")),
    )


@dataclass(frozen=True)
class Credentials:
    """Secrets and endpoints taken from the environment."""

    jira_base_url: str
    jira_email: str
    jira_token: str
    sheet_id: Optional[str] = None
    sheet_name: Optional[str] = None
    google_credentials: Optional[dict[str, Any]] = None


def get_credentials(
    config: SyncConfig,
    *,
    require_sheet: bool = True,
    environ: Optional[Mapping[str, str]] = None,
) -> Credentials:
    """Read tracker and sheet credentials from environment variables.

    Args:
        config: Sync configuration (supplies the default base URL and sheet name)
        require_sheet: Whether Google Sheets credentials must be present
        environ: Mapping to read from (defaults to ``os.environ``)

    Returns:
        Credentials for this run

    Raises:
        ConfigError: If a required variable is missing or unparseable

    """
    env = os.environ if environ is None else environ

    base_url = env.get("JIRA_BASE_URL") or config.base_url
    email = env.get("JIRA_EMAIL", "")
    token = env.get("JIRA_TOKEN", "")
    missing = [
        name
        for name, value in (("JIRA_BASE_URL", base_url), ("JIRA_EMAIL", email), ("JIRA_TOKEN", token))
        if not value
    ]

    sheet_id = env.get("SHEET_ID")
    sheet_name = env.get("SHEET_NAME") or config.sheet_name
    google_credentials = None
    if require_sheet:
        if not sheet_id:
            missing.append("SHEET_ID")
        raw = env.get("GOOGLE_CREDENTIALS")
        if not raw:
            missing.append("GOOGLE_CREDENTIALS")
        else:
            try:
                google_credentials = json.loads(raw)
            except json.JSONDecodeError as e:
                raise ConfigError(f"GOOGLE_CREDENTIALS is not valid JSON: {e}") from e

    if missing:
        raise ConfigError(f"Missing required environment variables: {', '.join(missing)}")

    return Credentials(
        jira_base_url=base_url,
        jira_email=email,
        jira_token=token,
        sheet_id=sheet_id,
        sheet_name=sheet_name,
        google_credentials=google_credentials,
    )
