"""Tests for the shared record types."""

from src.models import RemoteEntity, SourceRecord


def test_remote_entity_from_issue() -> None:
    issue = {
        "key": "BUS-3",
        "fields": {
            "summary": "Ship v1",
            "status": {"name": "Delayed"},
            "parent": {"key": "BUS-2"},
            "issuetype": {"id": "10225", "name": "Milestone"},
        },
    }
    assert RemoteEntity.from_issue(issue) == RemoteEntity("BUS-3", "Ship v1", "Milestone", "BUS-2", "Delayed")
    assert RemoteEntity.from_issue(issue, kind="Leaf").kind == "Leaf"


def test_remote_entity_from_sparse_issue() -> None:
    entity = RemoteEntity.from_issue({"key": "BUS-9", "fields": {}})
    assert entity == RemoteEntity("BUS-9", "", None, None, None)


def test_source_record_label() -> None:
    assert SourceRecord(key="J-1", kind="JTBD", summary="x").label == "J-1 (JTBD)"
