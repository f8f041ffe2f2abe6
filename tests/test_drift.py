"""Tests for stale-mapping cleanup."""

from src.drift import clean_stale_mappings
from src.models import RemoteEntity
from src.snapshot import RemoteSnapshot
from src.utils.state_utils import PersistentState


def _snapshot(*ids: str) -> RemoteSnapshot:
    return RemoteSnapshot([RemoteEntity(i, i, "JTBD", None, "To Do") for i in ids])


def test_removes_mapping_and_fingerprint_for_deleted_issue() -> None:
    state = PersistentState(
        issue_mapping={"J-1": "BUS-1", "J-2": "BUS-2"},
        last_hashes={"J-1": "h1", "J-2": "h2"},
        user_cache={"a@example.com": "acc"},
    )
    cleaned = clean_stale_mappings(state, _snapshot("BUS-2"))

    assert cleaned == 1
    assert state.issue_mapping == {"J-2": "BUS-2"}
    assert state.last_hashes == {"J-2": "h2"}
    assert state.user_cache == {"a@example.com": "acc"}


def test_nothing_to_clean() -> None:
    state = PersistentState(issue_mapping={"J-1": "BUS-1"})
    assert clean_stale_mappings(state, _snapshot("BUS-1", "BUS-9")) == 0
    assert state.issue_mapping == {"J-1": "BUS-1"}


def test_no_mapping_survives_outside_snapshot() -> None:
    state = PersistentState(issue_mapping={f"K-{i}": f"BUS-{i}" for i in range(10)})
    snapshot = _snapshot("BUS-1", "BUS-4", "BUS-7")
    clean_stale_mappings(state, snapshot)
    assert set(state.issue_mapping.values()) <= snapshot.ids


def test_degraded_snapshot_still_enforces_membership() -> None:
    state = PersistentState(issue_mapping={"J-1": "BUS-1"}, last_hashes={"J-1": "h1"})
    assert clean_stale_mappings(state, RemoteSnapshot(degraded=True)) == 1
    assert state.issue_mapping == {}
    assert state.last_hashes == {}
