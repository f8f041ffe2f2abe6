"""Tests for the Jira REST client using httpx.MockTransport."""

import json
from typing import Any, Callable

import httpx
import pytest

from src.tracker_client import (
    AuthenticationError,
    JiraClient,
    NotFoundError,
    RateLimitError,
    TrackerError,
    TrackerRequestError,
    TrackerServerError,
    TrackerTimeoutError,
    escape_jql_phrase,
    escape_jql_text,
)

BASE_URL = "https://example.atlassian.net"


def make_client(handler: Callable[[httpx.Request], httpx.Response], **kwargs: Any) -> tuple[JiraClient, list[float]]:
    sleeps: list[float] = []
    client = JiraClient(
        BASE_URL,
        "bot@example.com",
        "secret",
        "BUS",
        transport=httpx.MockTransport(handler),
        sleep=sleeps.append,
        **kwargs,
    )
    return client, sleeps


class TestSearch:
    def test_project_search_request(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"issues": [{"key": "BUS-1", "fields": {"summary": "A"}}]})

        client, _ = make_client(handler)
        issues = client.search_project_issues(max_results=1000)

        assert issues == [{"key": "BUS-1", "fields": {"summary": "A"}}]
        request = seen[0]
        assert request.method == "POST"
        assert request.url.path == "/rest/api/3/search/jql"
        body = json.loads(request.content)
        assert body == {
            "jql": "project = BUS",
            "fields": ["summary", "status", "parent", "issuetype"],
            "maxResults": 1000,
        }
        assert request.headers["Authorization"].startswith("Basic ")

    def test_summary_search_quotes_phrase(self) -> None:
        seen: list[dict[str, Any]] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(json.loads(request.content))
            return httpx.Response(200, json={"issues": []})

        client, _ = make_client(handler)
        assert client.search_by_summary('Grow "core" revenue', max_results=5) == []
        assert seen[0]["jql"] == 'project = BUS AND summary ~ "\\"Grow \\\\\\"core\\\\\\" revenue\\""'
        assert seen[0]["maxResults"] == 5

    def test_search_follows_next_page_token(self) -> None:
        bodies: list[dict[str, Any]] = []

        def handler(request: httpx.Request) -> httpx.Response:
            body = json.loads(request.content)
            bodies.append(body)
            if "nextPageToken" not in body:
                issues = [{"key": f"BUS-{i}", "fields": {}} for i in range(1, 101)]
                return httpx.Response(200, json={"issues": issues, "nextPageToken": "p2", "isLast": False})
            issues = [{"key": f"BUS-{i}", "fields": {}} for i in range(101, 151)]
            return httpx.Response(200, json={"issues": issues, "isLast": True})

        client, _ = make_client(handler)
        issues = client.search_project_issues(max_results=1000)

        assert len(issues) == 150
        assert issues[-1]["key"] == "BUS-150"
        assert len(bodies) == 2
        assert bodies[1]["nextPageToken"] == "p2"
        assert bodies[1]["maxResults"] == 900

    def test_search_stops_at_bound_with_pages_remaining(self) -> None:
        bodies: list[dict[str, Any]] = []

        def handler(request: httpx.Request) -> httpx.Response:
            body = json.loads(request.content)
            bodies.append(body)
            start = 1 if "nextPageToken" not in body else 101
            size = min(100, body["maxResults"])
            issues = [{"key": f"BUS-{i}", "fields": {}} for i in range(start, start + size)]
            return httpx.Response(200, json={"issues": issues, "nextPageToken": f"after-{start}", "isLast": False})

        client, _ = make_client(handler)
        issues = client.search_project_issues(max_results=120)

        assert len(issues) == 120
        assert len(bodies) == 2
        assert bodies[1]["maxResults"] == 20

    def test_escape_jql_text(self) -> None:
        assert escape_jql_text('a\\b"c') == 'a\\\\b\\"c'

    def test_escape_jql_phrase_escapes_both_levels(self) -> None:
        assert escape_jql_phrase('say "hi"') == 'say \\\\\\"hi\\\\\\"'
        assert escape_jql_phrase("a\\b") == "a\\\\\\\\b"


class TestIssues:
    def test_create_issue_returns_key(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(201, json={"id": "10001", "key": "BUS-7"})

        client, _ = make_client(handler)
        assert client.create_issue({"summary": "New"}) == "BUS-7"
        assert seen[0].url.params["notifyUsers"] == "false"
        assert json.loads(seen[0].content) == {"fields": {"summary": "New"}}

    def test_update_issue_accepts_no_content(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.method == "PUT"
            assert request.url.path == "/rest/api/3/issue/BUS-7"
            return httpx.Response(204)

        client, _ = make_client(handler)
        client.update_issue("BUS-7", {"summary": "Renamed"})

    def test_get_issue_status(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.params["fields"] == "status"
            return httpx.Response(200, json={"fields": {"status": {"name": "On track"}}})

        client, _ = make_client(handler)
        assert client.get_issue_status("BUS-7") == "On track"

    def test_transitions(self) -> None:
        posted: list[dict[str, Any]] = []

        def handler(request: httpx.Request) -> httpx.Response:
            if request.method == "GET":
                return httpx.Response(200, json={"transitions": [{"id": "31", "to": {"name": "Done"}}]})
            posted.append(json.loads(request.content))
            return httpx.Response(204)

        client, _ = make_client(handler)
        assert client.get_transitions("BUS-7") == [{"id": "31", "to": {"name": "Done"}}]
        client.transition_issue("BUS-7", "31")
        assert posted == [{"transition": {"id": "31"}}]

    def test_find_account_id(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.params["query"] == "known@example.com":
                return httpx.Response(200, json=[{"accountId": "acc-1"}])
            return httpx.Response(200, json=[])

        client, _ = make_client(handler)
        assert client.find_account_id("known@example.com") == "acc-1"
        assert client.find_account_id("nobody@example.com") is None


class TestErrors:
    @pytest.mark.parametrize(
        "status, exc_type",
        [
            (400, TrackerRequestError),
            (401, AuthenticationError),
            (403, AuthenticationError),
            (404, NotFoundError),
        ],
    )
    def test_client_errors_are_not_retried(self, status: int, exc_type: type) -> None:
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(status, json={"errorMessages": ["nope"]})

        client, sleeps = make_client(handler)
        with pytest.raises(exc_type) as exc_info:
            client.create_issue({"summary": "x"})
        assert exc_info.value.status_code == status
        assert "nope" in str(exc_info.value)
        assert len(calls) == 1
        assert sleeps == []

    def test_server_errors_retry_with_backoff(self) -> None:
        responses = iter([httpx.Response(502), httpx.Response(503), httpx.Response(200, json={"key": "BUS-1"})])

        client, sleeps = make_client(lambda request: next(responses), max_retries=3, retry_delay=1.0)
        assert client.create_issue({"summary": "x"}) == "BUS-1"
        assert sleeps == [2.0, 4.0]

    def test_server_errors_give_up(self) -> None:
        client, sleeps = make_client(lambda request: httpx.Response(500), max_retries=2, retry_delay=0.5)
        with pytest.raises(TrackerServerError):
            client.get_transitions("BUS-1")
        assert sleeps == [1.0]

    def test_rate_limit_honours_retry_after(self) -> None:
        responses = iter(
            [httpx.Response(429, headers={"Retry-After": "7"}), httpx.Response(200, json={"issues": []})]
        )
        client, sleeps = make_client(lambda request: next(responses))
        assert client.search_project_issues() == []
        assert sleeps == [7.0]

    def test_rate_limit_exhausted(self) -> None:
        client, _ = make_client(lambda request: httpx.Response(429), max_retries=2)
        with pytest.raises(RateLimitError):
            client.search_project_issues()

    def test_timeouts_become_tracker_errors(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("slow", request=request)

        client, sleeps = make_client(handler, max_retries=2)
        with pytest.raises(TrackerTimeoutError):
            client.get_issue_status("BUS-1")
        assert len(sleeps) == 1

    def test_connection_errors_are_not_retried(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        client, sleeps = make_client(handler)
        with pytest.raises(TrackerError):
            client.get_issue_status("BUS-1")
        assert sleeps == []

    def test_missing_status_in_response(self) -> None:
        client, _ = make_client(lambda request: httpx.Response(200, json={"fields": {}}))
        with pytest.raises(TrackerError):
            client.get_issue_status("BUS-1")

    def test_context_manager_closes(self) -> None:
        client, _ = make_client(lambda request: httpx.Response(200, json={}))
        with client as c:
            assert c is client
        assert client._client.is_closed
