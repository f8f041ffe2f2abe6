"""Jira Cloud REST client used by the sync engine.

Only the handful of endpoints the sync needs are wrapped. Every call maps
HTTP failures onto the ``TrackerError`` family; rate limits, server errors
and timeouts are retried with exponential backoff, anything else is raised
immediately so the caller can fail just the record at hand.
"""

import json
import logging
import time
from typing import Any, Callable, Optional, Protocol

import httpx

logger = logging.getLogger(__name__)

SNAPSHOT_FIELDS = ["summary", "status", "parent", "issuetype"]


class TrackerError(Exception):
    """Base class for issue tracker failures."""

    def __init__(self, message: str, status_code: Optional[int] = None, detail: Any = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.detail = detail

    def __str__(self) -> str:
        base = super().__str__()
        if self.detail:
            return f"{base} - {json.dumps(self.detail) if not isinstance(self.detail, str) else self.detail}"
        return base


class AuthenticationError(TrackerError):
    """401/403: bad credentials or missing project permission."""


class NotFoundError(TrackerError):
    """404: the issue (or endpoint) does not exist."""


class RateLimitError(TrackerError):
    """429: back off and retry."""

    def __init__(self, retry_after: Optional[float] = None) -> None:
        super().__init__("Rate limited by tracker", status_code=429)
        self.retry_after = retry_after


class TrackerServerError(TrackerError):
    """5xx from the tracker."""


class TrackerRequestError(TrackerError):
    """Other 4xx, typically field validation (400)."""


class TrackerTimeoutError(TrackerError):
    """The request timed out on every attempt."""


class IssueTracker(Protocol):
    """Operations the sync engine needs from a tracker.

    ``JiraClient`` implements this; tests substitute an in-memory fake.
    """

    project_key: str

    def search_project_issues(self, max_results: int = ...) -> list[dict[str, Any]]: ...

    def search_by_summary(self, summary: str, max_results: int = ...) -> list[dict[str, Any]]: ...

    def create_issue(self, fields: dict[str, Any]) -> str: ...

    def update_issue(self, key: str, fields: dict[str, Any]) -> None: ...

    def get_issue_status(self, key: str) -> str: ...

    def get_transitions(self, key: str) -> list[dict[str, Any]]: ...

    def transition_issue(self, key: str, transition_id: str) -> None: ...

    def find_account_id(self, email: str) -> Optional[str]: ...


def _parse_retry_after(value: Optional[str]) -> Optional[float]:
    if not value:
        return None
    try:
        return float(value)
    except ValueError:
        return None


def escape_jql_text(text: str) -> str:
    """Escape a value for use inside a double-quoted JQL string."""
    return text.replace("\\", "\\\\").replace('"', '\\"')


def escape_jql_phrase(text: str) -> str:
    """Escape a value for use as a quoted phrase inside a JQL string.

    The phrase quotes are themselves escaped within the JQL string, so a
    quote or backslash in the text is escaped at both levels.
    """
    return escape_jql_text(escape_jql_text(text))


class JiraClient:
    """Synchronous Jira REST v3 client scoped to one project."""

    def __init__(
        self,
        base_url: str,
        email: str,
        token: str,
        project_key: str,
        *,
        timeout: float = 30.0,
        max_retries: int = 3,
        retry_delay: float = 1.0,
        transport: Optional[httpx.BaseTransport] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.project_key = project_key
        self.max_retries = max(1, max_retries)
        self.retry_delay = retry_delay
        self._sleep = sleep
        self._client = httpx.Client(
            base_url=self.base_url,
            auth=httpx.BasicAuth(email, token),
            headers={"Content-Type": "application/json", "Accept": "application/json"},
            timeout=httpx.Timeout(timeout),
            follow_redirects=True,
            transport=transport,
        )

    def close(self) -> None:
        """Close the HTTP client."""
        self._client.close()

    def __enter__(self) -> "JiraClient":
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    @staticmethod
    def _handle_response(response: httpx.Response) -> Any:
        """Map an HTTP response onto a payload or a ``TrackerError``."""
        status = response.status_code
        if status == 429:
            raise RateLimitError(retry_after=_parse_retry_after(response.headers.get("Retry-After")))

        if status >= 400:
            try:
                detail: Any = response.json()
            except ValueError:
                detail = response.text or None
            message = f"{response.request.method} {response.request.url.path} -> {status}"
            if status in (401, 403):
                raise AuthenticationError(message, status, detail)
            if status == 404:
                raise NotFoundError(message, status, detail)
            if status >= 500:
                raise TrackerServerError(message, status, detail)
            raise TrackerRequestError(message, status, detail)

        if status == 204 or not response.content:
            return {}
        try:
            return response.json()
        except ValueError as err:
            raise TrackerError("Invalid response format from tracker", status) from err

    def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        """Issue one request with retry on 429, 5xx and timeouts."""
        attempt = 0
        while True:
            attempt += 1
            try:
                response = self._client.request(method, path, **kwargs)
                return self._handle_response(response)
            except RateLimitError as e:
                if attempt >= self.max_retries:
                    raise
                delay = e.retry_after or self.retry_delay * (2 ** attempt)
                logger.warning(
                    f"Rate limited on {method} {path}. Retry after {delay}s. "
                    f"Attempt {attempt}/{self.max_retries}"
                )
                self._sleep(delay)
            except TrackerServerError as e:
                if attempt >= self.max_retries:
                    raise
                logger.warning(f"Server error on {method} {path}: {e}. Retry {attempt}/{self.max_retries}")
                self._sleep(self.retry_delay * (2 ** attempt))
            except httpx.TimeoutException as err:
                if attempt >= self.max_retries:
                    raise TrackerTimeoutError(f"{method} {path} timed out") from err
                logger.warning(f"Timeout on {method} {path}: {err}. Retry {attempt}/{self.max_retries}")
                self._sleep(self.retry_delay * (2 ** attempt))
            except httpx.TransportError as err:
                raise TrackerError(f"{method} {path} failed: {err}") from err

    # ------------------------------------------------------------------
    # Search
    # ------------------------------------------------------------------

    def search_issues(self, jql: str, fields: list[str], max_results: int) -> list[dict[str, Any]]:
        """Run a JQL search and return up to ``max_results`` raw issue payloads.

        The endpoint pages its results (the server caps each page below the
        requested size), so pages are followed via ``nextPageToken`` until
        the last page or the bound is reached.
        """
        issues: list[dict[str, Any]] = []
        token: Optional[str] = None
        while len(issues) < max_results:
            body: dict[str, Any] = {"jql": jql, "fields": fields, "maxResults": max_results - len(issues)}
            if token:
                body["nextPageToken"] = token
            data = self._request("POST", "/rest/api/3/search/jql", json=body)
            page = list(data.get("issues") or [])
            issues.extend(page)
            token = data.get("nextPageToken")
            if data.get("isLast") or not token or not page:
                return issues[:max_results]

        if token:
            logger.warning(f"Search truncated at {max_results} issues; more results remain for: {jql}")
        return issues[:max_results]

    def search_project_issues(self, max_results: int = 1000) -> list[dict[str, Any]]:
        """Every issue in the project, bounded by ``max_results``."""
        return self.search_issues(f"project = {self.project_key}", SNAPSHOT_FIELDS, max_results)

    def search_by_summary(self, summary: str, max_results: int = 5) -> list[dict[str, Any]]:
        """Issues whose summary contains ``summary`` as a phrase."""
        jql = f'project = {self.project_key} AND summary ~ "\\"{escape_jql_phrase(summary)}\\""'
        return self.search_issues(jql, SNAPSHOT_FIELDS, max_results)

    # ------------------------------------------------------------------
    # Issues
    # ------------------------------------------------------------------

    def create_issue(self, fields: dict[str, Any]) -> str:
        """Create an issue and return its key."""
        data = self._request(
            "POST", "/rest/api/3/issue", params={"notifyUsers": "false"}, json={"fields": fields}
        )
        key = data.get("key")
        if not key:
            raise TrackerError(f"Create returned no issue key: {data}")
        return str(key)

    def update_issue(self, key: str, fields: dict[str, Any]) -> None:
        self._request(
            "PUT", f"/rest/api/3/issue/{key}", params={"notifyUsers": "false"}, json={"fields": fields}
        )

    def get_issue_status(self, key: str) -> str:
        """Current workflow status name of an issue."""
        data = self._request("GET", f"/rest/api/3/issue/{key}", params={"fields": "status"})
        try:
            return str(data["fields"]["status"]["name"])
        except (KeyError, TypeError) as err:
            raise TrackerError(f"Issue {key} response has no status") from err

    def get_transitions(self, key: str) -> list[dict[str, Any]]:
        """Transitions currently available from the issue's status."""
        data = self._request("GET", f"/rest/api/3/issue/{key}/transitions")
        return list(data.get("transitions") or [])

    def transition_issue(self, key: str, transition_id: str) -> None:
        self._request(
            "POST",
            f"/rest/api/3/issue/{key}/transitions",
            params={"notifyUsers": "false"},
            json={"transition": {"id": transition_id}},
        )

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    def find_account_id(self, email: str) -> Optional[str]:
        """Account id of the first user matching ``email``, if any."""
        data = self._request("GET", "/rest/api/3/user/search", params={"query": email})
        if isinstance(data, list) and data:
            account_id = data[0].get("accountId")
            return str(account_id) if account_id else None
        return None
