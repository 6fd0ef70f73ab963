# src/recurring_issues/tracker/github_client.py

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any
from urllib.parse import quote

import httpx

from .errors import (
    TrackerAuthError,
    TrackerError,
    TrackerNotFoundError,
    TrackerRateLimitError,
    TrackerResponseError,
)
from .models import ItemState, TrackedItem

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "https://api.github.com"
DEFAULT_TIMEOUT_SECONDS = 30.0
PAGE_SIZE = 100
_IDEMPOTENT_METHODS = frozenset({"GET", "PATCH", "DELETE", "PUT"})

_BOARD_STATUS_OPTIONS = [
    {"name": "Ready", "color": "GRAY", "description": ""},
    {"name": "In Progress", "color": "YELLOW", "description": ""},
    {"name": "Done", "color": "GREEN", "description": ""},
]

_Q_PROJECT_TITLES = """
query($owner: String!, $repo: String!) {
  repository(owner: $owner, name: $repo) {
    projectsV2(first: 50) { nodes { title } }
  }
}
"""

_Q_OWNER_AND_REPO_IDS = """
query($owner: String!, $repo: String!) {
  repository(owner: $owner, name: $repo) { id owner { id } }
}
"""

_M_CREATE_PROJECT = """
mutation($ownerId: ID!, $repositoryId: ID!, $title: String!) {
  createProjectV2(input: {ownerId: $ownerId, repositoryId: $repositoryId, title: $title}) {
    projectV2 { id }
  }
}
"""

_Q_PROJECT_FIELDS = """
query($projectId: ID!) {
  node(id: $projectId) {
    ... on ProjectV2 {
      fields(first: 20) {
        nodes { ... on ProjectV2SingleSelectField { id name } }
      }
    }
  }
}
"""

_M_UPDATE_STATUS_FIELD = """
mutation($fieldId: ID!, $options: [ProjectV2SingleSelectFieldOptionInput!]!) {
  updateProjectV2Field(input: {fieldId: $fieldId, singleSelectOptions: $options}) {
    projectV2Field { ... on ProjectV2SingleSelectField { id } }
  }
}
"""


def _is_rate_limited(response: httpx.Response) -> bool:
    if response.status_code == 429:
        return True
    if response.status_code != 403:
        return False
    if response.headers.get("x-ratelimit-remaining") == "0":
        return True
    return "rate limit" in response.text.lower()


def _error_for(response: httpx.Response, what: str) -> TrackerError:
    status = response.status_code
    detail = ""
    try:
        payload = response.json()
        if isinstance(payload, dict):
            detail = str(payload.get("message") or "")
    except ValueError:
        detail = response.text[:200]

    msg = f"{what} failed: HTTP {status}" + (f" ({detail})" if detail else "")
    if status == 401:
        return TrackerAuthError(msg, status_code=status)
    if _is_rate_limited(response):
        return TrackerRateLimitError(msg, status_code=status)
    if status == 404:
        return TrackerNotFoundError(msg, status_code=status)
    return TrackerError(msg, status_code=status)


class GitHubTrackerClient:
    """
    GitHub Issues / Projects v2 client.

    Every list, create and add-label call carries the managed label, so issues created by
    people (or other tools) in the same repository are never listed, closed or relabelled.

    Transport errors are retried once for idempotent methods; a POST is retried only when the
    connection was never established. HTTP errors are mapped onto the TrackerError hierarchy.
    """

    def __init__(
        self,
        token: str,
        repo: str,
        *,
        managed_label: str = "pm-managed",
        api_url: str = DEFAULT_API_URL,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        owner, _, name = repo.partition("/")
        if not owner or not name:
            raise ValueError(f"repo must be 'owner/name', got {repo!r}")

        self._owner = owner
        self._repo = name
        self._managed_label = managed_label
        self._client = httpx.Client(
            base_url=api_url.rstrip("/"),
            timeout=httpx.Timeout(timeout_seconds, connect=10.0),
            headers={
                "Authorization": f"Bearer {token}",
                "Accept": "application/vnd.github+json",
                "X-GitHub-Api-Version": "2022-11-28",
                "User-Agent": "recurring-issues",
            },
            transport=transport,
        )

    @property
    def repo(self) -> str:
        return f"{self._owner}/{self._repo}"

    # ---- low-level helpers ----

    def _repo_path(self, suffix: str = "") -> str:
        return f"/repos/{self._owner}/{self._repo}{suffix}"

    def _with_managed(self, labels: Sequence[str]) -> list[str]:
        out = [label for label in labels if label]
        if self._managed_label not in out:
            out.append(self._managed_label)
        return out

    @staticmethod
    def _is_retryable(method: str, exc: httpx.RequestError) -> bool:
        # A POST may already have been applied when only the response was lost.
        if method.upper() in _IDEMPOTENT_METHODS:
            return isinstance(exc, httpx.TransportError)
        return isinstance(exc, (httpx.ConnectError, httpx.ConnectTimeout))

    def _send(self, method: str, url: str, *, what: str, **kwargs: Any) -> httpx.Response:
        try:
            response = self._client.request(method, url, **kwargs)
        except httpx.RequestError as e:
            if not self._is_retryable(method, e):
                raise TrackerError(f"{what} failed: {e}") from e
            logger.warning("Network error on %s, retrying once: %s", what, e)
            try:
                response = self._client.request(method, url, **kwargs)
            except httpx.RequestError as e2:
                raise TrackerError(f"{what} failed after retry: {e2}") from e2

        if response.is_error:
            raise _error_for(response, what)
        return response

    @staticmethod
    def _json(response: httpx.Response, what: str) -> Any:
        try:
            return response.json()
        except ValueError as e:
            raise TrackerResponseError(f"{what}: response is not JSON") from e

    def _graphql(self, query: str, variables: dict[str, Any], *, what: str) -> dict[str, Any]:
        response = self._send("POST", "/graphql", what=what, json={"query": query, "variables": variables})
        payload = self._json(response, what)
        if not isinstance(payload, dict):
            raise TrackerResponseError(f"{what}: unexpected GraphQL payload")
        errors = payload.get("errors")
        if errors:
            messages = "; ".join(str(e.get("message", e)) if isinstance(e, dict) else str(e) for e in errors)
            raise TrackerResponseError(f"{what}: {messages}")
        data = payload.get("data")
        if not isinstance(data, dict):
            raise TrackerResponseError(f"{what}: GraphQL response has no data")
        return data

    # ---- identity ----

    def get_authenticated_identity(self) -> str:
        data = self._json(self._send("GET", "/user", what="get authenticated user"), "get authenticated user")
        login = data.get("login") if isinstance(data, dict) else None
        if not isinstance(login, str) or not login:
            raise TrackerResponseError("get authenticated user: no login in response")
        return login

    # ---- labels ----

    def label_exists(self, name: str) -> bool:
        try:
            self._send("GET", self._repo_path(f"/labels/{quote(name, safe='')}"), what=f"get label {name}")
        except TrackerNotFoundError:
            return False
        return True

    def create_label(self, name: str, color: str) -> None:
        self._send(
            "POST",
            self._repo_path("/labels"),
            what=f"create label {name}",
            json={"name": name, "color": color.lstrip("#")},
        )
        logger.info("Label created label=%s", name)

    def ensure_label(self, name: str, color: str) -> bool:
        """Create the label if missing. Returns True when it had to be created."""
        if self.label_exists(name):
            logger.debug("Label already exists label=%s", name)
            return False
        self.create_label(name, color)
        return True

    def add_labels(self, number: int, labels: Sequence[str]) -> None:
        self._send(
            "POST",
            self._repo_path(f"/issues/{int(number)}/labels"),
            what=f"add labels to #{number}",
            json={"labels": self._with_managed(labels)},
        )
        logger.debug("Labels added issue=%s labels=%s", number, list(labels))

    def remove_label(self, number: int, label: str) -> None:
        self._send(
            "DELETE",
            self._repo_path(f"/issues/{int(number)}/labels/{quote(label, safe='')}"),
            what=f"remove label {label} from #{number}",
        )
        logger.debug("Label removed issue=%s label=%s", number, label)

    # ---- issues ----

    def create_item(
        self,
        *,
        title: str,
        body: str,
        labels: Sequence[str],
        assignees: Sequence[str] = (),
    ) -> int:
        response = self._send(
            "POST",
            self._repo_path("/issues"),
            what=f"create issue {title!r}",
            json={
                "title": title,
                "body": body,
                "labels": self._with_managed(labels),
                "assignees": [a for a in assignees if a],
            },
        )
        item = TrackedItem.from_api(self._json(response, "create issue"))
        logger.info("Issue created issue=%s title=%s", item.number, title)
        return item.number

    def close_item(self, number: int) -> None:
        self._send(
            "PATCH",
            self._repo_path(f"/issues/{int(number)}"),
            what=f"close issue #{number}",
            json={"state": "closed"},
        )
        logger.info("Issue closed issue=%s", number)

    def list_items_by_labels(
        self,
        labels: Sequence[str],
        state: ItemState | str = ItemState.OPEN,
    ) -> list[TrackedItem]:
        """All issues carrying every label in `labels` (plus the managed label), following pagination."""
        state_value = state.value if isinstance(state, ItemState) else str(state)
        url: str | None = self._repo_path("/issues")
        params: dict[str, Any] | None = {
            "labels": ",".join(self._with_managed(labels)),
            "state": state_value,
            "per_page": PAGE_SIZE,
        }

        items: list[TrackedItem] = []
        while url:
            response = self._send("GET", url, what="list issues", params=params)
            payload = self._json(response, "list issues")
            if not isinstance(payload, list):
                raise TrackerResponseError("list issues: expected a JSON list")
            for raw in payload:
                # The issues endpoint also returns pull requests.
                if isinstance(raw, dict) and "pull_request" in raw:
                    continue
                items.append(TrackedItem.from_api(raw))

            # The "next" link already carries the query string.
            url = response.links.get("next", {}).get("url")
            params = None

        return items

    # ---- project board ----

    def board_exists(self, name: str) -> bool:
        data = self._graphql(
            _Q_PROJECT_TITLES,
            {"owner": self._owner, "repo": self._repo},
            what="list project boards",
        )
        try:
            nodes = data["repository"]["projectsV2"]["nodes"]
        except (KeyError, TypeError) as e:
            raise TrackerResponseError("list project boards: unexpected response shape") from e
        return any(isinstance(n, dict) and n.get("title") == name for n in nodes)

    def create_board(self, name: str) -> None:
        """Create a Projects v2 board linked to the repository with Ready / In Progress / Done columns."""
        ids = self._graphql(
            _Q_OWNER_AND_REPO_IDS,
            {"owner": self._owner, "repo": self._repo},
            what="resolve repository id",
        )
        try:
            repository_id = ids["repository"]["id"]
            owner_id = ids["repository"]["owner"]["id"]
        except (KeyError, TypeError) as e:
            raise TrackerResponseError("resolve repository id: unexpected response shape") from e

        created = self._graphql(
            _M_CREATE_PROJECT,
            {"ownerId": owner_id, "repositoryId": repository_id, "title": name},
            what=f"create board {name!r}",
        )
        try:
            project_id = created["createProjectV2"]["projectV2"]["id"]
        except (KeyError, TypeError) as e:
            raise TrackerResponseError("create board: unexpected response shape") from e

        fields = self._graphql(_Q_PROJECT_FIELDS, {"projectId": project_id}, what="list board fields")
        nodes = ((fields.get("node") or {}).get("fields") or {}).get("nodes") or []
        status_field = next((n for n in nodes if isinstance(n, dict) and n.get("name") == "Status"), None)
        if status_field is None:
            logger.warning("Board created without a Status field board=%s", name)
            return

        self._graphql(
            _M_UPDATE_STATUS_FIELD,
            {"fieldId": status_field["id"], "options": _BOARD_STATUS_OPTIONS},
            what="configure board columns",
        )
        logger.info("Board created board=%s", name)

    # ---- lifecycle ----

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> GitHubTrackerClient:
        return self

    def __exit__(self, *_: object) -> None:
        self.close()
