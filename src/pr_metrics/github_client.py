"""GitHub REST API client for pull request metrics retrieval."""

from __future__ import annotations

import logging
import threading
from typing import Any, Dict, List, Optional
from urllib.parse import quote

import requests
from requests.adapters import HTTPAdapter

from .config import Config
from .errors import RateLimitError, UpstreamError, is_rate_limited
from .models import Repository

logger = logging.getLogger(__name__)


class GitHubClient:
    """Small, typed client for the GitHub search, pulls and issues APIs.

    Every request is issued once: failures surface immediately as
    ``UpstreamError`` (or ``RateLimitError``) without local retries.

    The client is shared by the worker threads that fetch pull request
    details. At most ``config.max_workers`` requests are in flight at once,
    whatever the number of threads, and the session connection pool is sized
    to the same bound. The session is only used for GET requests with fixed
    headers, so sharing it across threads is safe in practice even though
    ``requests`` makes no thread-safety guarantee for sessions.
    """

    _LIST_PAGE_SIZE = 100

    def __init__(self, config: Config) -> None:
        """Initialize an authenticated GitHub API client.

        Args:
            config: Validated runtime configuration including the API token.
        """
        self._config = config
        self._timeout_seconds = config.timeout_seconds
        self._base_url = config.api_base_url.rstrip("/")

        self._session = requests.Session()
        self._session.headers.update(
            {
                "Accept": "application/vnd.github+json",
                "Authorization": f"token {config.token}",
            }
        )
        adapter = HTTPAdapter(pool_connections=config.max_workers, pool_maxsize=config.max_workers)
        self._session.mount("https://", adapter)
        self._session.mount("http://", adapter)
        self._request_slots = threading.BoundedSemaphore(config.max_workers)

    def close(self) -> None:
        self._session.close()

    def __enter__(self) -> "GitHubClient":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def _build_url(self, path: str) -> str:
        """Build a fully qualified API URL; absolute URLs are returned unchanged."""
        if path.startswith(("http://", "https://")):
            return path
        return f"{self._base_url}/{path.lstrip('/')}"

    def _request(self, url: str, params: Optional[Dict[str, Any]] = None) -> requests.Response:
        """Execute a GET request and raise on any non-success status.

        Raises:
            RateLimitError: If GitHub reports an exhausted request quota.
            UpstreamError: If the request fails or returns HTTP >= 400.
        """
        logger.debug("GET %s", url, extra={"params": params})
        try:
            with self._request_slots:
                response = self._session.get(url, params=params, timeout=self._timeout_seconds)
        except requests.RequestException as exc:
            raise UpstreamError(f"GitHub request failed: GET {url}") from exc

        status_code = response.status_code
        if status_code >= 400:
            error = UpstreamError(
                f"GitHub API error: GET {url} returned {status_code} - {response.text}",
                status_code=status_code,
                body=response.text,
                headers=response.headers,
            )
            if is_rate_limited(error):
                logger.warning(
                    "GitHub rate limit reached",
                    extra={"url": url, "status_code": status_code},
                )
                raise RateLimitError(
                    str(error),
                    status_code=status_code,
                    body=response.text,
                    headers=response.headers,
                )
            raise error

        return response

    def _decode_json(self, response: requests.Response, url: str) -> Any:
        try:
            return response.json()
        except ValueError as exc:
            raise UpstreamError(f"GitHub API returned invalid JSON: GET {url}") from exc

    def get_json(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        """Fetch a single resource and return its decoded JSON payload."""
        url = self._build_url(path)
        return self._decode_json(self._request(url, params=params), url)

    def fetch_all_pages(self, path: str, params: Optional[Dict[str, Any]] = None) -> List[Any]:
        """Fetch every page of a list endpoint by following ``Link: rel="next"``.

        The first request carries ``params``; continuation URLs returned by
        GitHub already embed the query string and are requested verbatim.
        Items are concatenated in page order.

        Raises:
            UpstreamError: If any page responds with a non-success status.
        """
        results: List[Any] = []
        next_url: Optional[str] = self._build_url(path)
        next_params = params

        while next_url:
            response = self._request(next_url, params=next_params)
            payload = self._decode_json(response, next_url)
            if isinstance(payload, list):
                results.extend(payload)
            else:
                results.append(payload)

            next_link = (response.links or {}).get("next") or {}
            next_url = next_link.get("url")
            next_params = None

        return results

    def search_issues(self, query: str, page: int = 1, per_page: int = 10) -> Dict[str, Any]:
        """Run one issue search page sorted by creation date ascending.

        The search endpoint uses offset pagination, so only the requested
        ``page`` is fetched.

        Returns:
            The raw search payload with ``total_count`` and ``items``.
        """
        url = self._build_url(
            f"search/issues?q={quote(query, safe='')}"
            f"&sort=created&order=asc&page={page}&per_page={per_page}"
        )
        payload = self.get_json(url)
        if not isinstance(payload, dict):
            raise UpstreamError(f"GitHub API returned unexpected payload shape: GET {url}")
        return payload

    def get_pull_request(self, api_url: str) -> Dict[str, Any]:
        """Fetch the full pull request record."""
        payload = self.get_json(api_url)
        if not isinstance(payload, dict):
            raise UpstreamError(f"GitHub API returned unexpected payload shape: GET {api_url}")
        return payload

    def list_reviews(self, api_url: str) -> List[Dict[str, Any]]:
        """List every review submitted on a pull request."""
        return self.fetch_all_pages(f"{api_url}/reviews", params={"per_page": self._LIST_PAGE_SIZE})

    def list_commits(self, api_url: str) -> List[Dict[str, Any]]:
        """List every commit on a pull request in upstream order."""
        return self.fetch_all_pages(f"{api_url}/commits", params={"per_page": self._LIST_PAGE_SIZE})

    def list_issue_comments(self, comments_url: str) -> List[Dict[str, Any]]:
        """List every conversation comment on a pull request."""
        return self.fetch_all_pages(comments_url, params={"per_page": self._LIST_PAGE_SIZE})

    def get_authenticated_login(self) -> str:
        """Return the login of the user owning the configured token."""
        payload = self.get_json("user")
        login = payload.get("login") if isinstance(payload, dict) else None
        if not login:
            raise UpstreamError("GitHub API response for GET /user is missing 'login'.")
        return str(login)

    def list_user_repositories(self, login: str) -> List[Repository]:
        """List repositories owned by ``login``."""
        items = self.fetch_all_pages(
            f"users/{login}/repos",
            params={"per_page": self._LIST_PAGE_SIZE, "sort": "full_name", "direction": "asc"},
        )
        return [self._to_repository(item) for item in items]

    def list_user_organizations(self) -> List[str]:
        """List organization logins of the authenticated user (first page only)."""
        payload = self.get_json("user/orgs", params={"per_page": self._LIST_PAGE_SIZE})
        return [str(org["login"]) for org in payload or [] if org.get("login")]

    def list_organization_repositories(self, org: str) -> List[Repository]:
        """List repositories of an organization."""
        items = self.fetch_all_pages(
            f"orgs/{org}/repos",
            params={"per_page": self._LIST_PAGE_SIZE, "sort": "full_name", "direction": "asc"},
        )
        return [self._to_repository(item) for item in items]

    @staticmethod
    def _to_repository(item: Dict[str, Any]) -> Repository:
        return Repository(
            id=int(item["id"]),
            full_name=str(item["full_name"]),
            description=item.get("description"),
            html_url=str(item.get("html_url") or ""),
        )
