"""Metrics query handlers and response classification.

The handlers accept raw string query parameters (as a web layer would receive
them), run the metrics engine and return ``(status_code, body)`` pairs:
200 with the result, 400 for invalid filters, 403 when GitHub rate limited the
request and 500 for every other failure.
"""

from __future__ import annotations

import json
import logging
import re
from datetime import date
from typing import Any, Dict, List, Mapping, Optional, Tuple

from .config import Config
from .errors import RateLimitError, UpstreamError, ValidationError
from .github_client import GitHubClient
from .models import PRStatus, Repository, SearchFilters, SearchResult
from .search import search_pull_requests
from .stats import aggregate_metrics

logger = logging.getLogger(__name__)

MAX_PER_PAGE = 100

_ISO_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}$")

Response = Tuple[int, Dict[str, Any]]


def _parse_date(name: str, value: str) -> str:
    message = f"Invalid value for '{name}': expected an ISO date (YYYY-MM-DD)."
    candidate = value.strip()
    if not _ISO_DATE.match(candidate):
        raise ValidationError(message)
    try:
        return date.fromisoformat(candidate).isoformat()
    except ValueError as exc:
        raise ValidationError(message) from exc


def upstream_message(error: UpstreamError) -> str:
    """Return GitHub's ``message`` from an error body, or the raw body."""
    try:
        payload = json.loads(error.body)
    except ValueError:
        payload = None
    if isinstance(payload, dict) and payload.get("message"):
        return str(payload["message"])
    return error.body or str(error)


def _parse_positive_int(name: str, value: Optional[str], default: int) -> int:
    if value is None or not str(value).strip():
        return default
    try:
        parsed = int(value)
    except ValueError as exc:
        raise ValidationError(f"Invalid value for '{name}': expected an integer.") from exc
    if parsed <= 0:
        raise ValidationError(f"Invalid value for '{name}': expected an integer greater than 0.")
    return parsed


def parse_filters(params: Mapping[str, Optional[str]], default_repo: Optional[str] = None) -> SearchFilters:
    """Validate raw query parameters into ``SearchFilters``.

    Recognised parameters: ``repo``, ``from``, ``to``, ``status``, ``author``
    (semicolon separated), ``page`` and ``perPage``. An empty ``repo`` falls
    back to ``default_repo``.

    Raises:
        ValidationError: If a required filter is missing or malformed.
    """
    date_from = params.get("from")
    date_to = params.get("to")
    if not date_from or not date_to:
        raise ValidationError("Missing required date range parameters.")
    date_from = _parse_date("from", date_from)
    date_to = _parse_date("to", date_to)
    if date.fromisoformat(date_from) > date.fromisoformat(date_to):
        raise ValidationError("Invalid date range: 'from' must not be after 'to'.")

    repo = (params.get("repo") or "").strip() or (default_repo or "").strip()
    if not repo:
        raise ValidationError(
            "Project repo not specified in query parameters or environment variables."
        )

    raw_status = (params.get("status") or PRStatus.ALL.value).strip().lower()
    try:
        status = PRStatus(raw_status)
    except ValueError as exc:
        allowed = ", ".join(member.value for member in PRStatus)
        raise ValidationError(f"Invalid value for 'status': expected one of {allowed}.") from exc

    authors = tuple(
        handle.strip() for handle in (params.get("author") or "").split(";") if handle.strip()
    )

    per_page = _parse_positive_int("perPage", params.get("perPage"), 10)
    if per_page > MAX_PER_PAGE:
        raise ValidationError(f"Invalid value for 'perPage': expected at most {MAX_PER_PAGE}.")

    return SearchFilters(
        repo=repo,
        date_from=date_from,
        date_to=date_to,
        status=status,
        authors=authors,
        page=_parse_positive_int("page", params.get("page"), 1),
        per_page=per_page,
    )


def run_metrics_query(client: GitHubClient, filters: SearchFilters, max_workers: int) -> SearchResult:
    """Search pull requests, fetch their details and aggregate their metrics."""
    logger.info(
        "Processing request for repo: %s, date range: %s to %s",
        filters.repo,
        filters.date_from,
        filters.date_to,
    )
    result = search_pull_requests(client, filters, max_workers=max_workers)
    result.aggregated = aggregate_metrics(result.pull_requests)
    return result


def _handle(
    client: GitHubClient,
    params: Mapping[str, Optional[str]],
    config: Config,
    aggregate: bool,
) -> Response:
    try:
        filters = parse_filters(params, default_repo=config.default_repo)
    except ValidationError as exc:
        logger.warning(str(exc))
        return 400, {"error": str(exc)}

    try:
        if aggregate:
            result = run_metrics_query(client, filters, max_workers=config.max_workers)
        else:
            result = search_pull_requests(client, filters, max_workers=config.max_workers)
    except RateLimitError as exc:
        message = upstream_message(exc)
        logger.warning("Rate limit reached: %s", message)
        return 403, {"error": message}
    except UpstreamError as exc:
        logger.error("GitHub API error: %s", exc)
        return 500, {"error": exc.body or str(exc)}
    except Exception as exc:
        logger.exception("Internal server error: %s", exc)
        return 500, {"error": "Internal server error"}

    return 200, result.to_dict()


def handle_metrics_query(client: GitHubClient, params: Mapping[str, Optional[str]], config: Config) -> Response:
    """Answer a metrics query with per-PR data, authors and aggregated statistics."""
    return _handle(client, params, config, aggregate=True)


def handle_pull_requests_query(
    client: GitHubClient,
    params: Mapping[str, Optional[str]],
    config: Config,
) -> Response:
    """Answer a pull request listing query without aggregated statistics."""
    return _handle(client, params, config, aggregate=False)


def list_accessible_repositories(client: GitHubClient) -> Dict[str, List[Repository]]:
    """Group the repositories visible to the token by owner.

    The user's own repositories are listed under ``"own"``; each organization
    the user belongs to gets its own key.
    """
    login = client.get_authenticated_login()
    grouped: Dict[str, List[Repository]] = {"own": client.list_user_repositories(login)}

    for org in client.list_user_organizations():
        grouped[org] = client.list_organization_repositories(org)

    logger.info(
        "Listed accessible repositories",
        extra={"login": login, "groups": len(grouped)},
    )
    return grouped
