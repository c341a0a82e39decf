"""Pull request search and concurrent detail collection."""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor, wait
from typing import List, Optional

from .config import DEFAULT_MAX_WORKERS
from .details import fetch_details
from .errors import RateLimitError, UpstreamError
from .github_client import GitHubClient
from .models import PRStatus, PullRequest, PullRequestStub, SearchFilters, SearchResult
from .stats import collect_authors

logger = logging.getLogger(__name__)


def build_search_query(filters: SearchFilters) -> str:
    """Build the GitHub issue search expression for ``filters``.

    GitHub search has no merged qualifier usable here, so ``merged`` sends the
    same ``state:closed`` term as ``closed``; unmerged PRs are dropped later
    from their live detail records. Each author becomes its own ``author:``
    term, which GitHub ORs together.
    """
    terms = [
        f"repo:{filters.repo}",
        "type:pr",
        f"created:{filters.date_from}..{filters.date_to}",
    ]

    if filters.status is PRStatus.OPEN:
        terms.append("state:open")
    elif filters.status in (PRStatus.CLOSED, PRStatus.MERGED):
        terms.append("state:closed")

    terms.extend(f"author:{author}" for author in filters.authors)
    return " ".join(terms)


def search_pull_requests(
    client: GitHubClient,
    filters: SearchFilters,
    max_workers: int = DEFAULT_MAX_WORKERS,
) -> SearchResult:
    """Search pull requests and fetch details for every result concurrently.

    All detail fetches run to completion before results are collected.
    ``total_count`` is GitHub's match count and is not reduced by dropped PRs.

    Raises:
        UpstreamError: If the search call or any detail fetch fails.
        RateLimitError: If at least one detail fetch hit the rate limit.
    """
    query = build_search_query(filters)
    logger.debug("Searching GitHub issues", extra={"query": query, "page": filters.page})

    payload = client.search_issues(query, page=filters.page, per_page=filters.per_page)
    try:
        stubs = [PullRequestStub.from_search_item(item) for item in payload.get("items") or []]
    except (KeyError, TypeError, ValueError) as exc:
        raise UpstreamError(f"GitHub search returned a malformed item: {exc}") from exc
    total_count = int(payload.get("total_count") or 0)

    logger.info(
        "Found %d pull requests. Fetching detailed data...",
        len(stubs),
        extra={"repo": filters.repo, "total_count": total_count},
    )

    pull_requests: List[PullRequest] = []
    rate_limit_error: Optional[RateLimitError] = None

    if stubs:
        with ThreadPoolExecutor(max_workers=max_workers) as executor:
            futures = [
                executor.submit(fetch_details, client, stub, filters.status) for stub in stubs
            ]
            wait(futures)

        for stub, future in zip(stubs, futures):
            try:
                detailed = future.result()
            except RateLimitError as exc:
                logger.warning("Dropping PR %s after rate limit", stub.number)
                rate_limit_error = rate_limit_error or exc
                continue
            if detailed is not None:
                pull_requests.append(detailed)

    if rate_limit_error is not None:
        raise rate_limit_error

    logger.info(
        "Successfully processed pull request details.",
        extra={
            "repo": filters.repo,
            "prs_found": len(stubs),
            "prs_processed": len(pull_requests),
            "prs_dropped": len(stubs) - len(pull_requests),
        },
    )

    return SearchResult(
        total_count=total_count,
        pull_requests=pull_requests,
        authors=collect_authors(pull_requests),
    )
