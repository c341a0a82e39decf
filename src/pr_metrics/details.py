"""Per pull request detail fetching, timeline building and metric extraction.

For one search result this module computes four latency metrics in seconds:
- time to first review (creation to earliest submitted review)
- time to first approval (creation to first ``APPROVED`` review)
- time to first code update (earliest review to the first commit after it)
- total time to close (creation to ``closed_at`` from the live PR record)
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from .errors import RateLimitError
from .github_client import GitHubClient
from .models import (
    EventKind,
    PRStatus,
    PullRequest,
    PullRequestMetrics,
    PullRequestStub,
    TimelineEvent,
    parse_github_datetime,
)

logger = logging.getLogger(__name__)


def _elapsed_seconds(start: datetime, end: datetime, pr_number: int, metric: str) -> Optional[int]:
    duration_seconds = int((end - start).total_seconds())
    if duration_seconds < 0:
        logger.debug(
            "Skipping metric due to negative duration",
            extra={"pr_number": pr_number, "metric": metric, "duration_seconds": duration_seconds},
        )
        return None
    return duration_seconds


def build_timeline(
    reviews: Iterable[Dict[str, Any]],
    issue_comments: Iterable[Dict[str, Any]],
) -> List[TimelineEvent]:
    """Merge reviews and issue comments into one chronological timeline.

    Reviews come first, then comments, each in upstream order; the sort by
    timestamp is stable so equal timestamps keep that order. Pending reviews
    have no ``submitted_at`` and are left out.
    """
    events: List[TimelineEvent] = []

    for review in reviews:
        submitted_at = parse_github_datetime(review.get("submitted_at"))
        if submitted_at is None:
            continue
        events.append(
            TimelineEvent(
                kind=EventKind.REVIEW,
                author=str((review.get("user") or {}).get("login") or ""),
                timestamp=submitted_at,
                body=review.get("body"),
                review_state=review.get("state"),
            )
        )

    for comment in issue_comments:
        created_at = parse_github_datetime(comment.get("created_at"))
        if created_at is None:
            continue
        events.append(
            TimelineEvent(
                kind=EventKind.COMMENT,
                author=str((comment.get("user") or {}).get("login") or ""),
                timestamp=created_at,
                body=comment.get("body"),
            )
        )

    return sorted(events, key=lambda event: event.timestamp)


def _commit_dates(commits: Iterable[Dict[str, Any]]) -> List[datetime]:
    dates: List[datetime] = []
    for commit in commits:
        author = (commit.get("commit") or {}).get("author") or {}
        date = parse_github_datetime(author.get("date"))
        if date is not None:
            dates.append(date)
    return dates


def compute_metrics(
    pr_number: int,
    created_at: datetime,
    closed_at: Optional[datetime],
    timeline: Iterable[TimelineEvent],
    commit_dates: Iterable[datetime],
) -> PullRequestMetrics:
    """Derive the four latency metrics for one pull request.

    Business logic:
    - The first review is the review event with the earliest timestamp.
    - The first approval is the earliest review whose state is ``APPROVED``,
      read from the timestamp-sorted timeline. Reviews sharing a timestamp keep
      their upstream order.
    - The first code update is the first commit strictly after the first review,
      measured from that review.
    - Close time uses the detail record's ``closed_at``; open PRs have none.
    """
    reviews = [event for event in timeline if event.kind is EventKind.REVIEW]

    first_review = min(reviews, key=lambda event: event.timestamp) if reviews else None
    first_approval = next(
        (event for event in reviews if (event.review_state or "").upper() == "APPROVED"),
        None,
    )

    time_to_first_review = None
    time_to_first_code_update = None
    if first_review is not None:
        time_to_first_review = _elapsed_seconds(
            created_at, first_review.timestamp, pr_number, "time_to_first_review"
        )
        first_update = next(
            (date for date in commit_dates if date > first_review.timestamp),
            None,
        )
        if first_update is not None:
            time_to_first_code_update = _elapsed_seconds(
                first_review.timestamp, first_update, pr_number, "time_to_first_code_update"
            )

    time_to_first_approval = None
    if first_approval is not None:
        time_to_first_approval = _elapsed_seconds(
            created_at, first_approval.timestamp, pr_number, "time_to_first_approval"
        )

    total_time_to_close = None
    if closed_at is not None:
        total_time_to_close = _elapsed_seconds(created_at, closed_at, pr_number, "total_time_to_close")

    return PullRequestMetrics(
        time_to_first_review=time_to_first_review,
        time_to_first_approval=time_to_first_approval,
        time_to_first_code_update=time_to_first_code_update,
        total_time_to_close=total_time_to_close,
    )


def fetch_details(
    client: GitHubClient,
    stub: PullRequestStub,
    status: PRStatus = PRStatus.ALL,
) -> Optional[PullRequest]:
    """Fetch the live record of one pull request and compute its metrics.

    Returns ``None`` when the search index said the PR matches a ``merged``
    filter but the live record has no ``merged_at``.

    Raises:
        RateLimitError: If GitHub rejected one of the reads for exhausting the
            request quota. Callers treat the item as dropped.
        UpstreamError: If any other read fails.
    """
    logger.debug("Fetching PR details", extra={"pr_number": stub.number, "url": stub.api_url})
    detail = client.get_pull_request(stub.api_url)
    merged_at = parse_github_datetime(detail.get("merged_at"))

    if status is PRStatus.MERGED and merged_at is None:
        logger.warning(
            "PR %s marked as merged but no merged_at date found.",
            stub.number,
            extra={"pr_number": stub.number},
        )
        return None

    with ThreadPoolExecutor(max_workers=3) as executor:
        reviews_future = executor.submit(client.list_reviews, stub.api_url)
        commits_future = executor.submit(client.list_commits, stub.api_url)
        comments_future = executor.submit(client.list_issue_comments, stub.comments_url)

        try:
            reviews = reviews_future.result()
        except RateLimitError as exc:
            logger.warning(
                "Rate limit reached when fetching reviews: %s",
                exc.body or exc,
                extra={"pr_number": stub.number},
            )
            raise
        commits = commits_future.result()
        issue_comments = comments_future.result()

    timeline = build_timeline(reviews, issue_comments)
    closed_at = parse_github_datetime(detail.get("closed_at"))
    metrics = compute_metrics(
        pr_number=stub.number,
        created_at=stub.created_at,
        closed_at=closed_at,
        timeline=timeline,
        commit_dates=_commit_dates(commits),
    )

    logger.info("PR %s details fetched successfully.", stub.number, extra={"pr_number": stub.number})

    return PullRequest(
        number=stub.number,
        title=stub.title,
        html_url=stub.html_url,
        author=stub.author,
        assignees=stub.assignees,
        created_at=stub.created_at,
        closed_at=closed_at,
        merged_at=merged_at,
        state=stub.state,
        timeline=tuple(timeline),
        metrics=metrics,
    )
