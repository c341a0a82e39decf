"""Tests for pull request detail fetching and metric extraction."""

import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path
from unittest.mock import Mock

import pytest

# Add src directory to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from pr_metrics.details import build_timeline, compute_metrics, fetch_details
from pr_metrics.errors import RateLimitError, UpstreamError
from pr_metrics.models import EventKind, PRStatus, PullRequestStub

T0 = datetime(2024, 3, 1, 9, 0, 0, tzinfo=timezone.utc)
PR_URL = "https://api.github.com/repos/o/r/pulls/42"
COMMENTS_URL = "https://api.github.com/repos/o/r/issues/42/comments"


def _iso(offset_seconds: int) -> str:
    return (T0 + timedelta(seconds=offset_seconds)).isoformat().replace("+00:00", "Z")


def _review(offset_seconds: int, state: str = "COMMENTED", login: str = "reviewer") -> dict:
    return {
        "user": {"login": login},
        "state": state,
        "submitted_at": _iso(offset_seconds),
        "body": f"{state} at {offset_seconds}",
    }


def _comment(offset_seconds: int, login: str = "commenter") -> dict:
    return {"user": {"login": login}, "created_at": _iso(offset_seconds), "body": "note"}


def _commit(offset_seconds: int) -> dict:
    return {"sha": str(offset_seconds), "commit": {"author": {"date": _iso(offset_seconds)}}}


def _stub() -> PullRequestStub:
    return PullRequestStub(
        number=42,
        title="Add feature",
        html_url="https://github.com/o/r/pull/42",
        author="alice",
        created_at=T0,
        state="closed",
        assignees=("bob",),
        api_url=PR_URL,
        comments_url=COMMENTS_URL,
    )


def _client(detail: dict, reviews=None, commits=None, comments=None) -> Mock:
    client = Mock()
    client.get_pull_request.return_value = detail
    client.list_reviews.return_value = reviews or []
    client.list_commits.return_value = commits or []
    client.list_issue_comments.return_value = comments or []
    return client


def test_build_timeline_sorts_by_timestamp_and_keeps_fetch_order_on_ties():
    """Verify reviews and comments merge chronologically with a stable tie order."""
    timeline = build_timeline(
        reviews=[_review(500), _review(100, state="APPROVED")],
        issue_comments=[_comment(300), _comment(100)],
    )

    assert [event.timestamp for event in timeline] == [
        T0 + timedelta(seconds=100),
        T0 + timedelta(seconds=100),
        T0 + timedelta(seconds=300),
        T0 + timedelta(seconds=500),
    ]
    assert timeline[0].kind is EventKind.REVIEW
    assert timeline[0].review_state == "APPROVED"
    assert timeline[1].kind is EventKind.COMMENT


def test_build_timeline_skips_pending_reviews():
    """Verify reviews without a submission time are not part of the timeline."""
    pending = {"user": {"login": "reviewer"}, "state": "PENDING", "submitted_at": None, "body": ""}

    timeline = build_timeline(reviews=[pending], issue_comments=[])

    assert timeline == []


def test_compute_metrics_first_review_and_first_approval():
    """Verify a review at +3600s and an approval at +7200s yield 3600 and 7200."""
    timeline = build_timeline([_review(3600), _review(7200, state="APPROVED")], [])

    metrics = compute_metrics(42, T0, None, timeline, commit_dates=[])

    assert metrics.time_to_first_review == 3600
    assert metrics.time_to_first_approval == 7200


def test_compute_metrics_first_approval_is_earliest_by_timestamp():
    """Verify the earliest approval wins even when it is listed later upstream."""
    timeline = build_timeline(
        [_review(9000, state="APPROVED"), _review(5400, state="approved")],
        [],
    )

    metrics = compute_metrics(42, T0, None, timeline, commit_dates=[])

    assert metrics.time_to_first_approval == 5400


def test_compute_metrics_first_code_update_uses_first_commit_after_review():
    """Verify commits before the first review are ignored for the code update metric."""
    timeline = build_timeline([_review(3600)], [])
    commit_dates = [T0 + timedelta(seconds=1000), T0 + timedelta(seconds=5000)]

    metrics = compute_metrics(42, T0, None, timeline, commit_dates=commit_dates)

    assert metrics.time_to_first_code_update == 5000 - 3600


def test_compute_metrics_without_reviews_leaves_review_metrics_empty():
    """Verify review-based metrics are None when nobody reviewed the PR."""
    metrics = compute_metrics(
        42,
        T0,
        T0 + timedelta(hours=2),
        build_timeline([], [_comment(60)]),
        commit_dates=[T0 + timedelta(seconds=120)],
    )

    assert metrics.time_to_first_review is None
    assert metrics.time_to_first_approval is None
    assert metrics.time_to_first_code_update is None
    assert metrics.total_time_to_close == 7200


def test_compute_metrics_open_pr_has_no_close_time():
    """Verify total time to close is None while the PR is open."""
    metrics = compute_metrics(42, T0, None, [], commit_dates=[])

    assert metrics.total_time_to_close is None


def test_compute_metrics_negative_duration_is_discarded():
    """Verify a review timestamp earlier than PR creation does not produce a metric."""
    timeline = build_timeline([_review(-60)], [])

    metrics = compute_metrics(42, T0, None, timeline, commit_dates=[])

    assert metrics.time_to_first_review is None


def test_fetch_details_builds_pull_request_from_all_reads():
    """Verify detail, reviews, commits and comments are combined into one PR."""
    client = _client(
        detail={"closed_at": _iso(9000), "merged_at": _iso(9000)},
        reviews=[_review(3600), _review(7200, state="APPROVED")],
        commits=[_commit(1000), _commit(5000)],
        comments=[_comment(1800)],
    )

    pr = fetch_details(client, _stub(), PRStatus.ALL)

    assert pr is not None
    assert pr.number == 42
    assert pr.author == "alice"
    assert pr.assignees == ("bob",)
    assert pr.closed_at == T0 + timedelta(seconds=9000)
    assert [event.kind for event in pr.timeline] == [
        EventKind.COMMENT,
        EventKind.REVIEW,
        EventKind.REVIEW,
    ]
    assert pr.metrics.time_to_first_review == 3600
    assert pr.metrics.time_to_first_approval == 7200
    assert pr.metrics.time_to_first_code_update == 1400
    assert pr.metrics.total_time_to_close == 9000
    client.get_pull_request.assert_called_once_with(PR_URL)
    client.list_reviews.assert_called_once_with(PR_URL)
    client.list_commits.assert_called_once_with(PR_URL)
    client.list_issue_comments.assert_called_once_with(COMMENTS_URL)


def test_fetch_details_keeps_pr_without_reviews():
    """Verify the absence of reviews does not drop the PR."""
    client = _client(detail={"closed_at": None, "merged_at": None})

    pr = fetch_details(client, _stub(), PRStatus.ALL)

    assert pr is not None
    assert pr.metrics.time_to_first_review is None
    assert pr.metrics.total_time_to_close is None


def test_fetch_details_drops_unmerged_pr_for_merged_filter():
    """Verify a PR without merged_at is dropped when the merged filter is requested."""
    client = _client(detail={"closed_at": _iso(600), "merged_at": None})

    pr = fetch_details(client, _stub(), PRStatus.MERGED)

    assert pr is None
    client.list_reviews.assert_not_called()


def test_fetch_details_keeps_unmerged_closed_pr_for_closed_filter():
    """Verify the merged check only applies to the merged filter."""
    client = _client(detail={"closed_at": _iso(600), "merged_at": None})

    pr = fetch_details(client, _stub(), PRStatus.CLOSED)

    assert pr is not None
    assert pr.metrics.total_time_to_close == 600


def test_fetch_details_propagates_rate_limit_from_reviews():
    """Verify a rate-limited reviews read is surfaced as RateLimitError."""
    client = _client(detail={"closed_at": None, "merged_at": None})
    client.list_reviews.side_effect = RateLimitError(
        "limited", status_code=403, body="API rate limit exceeded"
    )

    with pytest.raises(RateLimitError):
        fetch_details(client, _stub(), PRStatus.ALL)


def test_fetch_details_propagates_upstream_errors():
    """Verify transport failures of secondary reads are not swallowed."""
    client = _client(detail={"closed_at": None, "merged_at": None})
    client.list_commits.side_effect = UpstreamError("boom", status_code=500)

    with pytest.raises(UpstreamError):
        fetch_details(client, _stub(), PRStatus.ALL)
