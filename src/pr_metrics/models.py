"""Domain models for GitHub pull request metrics.

These dataclasses intentionally model only the subset of API payload fields that
are required for metric computation and for the metrics query response. The
``to_dict`` helpers produce the camelCase shape consumed by dashboard clients.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple


def parse_github_datetime(value: Optional[str]) -> Optional[datetime]:
    """Parse GitHub ISO8601 timestamps into timezone-aware UTC datetimes."""
    if not value:
        return None

    normalized = value[:-1] + "+00:00" if value.endswith("Z") else value
    parsed = datetime.fromisoformat(normalized)
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def format_github_datetime(value: Optional[datetime]) -> Optional[str]:
    """Format a datetime the way GitHub reports it (``2024-01-01T00:00:00Z``)."""
    if value is None:
        return None
    return value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


class PRStatus(str, Enum):
    """Pull request state filter accepted by metrics queries."""

    ALL = "all"
    OPEN = "open"
    CLOSED = "closed"
    MERGED = "merged"


class EventKind(str, Enum):
    """Kind of event on a pull request timeline."""

    REVIEW = "review"
    COMMENT = "comment"


@dataclass(frozen=True)
class PullRequestStub:
    """Represents one pull request item returned by the issue search API."""

    number: int
    title: str
    html_url: str
    author: str
    created_at: datetime
    state: str
    assignees: Tuple[str, ...]
    api_url: str
    comments_url: str

    @classmethod
    def from_search_item(cls, item: Dict[str, Any]) -> "PullRequestStub":
        """Build a stub from a ``/search/issues`` result item.

        Raises:
            KeyError: If the item is not a pull request or lacks required fields.
        """
        created_at = parse_github_datetime(item["created_at"])
        if created_at is None:
            raise KeyError("created_at")

        return cls(
            number=int(item["number"]),
            title=str(item.get("title") or ""),
            html_url=str(item.get("html_url") or ""),
            author=str((item.get("user") or {}).get("login") or ""),
            created_at=created_at,
            state=str(item.get("state") or ""),
            assignees=tuple(
                str(assignee["login"])
                for assignee in item.get("assignees") or []
                if assignee and assignee.get("login")
            ),
            api_url=str(item["pull_request"]["url"]),
            comments_url=str(item["comments_url"]),
        )


@dataclass(frozen=True)
class TimelineEvent:
    """Represents one review or issue comment on a pull request timeline."""

    kind: EventKind
    author: str
    timestamp: datetime
    body: Optional[str] = None
    review_state: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "type": self.kind.value,
            "author": self.author,
            "createdAt": format_github_datetime(self.timestamp),
            "body": self.body,
        }
        if self.kind is EventKind.REVIEW:
            data["state"] = self.review_state
        return data


@dataclass(frozen=True)
class PullRequestMetrics:
    """Per-PR latency metrics in whole seconds; ``None`` when the event never happened."""

    time_to_first_review: Optional[int] = None
    time_to_first_approval: Optional[int] = None
    time_to_first_code_update: Optional[int] = None
    total_time_to_close: Optional[int] = None

    def to_dict(self) -> Dict[str, Optional[int]]:
        return {
            "timeToFirstReview": self.time_to_first_review,
            "timeToFirstApproval": self.time_to_first_approval,
            "timeToFirstCodeUpdate": self.time_to_first_code_update,
            "totalTimeToClose": self.total_time_to_close,
        }


METRIC_FIELDS: Tuple[str, ...] = (
    "time_to_first_review",
    "time_to_first_approval",
    "time_to_first_code_update",
    "total_time_to_close",
)


@dataclass(frozen=True)
class PullRequest:
    """A pull request enriched with detail data, its timeline and metrics."""

    number: int
    title: str
    html_url: str
    author: str
    assignees: Tuple[str, ...]
    created_at: datetime
    closed_at: Optional[datetime]
    merged_at: Optional[datetime]
    state: str
    timeline: Tuple[TimelineEvent, ...]
    metrics: PullRequestMetrics

    def to_dict(self) -> Dict[str, Any]:
        return {
            "number": self.number,
            "title": self.title,
            "url": self.html_url,
            "author": self.author,
            "assignees": list(self.assignees),
            "createdAt": format_github_datetime(self.created_at),
            "closedAt": format_github_datetime(self.closed_at),
            "mergedAt": format_github_datetime(self.merged_at),
            "state": self.state,
            "timeline": [event.to_dict() for event in self.timeline],
            "metrics": self.metrics.to_dict(),
        }


@dataclass
class AggregatedMetric:
    """Mean and median of one metric over the PRs where it is defined."""

    average: Optional[float] = None
    median: Optional[float] = None

    def to_dict(self) -> Dict[str, Optional[float]]:
        return {"average": self.average, "median": self.median}


@dataclass
class AggregatedData:
    """Aggregated statistics for every per-PR metric."""

    time_to_first_review: AggregatedMetric = field(default_factory=AggregatedMetric)
    time_to_first_approval: AggregatedMetric = field(default_factory=AggregatedMetric)
    time_to_first_code_update: AggregatedMetric = field(default_factory=AggregatedMetric)
    total_time_to_close: AggregatedMetric = field(default_factory=AggregatedMetric)

    def to_dict(self) -> Dict[str, Dict[str, Optional[float]]]:
        return {
            "timeToFirstReview": self.time_to_first_review.to_dict(),
            "timeToFirstApproval": self.time_to_first_approval.to_dict(),
            "timeToFirstCodeUpdate": self.time_to_first_code_update.to_dict(),
            "totalTimeToClose": self.total_time_to_close.to_dict(),
        }


@dataclass(frozen=True)
class SearchFilters:
    """Validated filter parameters for a pull request metrics query."""

    repo: str
    date_from: str
    date_to: str
    status: PRStatus = PRStatus.ALL
    authors: Tuple[str, ...] = ()
    page: int = 1
    per_page: int = 10


@dataclass
class SearchResult:
    """Outcome of a pull request search with fetched details."""

    total_count: int
    pull_requests: List[PullRequest]
    authors: List[str]
    aggregated: Optional[AggregatedData] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "totalCount": self.total_count,
            "pullRequests": [pr.to_dict() for pr in self.pull_requests],
            "authors": list(self.authors),
        }
        if self.aggregated is not None:
            data["aggregated"] = self.aggregated.to_dict()
        return data


@dataclass(frozen=True)
class Repository:
    """Represents a repository visible to the authenticated user."""

    id: int
    full_name: str
    description: Optional[str]
    html_url: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.full_name,
            "description": self.description,
            "html_url": self.html_url,
        }
