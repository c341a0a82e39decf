"""Statistics and formatting helpers for PR metrics reporting.

This module provides utilities for:
- Computing mean and median over metric samples that may be missing.
- Aggregating the four per-PR latency metrics across a result set.
- Collecting the distinct authors and assignees of a result set.
- Formatting second-based durations as ``1d 2h 3m 4s``.
- Building a human-readable report for a metrics query.
"""

from __future__ import annotations

from typing import Iterable, List, Optional, Sequence

from .models import (
    METRIC_FIELDS,
    AggregatedData,
    AggregatedMetric,
    PullRequest,
    SearchResult,
)

METRIC_LABELS = {
    "time_to_first_review": "Time to First Review",
    "time_to_first_approval": "Time to First Approval",
    "time_to_first_code_update": "Time to First Code Update",
    "total_time_to_close": "Total Time to Close",
}


def calculate_average(values: Sequence[float]) -> Optional[float]:
    """Return the arithmetic mean of ``values`` or ``None`` when empty."""
    if not values:
        return None
    return sum(values) / len(values)


def calculate_median(values: Sequence[float]) -> Optional[float]:
    """Return the median of ``values`` or ``None`` when empty.

    The input does not need to be sorted; a sorted copy is used. For an even
    number of samples the mean of the two middle values is returned.
    """
    if not values:
        return None

    sorted_values = sorted(values)
    mid = len(sorted_values) // 2
    if len(sorted_values) % 2 == 0:
        return (sorted_values[mid - 1] + sorted_values[mid]) / 2
    return sorted_values[mid]


def metric_samples(pull_requests: Iterable[PullRequest], metric: str) -> List[int]:
    """Collect the defined values of one metric across pull requests."""
    samples: List[int] = []
    for pr in pull_requests:
        value = getattr(pr.metrics, metric)
        if value is not None:
            samples.append(value)
    return samples


def aggregate_metrics(pull_requests: Sequence[PullRequest]) -> AggregatedData:
    """Compute average and median for every metric independently.

    A PR only contributes to the metrics it defines; missing values are never
    counted as zero.
    """
    aggregated = AggregatedData()
    for metric in METRIC_FIELDS:
        samples = metric_samples(pull_requests, metric)
        setattr(
            aggregated,
            metric,
            AggregatedMetric(
                average=calculate_average(samples),
                median=calculate_median(samples),
            ),
        )
    return aggregated


def collect_authors(pull_requests: Iterable[PullRequest]) -> List[str]:
    """Return PR authors and assignees, unique, in order of first appearance."""
    authors = {}
    for pr in pull_requests:
        if pr.author:
            authors.setdefault(pr.author, None)
        for assignee in pr.assignees:
            authors.setdefault(assignee, None)
    return list(authors)


def format_duration(seconds: Optional[float]) -> str:
    """Format seconds as ``[Nd ]Nh Nm Ns``.

    Args:
        seconds: Duration in seconds.

    Returns:
        ``"N/A"`` when ``seconds`` is ``None``; otherwise the duration with a
        day component only when it is non-zero.
    """
    if seconds is None:
        return "N/A"

    total_seconds = int(seconds)
    days = total_seconds // 86400
    hours = (total_seconds % 86400) // 3600
    minutes = (total_seconds % 3600) // 60
    remaining_seconds = total_seconds % 60

    parts = []
    if days > 0:
        parts.append(f"{days}d")
    parts.extend([f"{hours}h", f"{minutes}m", f"{remaining_seconds}s"])
    return " ".join(parts)


def generate_report(repo: str, result: SearchResult) -> str:
    """Generate a human-readable metrics report for a repository.

    The report includes the search match count, the number of processed PRs,
    the authors seen, the aggregated average and median of each metric, and
    one line per pull request.

    All durations are formatted using :func:`format_duration`.
    """
    aggregated = result.aggregated or aggregate_metrics(result.pull_requests)

    lines = [
        f"Repository: {repo}",
        "PR Metrics Report",
        f"   Matching PRs: {result.total_count}",
        f"   Processed PRs: {len(result.pull_requests)}",
        f"   Authors: {', '.join(result.authors) if result.authors else 'none'}",
    ]

    for index, metric in enumerate(METRIC_FIELDS, start=1):
        summary: AggregatedMetric = getattr(aggregated, metric)
        lines.extend(
            [
                "",
                f"{index}) {METRIC_LABELS[metric]}",
                f"   Samples: {len(metric_samples(result.pull_requests, metric))}",
                f"   Average: {format_duration(summary.average)}",
                f"   Median: {format_duration(summary.median)}",
            ]
        )

    if result.pull_requests:
        lines.extend(["", "Pull Requests"])
        for pr in result.pull_requests:
            metrics = pr.metrics
            lines.append(
                f"   #{pr.number} {pr.title} ({pr.author}, {pr.state})"
                f" | review={format_duration(metrics.time_to_first_review)}"
                f" | approval={format_duration(metrics.time_to_first_approval)}"
                f" | update={format_duration(metrics.time_to_first_code_update)}"
                f" | close={format_duration(metrics.total_time_to_close)}"
            )

    return "\n".join(lines)
