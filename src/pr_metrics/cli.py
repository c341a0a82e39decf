"""Command-line argument parsing for the GitHub PR metrics generator."""

from __future__ import annotations

import argparse
from typing import Optional, Sequence

from .models import PRStatus


def _positive_int(value: str) -> int:
    """Parse and validate a positive integer CLI value.

    Args:
        value: Raw command-line argument value.

    Returns:
        The validated positive integer.

    Raises:
        argparse.ArgumentTypeError: If value is not a positive integer.
    """
    try:
        parsed = int(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError("must be an integer") from exc

    if parsed <= 0:
        raise argparse.ArgumentTypeError("must be greater than 0")

    return parsed


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    """Parse command-line arguments for metrics generation.

    The date range is not enforced here so that a missing range is reported
    by the same validation as any other metrics query.

    Returns:
        Parsed CLI arguments.
    """
    parser = argparse.ArgumentParser(
        prog="gh-pr-metrics",
        description=(
            "Generate GitHub pull-request lifecycle metrics for a repository "
            "(time to first review, first approval, first code update and close)."
        ),
    )

    parser.add_argument(
        "--repo",
        default=None,
        help="Repository as owner/name (default: GITHUB_REPO environment variable).",
    )
    parser.add_argument(
        "--from",
        dest="date_from",
        default=None,
        help="Start of the PR creation date range (YYYY-MM-DD).",
    )
    parser.add_argument(
        "--to",
        dest="date_to",
        default=None,
        help="End of the PR creation date range (YYYY-MM-DD).",
    )
    parser.add_argument(
        "--status",
        choices=[status.value for status in PRStatus],
        default=PRStatus.ALL.value,
        help="Pull request state to include (default: all).",
    )
    parser.add_argument(
        "--authors",
        default=None,
        help="Semicolon-separated author handles, e.g. 'alice;bob'.",
    )
    parser.add_argument(
        "--page",
        type=_positive_int,
        default=1,
        help="Search result page (default: 1).",
    )
    parser.add_argument(
        "--per-page",
        type=_positive_int,
        default=10,
        help="Search results per page, at most 100 (default: 10).",
    )
    parser.add_argument(
        "--max-workers",
        type=_positive_int,
        default=None,
        help="Concurrent PR detail fetches (default: PR_METRICS_MAX_WORKERS or 10).",
    )
    parser.add_argument(
        "--format",
        choices=["report", "json"],
        default="report",
        help="Output format (default: report).",
    )
    parser.add_argument(
        "--list-repos",
        action="store_true",
        help="List repositories visible to the token instead of computing metrics.",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default="WARNING",
        help="Logging verbosity (default: WARNING).",
    )

    return parser.parse_args(argv)
