"""Application entry point for the GitHub PR metrics generator."""

from __future__ import annotations

import json
import logging
import sys
from typing import Dict, List, Optional, Sequence

from .cli import parse_args
from .config import load_config
from .errors import (
    AuthenticationError,
    ConfigurationError,
    RateLimitError,
    UpstreamError,
    ValidationError,
)
from .github_client import GitHubClient
from .models import Repository
from .service import list_accessible_repositories, parse_filters, run_metrics_query
from .stats import generate_report

logger = logging.getLogger(__name__)

EXIT_SUCCESS = 0
EXIT_UNEXPECTED_ERROR = 1
EXIT_VALIDATION_ERROR = 2
EXIT_AUTHENTICATION_ERROR = 3
EXIT_API_ERROR = 4
EXIT_RATE_LIMITED = 5


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.WARNING),
        format="%(asctime)s [%(levelname)s]: %(message)s",
    )


def _render_repositories(grouped: Dict[str, List[Repository]], output_format: str) -> str:
    if output_format == "json":
        payload = {owner: [repo.to_dict() for repo in repos] for owner, repos in grouped.items()}
        return json.dumps({"repos": payload}, indent=2)

    lines: List[str] = []
    for owner, repos in grouped.items():
        lines.append(f"{owner} ({len(repos)})")
        lines.extend(f"   {repo.full_name}" for repo in repos)
    return "\n".join(lines)


def orchestrate_metrics_generation(argv: Optional[Sequence[str]] = None) -> int:
    """Run the metrics workflow and map failures to process exit codes.

    Exit codes:
        0: success
        1: unexpected error
        2: invalid filters or configuration
        3: missing GitHub token
        4: GitHub API error
        5: GitHub rate limit reached
    """
    try:
        args = parse_args(argv)
        configure_logging(args.log_level)

        config = load_config(repo=args.repo, max_workers=args.max_workers)

        with GitHubClient(config=config) as client:
            if args.list_repos:
                grouped = list_accessible_repositories(client)
                print(_render_repositories(grouped, args.format))
                return EXIT_SUCCESS

            filters = parse_filters(
                {
                    "repo": args.repo,
                    "from": args.date_from,
                    "to": args.date_to,
                    "status": args.status,
                    "author": args.authors,
                    "page": str(args.page),
                    "perPage": str(args.per_page),
                },
                default_repo=config.default_repo,
            )

            if args.format == "report":
                print(
                    f"Fetching PRs for repository '{filters.repo}' "
                    f"created {filters.date_from}..{filters.date_to}..."
                )
            result = run_metrics_query(client, filters, max_workers=config.max_workers)

        if args.format == "json":
            print(json.dumps(result.to_dict(), indent=2))
        else:
            print(generate_report(repo=filters.repo, result=result))
        return EXIT_SUCCESS
    except (ValidationError, ConfigurationError) as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return EXIT_VALIDATION_ERROR
    except AuthenticationError as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return EXIT_AUTHENTICATION_ERROR
    except RateLimitError as exc:
        print(f"ERROR: GitHub rate limit reached, retry later. {exc.body or exc}", file=sys.stderr)
        return EXIT_RATE_LIMITED
    except UpstreamError as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return EXIT_API_ERROR
    except Exception as exc:
        logger.exception("Unexpected error")
        print(f"ERROR: Unexpected failure: {exc}", file=sys.stderr)
        return EXIT_UNEXPECTED_ERROR


def main() -> None:
    sys.exit(orchestrate_metrics_generation())


if __name__ == "__main__":
    main()
