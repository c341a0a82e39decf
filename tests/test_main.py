"""Tests for application orchestration in the main module."""

import json
import sys
from argparse import Namespace
from pathlib import Path
from unittest.mock import MagicMock, Mock, patch

# Add src directory to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from pr_metrics.config import Config
from pr_metrics.errors import AuthenticationError, RateLimitError, UpstreamError
from pr_metrics.main import orchestrate_metrics_generation
from pr_metrics.models import Repository, SearchResult


def _args(**overrides) -> Namespace:
    values = {
        "repo": "octo/repo",
        "date_from": "2024-01-01",
        "date_to": "2024-01-31",
        "status": "all",
        "authors": None,
        "page": 1,
        "per_page": 10,
        "max_workers": None,
        "format": "report",
        "list_repos": False,
        "log_level": "WARNING",
    }
    values.update(overrides)
    return Namespace(**values)


CONFIG = Config(token="secret", default_repo="octo/repo", max_workers=10)


def _client_ctor(client):
    ctor = MagicMock()
    ctor.return_value.__enter__.return_value = client
    ctor.return_value.__exit__.return_value = False
    return ctor


def test_orchestrate_metrics_generation_success(capsys):
    """Verify orchestration returns 0 and wires components correctly on success."""
    client = Mock()
    result = SearchResult(total_count=3, pull_requests=[], authors=[])
    ctor = _client_ctor(client)

    with patch("pr_metrics.main.parse_args", return_value=_args()), patch(
        "pr_metrics.main.load_config", return_value=CONFIG
    ) as load_config_mock, patch("pr_metrics.main.GitHubClient", ctor), patch(
        "pr_metrics.main.run_metrics_query", return_value=result
    ) as run_mock, patch(
        "pr_metrics.main.generate_report", return_value="REPORT"
    ) as report_mock:
        exit_code = orchestrate_metrics_generation()

    assert exit_code == 0
    load_config_mock.assert_called_once_with(repo="octo/repo", max_workers=None)
    ctor.assert_called_once_with(config=CONFIG)
    filters = run_mock.call_args.args[1]
    assert filters.repo == "octo/repo"
    assert filters.date_from == "2024-01-01"
    assert run_mock.call_args.kwargs["max_workers"] == 10
    report_mock.assert_called_once_with(repo="octo/repo", result=result)
    output = capsys.readouterr().out
    assert "Fetching PRs for repository 'octo/repo'" in output
    assert "REPORT" in output


def test_orchestrate_metrics_generation_json_output(capsys):
    """Verify JSON output prints the serialized metrics response."""
    result = SearchResult(total_count=0, pull_requests=[], authors=[])

    with patch("pr_metrics.main.parse_args", return_value=_args(format="json")), patch(
        "pr_metrics.main.load_config", return_value=CONFIG
    ), patch("pr_metrics.main.GitHubClient", _client_ctor(Mock())), patch(
        "pr_metrics.main.run_metrics_query", return_value=result
    ):
        exit_code = orchestrate_metrics_generation()

    assert exit_code == 0
    assert json.loads(capsys.readouterr().out) == {"totalCount": 0, "pullRequests": [], "authors": []}


def test_orchestrate_metrics_generation_lists_repositories(capsys):
    """Verify --list-repos prints grouped repositories without computing metrics."""
    grouped = {"own": [Repository(id=1, full_name="alice/a", description=None, html_url="")]}

    with patch("pr_metrics.main.parse_args", return_value=_args(list_repos=True)), patch(
        "pr_metrics.main.load_config", return_value=CONFIG
    ), patch("pr_metrics.main.GitHubClient", _client_ctor(Mock())), patch(
        "pr_metrics.main.list_accessible_repositories", return_value=grouped
    ), patch("pr_metrics.main.run_metrics_query") as run_mock:
        exit_code = orchestrate_metrics_generation()

    assert exit_code == 0
    run_mock.assert_not_called()
    output = capsys.readouterr().out
    assert "own (1)" in output
    assert "alice/a" in output


def test_orchestrate_metrics_generation_missing_dates_returns_validation_exit_code():
    """Verify a missing date range is rejected before any API call."""
    with patch("pr_metrics.main.parse_args", return_value=_args(date_from=None)), patch(
        "pr_metrics.main.load_config", return_value=CONFIG
    ), patch("pr_metrics.main.GitHubClient", _client_ctor(Mock())), patch(
        "pr_metrics.main.run_metrics_query"
    ) as run_mock:
        exit_code = orchestrate_metrics_generation()

    assert exit_code == 2
    run_mock.assert_not_called()


def test_orchestrate_metrics_generation_missing_token_returns_auth_error():
    """Verify missing token failures return the authentication exit code."""
    with patch("pr_metrics.main.parse_args", return_value=_args()), patch(
        "pr_metrics.main.load_config",
        side_effect=AuthenticationError("GitHub token not configured."),
    ):
        exit_code = orchestrate_metrics_generation()

    assert exit_code == 3


def test_orchestrate_metrics_generation_api_error_returns_api_exit_code():
    """Verify GitHub API failures return the API error exit code."""
    with patch("pr_metrics.main.parse_args", return_value=_args()), patch(
        "pr_metrics.main.load_config", return_value=CONFIG
    ), patch("pr_metrics.main.GitHubClient", _client_ctor(Mock())), patch(
        "pr_metrics.main.run_metrics_query", side_effect=UpstreamError("Validation Failed")
    ):
        exit_code = orchestrate_metrics_generation()

    assert exit_code == 4


def test_orchestrate_metrics_generation_rate_limit_returns_rate_limit_exit_code(capsys):
    """Verify rate limits are reported distinctly from other API errors."""
    with patch("pr_metrics.main.parse_args", return_value=_args()), patch(
        "pr_metrics.main.load_config", return_value=CONFIG
    ), patch("pr_metrics.main.GitHubClient", _client_ctor(Mock())), patch(
        "pr_metrics.main.run_metrics_query",
        side_effect=RateLimitError("limited", status_code=403, body="API rate limit exceeded"),
    ):
        exit_code = orchestrate_metrics_generation()

    assert exit_code == 5
    assert "API rate limit exceeded" in capsys.readouterr().err


def test_orchestrate_metrics_generation_unexpected_error_returns_generic_exit_code():
    """Verify unexpected exceptions are mapped to the generic non-zero exit code."""
    with patch("pr_metrics.main.parse_args", side_effect=RuntimeError("boom")):
        exit_code = orchestrate_metrics_generation()

    assert exit_code == 1
