"""Configuration parsing and validation for the GitHub PR metrics generator."""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional

from .errors import AuthenticationError, ConfigurationError

DEFAULT_API_BASE_URL = "https://api.github.com"
DEFAULT_MAX_WORKERS = 10


@dataclass(frozen=True)
class Config:
    """Validated runtime settings used by the metrics generator."""

    token: str
    default_repo: Optional[str]
    api_base_url: str = DEFAULT_API_BASE_URL
    max_workers: int = DEFAULT_MAX_WORKERS
    timeout_seconds: int = 30


def _parse_max_workers(raw: Optional[str]) -> int:
    if raw is None or not raw.strip():
        return DEFAULT_MAX_WORKERS
    try:
        value = int(raw)
    except ValueError as exc:
        raise ConfigurationError(
            "Invalid value for 'PR_METRICS_MAX_WORKERS': expected an integer."
        ) from exc
    return value


def load_config(repo: Optional[str] = None, max_workers: Optional[int] = None) -> Config:
    """Build and validate application configuration.

    Args:
        repo: Repository (``owner/name``) used when a query does not name one.
            Falls back to the ``GITHUB_REPO`` environment variable.
        max_workers: Upper bound on concurrent pull request detail fetches.
            Falls back to ``PR_METRICS_MAX_WORKERS`` and then to ``10``.

    Returns:
        A validated ``Config`` instance.

    Raises:
        ConfigurationError: If ``max_workers`` is not greater than ``0``.
        AuthenticationError: If ``GITHUB_TOKEN`` is not configured.
    """
    workers = max_workers
    if workers is None:
        workers = _parse_max_workers(os.getenv("PR_METRICS_MAX_WORKERS"))
    if workers <= 0:
        raise ConfigurationError(
            "Invalid value for 'max_workers': expected an integer greater than 0."
        )

    token: str = os.getenv("GITHUB_TOKEN", "").strip()
    if not token:
        raise AuthenticationError(
            "GitHub token not configured. "
            "Set the 'GITHUB_TOKEN' environment variable before running the metrics generator."
        )

    default_repo = (repo or os.getenv("GITHUB_REPO", "")).strip() or None
    api_base_url = os.getenv("GITHUB_API_URL", "").strip() or DEFAULT_API_BASE_URL

    return Config(
        token=token,
        default_repo=default_repo,
        api_base_url=api_base_url.rstrip("/"),
        max_workers=workers,
    )
