from typing import Any

import pytest

from portfolio_api.cache.manager import CacheManager
from portfolio_api.providers.betterstack import BetterStackClient
from portfolio_api.providers.contentful import ContentfulClient
from portfolio_api.providers.github import GitHubClient
from portfolio_api.providers.models import Commit, MonitorStatus
from portfolio_api.runtime.limits import FixedWindowRateLimiter
from portfolio_api.services.base import ServiceContext

PROJECTS = [
    {
        "fields": {
            "slug": "site",
            "title": "Portfolio Site",
            "description": "Personal website",
            "tags": ["Web", "Python"],
            "isFeatured": True,
            "githubRepoUrl": "https://github.com/ada/site",
            "betterStackStatusId": "42",
        }
    },
    {
        "fields": {
            "slug": "cli",
            "title": "Tiny CLI",
            "description": "Command line helper",
            "tags": ["Tools"],
            "isFeatured": False,
        }
    },
]
PEOPLE = [{"fields": {"slug": "ada", "name": "Ada", "occupation": "Engineer", "skills": ["Python"]}}]
OPERATIONAL = MonitorStatus("operational", "2025-01-01T00:00:00Z", "https://site.dev")


class FakeContentful(ContentfulClient):
    def __init__(self) -> None:
        super().__init__("space", "token")
        self.calls: list[tuple[str, dict[str, Any] | None]] = []

    def get_entries(self, content_type, filters=None, order="-sys.createdAt", limit=100, include=2):
        self.calls.append((content_type, dict(filters) if filters else None))
        entries = PROJECTS if content_type == "project" else PEOPLE
        slug = (filters or {}).get("fields.slug")
        if slug is not None:
            entries = [entry for entry in entries if entry["fields"]["slug"] == slug]
        return entries[:limit]


class FakeBetterStack(BetterStackClient):
    def __init__(self, status: MonitorStatus | None) -> None:
        super().__init__("key")
        self.status = status
        self.calls: list[str] = []

    def get_monitor_status(self, monitor_id: str) -> MonitorStatus | None:
        self.calls.append(monitor_id)
        return self.status


class FakeGitHub(GitHubClient):
    def __init__(self) -> None:
        super().__init__()
        self.calls: list[tuple[str, str]] = []

    def get_commits(self, owner: str, repo: str, per_page: int = 10) -> list[Commit]:
        self.calls.append((owner, repo))
        return [Commit(sha="abc", message="Init", author_name="Ada", author_email="", date="", url="")]


@pytest.fixture
def make_context():
    """Factory for a service context backed by in-memory fake collaborators."""

    def build(**providers: object) -> ServiceContext:
        defaults: dict[str, object] = {
            "contentful": FakeContentful(),
            "betterstack": FakeBetterStack(OPERATIONAL),
            "github": FakeGitHub(),
        }
        defaults.update(providers)
        return ServiceContext(
            cache=CacheManager(cleanup_interval_seconds=0, enable_stats=True),
            rate_limiter=FixedWindowRateLimiter(),
            providers=defaults,
            environment="test",
            started_at=0.0,
        )

    return build
