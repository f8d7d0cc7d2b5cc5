"""GitHub commit listing adapter."""

from __future__ import annotations

import re
from typing import Any

from portfolio_api.providers.http import ProviderError, fetch_json
from portfolio_api.providers.models import Commit

REPO_URL_PATTERN = re.compile(r"github\.com/([^/\s]+)/([^/\s?#]+)")


def parse_repo_url(url: str | None) -> tuple[str, str] | None:
    match = REPO_URL_PATTERN.search(url or "")
    if not match:
        return None
    owner, repo = match.group(1), match.group(2)
    if repo.endswith(".git"):
        repo = repo[: -len(".git")]
    if not repo:
        return None
    return owner, repo


def _to_commit(item: dict[str, Any]) -> Commit:
    details = item.get("commit") or {}
    author = details.get("author") or {}
    account = item.get("author") or {}
    return Commit(
        sha=str(item.get("sha") or ""),
        message=str(details.get("message") or ""),
        author_name=str(author.get("name") or ""),
        author_email=str(author.get("email") or ""),
        date=str(author.get("date") or ""),
        url=str(item.get("html_url") or ""),
        author_username=account.get("login"),
        author_avatar=account.get("avatar_url"),
    )


class GitHubClient:
    def __init__(
        self,
        token: str | None = None,
        timeout_seconds: float = 10.0,
        user_agent: str = "portfolio-api",
    ) -> None:
        self.token = token
        self.timeout_seconds = timeout_seconds
        self.user_agent = user_agent
        self.base = "https://api.github.com"

    def get_commits(self, owner: str, repo: str, per_page: int = 10) -> list[Commit]:
        headers = {"Accept": "application/vnd.github.v3+json", "User-Agent": self.user_agent}
        if self.token:
            headers["Authorization"] = f"token {self.token}"
        data = fetch_json(
            f"{self.base}/repos/{owner}/{repo}/commits",
            provider="github",
            timeout_seconds=self.timeout_seconds,
            headers=headers,
            params={"per_page": max(1, min(per_page, 100))},
        )
        if not isinstance(data, list):
            raise ProviderError("github", "BAD_RESPONSE", "GitHub returned an unexpected commit payload.")
        return [_to_commit(item) for item in data if isinstance(item, dict)]
