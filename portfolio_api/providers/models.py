"""Normalized records shared across providers and services."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal

ProviderName = Literal["contentful", "betterstack", "github"]
MonitorState = Literal["operational", "degraded", "down", "maintenance", "unknown"]


@dataclass
class Project:
    slug: str
    title: str
    description: str = ""
    picture_url: str = ""
    github_repo_url: str = ""
    website_url: str = ""
    tags: list[str] = field(default_factory=list)
    project_readme: dict[str, Any] | None = None
    is_featured: bool = False
    better_stack_status_id: str = ""


@dataclass
class PersonLink:
    name: str
    url: str


@dataclass
class Person:
    slug: str
    name: str
    occupation: str = ""
    location: str = ""
    pronouns: str = ""
    skills: list[str] = field(default_factory=list)
    links: list[PersonLink] = field(default_factory=list)
    introduction: dict[str, Any] | None = None
    picture_url: str = ""


@dataclass
class Commit:
    sha: str
    message: str
    author_name: str
    author_email: str
    date: str
    url: str
    author_username: str | None = None
    author_avatar: str | None = None


@dataclass
class CommitHistory:
    project_title: str
    repository_url: str
    commits: list[Commit]


@dataclass
class MonitorStatus:
    status: MonitorState
    last_checked_at: str
    monitor_url: str
    uptime_percentage: float | None = None
    response_time: int | None = None
    total_downtime: int | None = None
    incidents_count: int | None = None
    check_frequency: int | None = None
