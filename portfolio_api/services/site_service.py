"""Site data reads: projects, people, uptime and commits behind the shared cache."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from portfolio_api.providers.betterstack import BetterStackClient
from portfolio_api.providers.contentful import ContentfulClient, to_person, to_project
from portfolio_api.providers.github import GitHubClient, parse_repo_url
from portfolio_api.providers.models import CommitHistory, MonitorStatus, Person, Project
from portfolio_api.services.base import (
    ExternalServiceError,
    NotFoundError,
    ServiceContext,
    ValidationError,
    cached_call,
    generate_cache_key,
)

LOGGER = logging.getLogger(__name__)
MAX_QUERY_LENGTH = 100

_KEY_PREFIXES: dict[str, tuple[str, ...]] = {
    "projects": ("projects", "list"),
    "project": ("projects", "detail"),
    "status": ("projects", "status"),
    "commits": ("commits",),
    "people": ("people", "list"),
    "person": ("people", "detail"),
    "search": ("search",),
    "tag": ("tags",),
}


def normalize_term(value: str | None) -> str:
    return (value or "").strip().lower()


def cache_key(kind: str, *parts: str) -> str:
    """Key under which a site read is cached, e.g. ``projects:detail:my-app``."""
    if kind in {"search", "tag"}:
        parts = tuple(normalize_term(part) for part in parts)
    return generate_cache_key(*_KEY_PREFIXES[kind], *parts)


class SiteService:
    def __init__(self, ctx: ServiceContext) -> None:
        self.ctx = ctx
        self.ttl = ctx.cache_ttl

    def _provider(self, name: str, kind: type) -> Any:
        provider = self.ctx.get_provider(name)
        if not isinstance(provider, kind):
            raise ExternalServiceError(name, "not configured")
        return provider

    @property
    def content(self) -> ContentfulClient:
        return self._provider("contentful", ContentfulClient)

    async def list_projects(self, featured: bool = False) -> list[Project]:
        key = cache_key("projects", "featured" if featured else "all")

        async def fetch() -> list[Project]:
            entries = await asyncio.to_thread(self.content.get_entries, "project")
            projects = [to_project(entry) for entry in entries]
            if featured:
                return [project for project in projects if project.is_featured]
            return projects

        return await cached_call(self.ctx, key, fetch, self.ttl.projects_list, ["projects"])

    async def get_project(self, slug: str) -> Project:
        key = cache_key("project", slug)

        async def fetch() -> Project:
            entries = await asyncio.to_thread(
                self.content.get_entries, "project", {"fields.slug": slug}, limit=1
            )
            if not entries:
                raise NotFoundError("Project", slug)
            return to_project(entries[0])

        return await cached_call(
            self.ctx, key, fetch, self.ttl.projects_detail, ["projects", f"project:{slug}"]
        )

    async def get_project_status(self, slug: str) -> MonitorStatus:
        key = cache_key("status", slug)

        async def fetch() -> MonitorStatus:
            project = await self.get_project(slug)
            if not project.better_stack_status_id:
                raise ValidationError("No monitoring configured for this project")
            uptime = self._provider("betterstack", BetterStackClient)
            LOGGER.info("fetching monitor status: slug=%s monitor=%s", slug, project.better_stack_status_id)
            status = await asyncio.to_thread(uptime.get_monitor_status, project.better_stack_status_id)
            if status is None:
                raise ExternalServiceError("betterstack", "monitor status unavailable")
            return status

        return await cached_call(self.ctx, key, fetch, self.ttl.status, ["status", f"status:{slug}"])

    async def get_project_commits(self, slug: str) -> CommitHistory:
        key = cache_key("commits", slug)

        async def fetch() -> CommitHistory:
            project = await self.get_project(slug)
            repo = parse_repo_url(project.github_repo_url)
            if repo is None:
                raise ValidationError(f"No GitHub repository found for project: {slug}")
            github = self._provider("github", GitHubClient)
            commits = await asyncio.to_thread(github.get_commits, *repo)
            return CommitHistory(
                project_title=project.title,
                repository_url=project.github_repo_url,
                commits=commits,
            )

        return await cached_call(self.ctx, key, fetch, self.ttl.commits, ["commits", f"commits:{slug}"])

    async def list_people(self) -> list[Person]:
        key = cache_key("people", "all")

        async def fetch() -> list[Person]:
            entries = await asyncio.to_thread(self.content.get_entries, "person", None, "fields.name")
            return [to_person(entry) for entry in entries]

        return await cached_call(self.ctx, key, fetch, self.ttl.people_list, ["people"])

    async def get_person(self, slug: str) -> Person:
        key = cache_key("person", slug)

        async def fetch() -> Person:
            entries = await asyncio.to_thread(
                self.content.get_entries, "person", {"fields.slug": slug}, limit=1
            )
            if not entries:
                raise NotFoundError("Person", slug)
            return to_person(entries[0])

        return await cached_call(
            self.ctx, key, fetch, self.ttl.people_detail, ["people", f"person:{slug}"]
        )

    async def search(self, query: str) -> dict[str, list[Any]]:
        term = normalize_term(query)
        if not term:
            raise ValidationError("Search query must not be empty.")
        if len(term) > MAX_QUERY_LENGTH:
            raise ValidationError(f"Search query must be at most {MAX_QUERY_LENGTH} characters.")
        key = cache_key("search", term)

        async def fetch() -> dict[str, list[Any]]:
            projects, people = await asyncio.gather(self.list_projects(), self.list_people())
            return {
                "projects": [project for project in projects if _project_matches(project, term)],
                "people": [person for person in people if _person_matches(person, term)],
            }

        return await cached_call(self.ctx, key, fetch, self.ttl.search, ["projects", "people", "search"])

    async def projects_by_tag(self, tag: str) -> list[Project]:
        wanted = normalize_term(tag)
        if not wanted:
            raise ValidationError("Tag must not be empty.")
        key = cache_key("tag", wanted)

        async def fetch() -> list[Project]:
            projects = await self.list_projects()
            return [project for project in projects if wanted in {item.lower() for item in project.tags}]

        return await cached_call(self.ctx, key, fetch, self.ttl.tags, ["projects", "tags"])


def _project_matches(project: Project, term: str) -> bool:
    haystack = [project.title, project.description, *project.tags]
    return any(term in value.lower() for value in haystack)


def _person_matches(person: Person, term: str) -> bool:
    haystack = [person.name, person.occupation, person.location, *person.skills]
    return any(term in value.lower() for value in haystack)
