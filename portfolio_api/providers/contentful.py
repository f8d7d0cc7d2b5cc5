"""Contentful Content Delivery API adapter."""

from __future__ import annotations

import logging
from typing import Any, Mapping

from portfolio_api.providers.http import ProviderError, fetch_json
from portfolio_api.providers.models import Person, PersonLink, Project

LOGGER = logging.getLogger(__name__)
EMPTY_DOCUMENT: dict[str, Any] = {"nodeType": "document", "content": [], "data": {}}


class ContentfulClient:
    def __init__(
        self,
        space_id: str | None,
        access_token: str | None,
        environment: str = "master",
        timeout_seconds: float = 10.0,
    ) -> None:
        self.space_id = space_id
        self.access_token = access_token
        self.environment = environment
        self.timeout_seconds = timeout_seconds
        self.base = "https://cdn.contentful.com"

    @property
    def configured(self) -> bool:
        return bool(self.space_id and self.access_token)

    def get_entries(
        self,
        content_type: str,
        filters: Mapping[str, Any] | None = None,
        order: str = "-sys.createdAt",
        limit: int = 100,
        include: int = 2,
    ) -> list[dict[str, Any]]:
        """Fetch raw entries of one content type with linked assets resolved in place."""
        if not self.configured:
            raise ProviderError("contentful", "AUTH", "Contentful space ID or access token is not configured.")
        params: dict[str, Any] = {
            "access_token": self.access_token,
            "content_type": content_type,
            "order": order,
            "limit": max(1, limit),
            "include": include,
        }
        params.update(filters or {})
        url = f"{self.base}/spaces/{self.space_id}/environments/{self.environment}/entries"
        data = fetch_json(url, provider="contentful", timeout_seconds=self.timeout_seconds, params=params)
        if not isinstance(data, dict):
            raise ProviderError("contentful", "BAD_RESPONSE", "Contentful returned an unexpected payload.")
        items = data.get("items")
        if not isinstance(items, list):
            return []
        LOGGER.info("contentful entries fetched: content_type=%s count=%d", content_type, len(items))
        assets = _index_assets(data.get("includes"))
        return [_resolve_links(item, assets) for item in items if isinstance(item, dict)]


def _index_assets(includes: Any) -> dict[str, dict[str, Any]]:
    if not isinstance(includes, dict):
        return {}
    index: dict[str, dict[str, Any]] = {}
    for asset in includes.get("Asset") or []:
        asset_id = ((asset or {}).get("sys") or {}).get("id")
        if asset_id:
            index[asset_id] = asset
    return index


def _resolve_value(value: Any, assets: dict[str, dict[str, Any]]) -> Any:
    if isinstance(value, list):
        return [_resolve_value(item, assets) for item in value]
    if isinstance(value, dict):
        link = value.get("sys")
        if isinstance(link, dict) and link.get("type") == "Link" and link.get("linkType") == "Asset":
            return assets.get(link.get("id"), value)
    return value


def _resolve_links(entry: dict[str, Any], assets: dict[str, dict[str, Any]]) -> dict[str, Any]:
    fields = entry.get("fields") or {}
    return {**entry, "fields": {name: _resolve_value(value, assets) for name, value in fields.items()}}


def picture_url(fields: Mapping[str, Any]) -> str:
    picture = fields.get("picture")
    if not isinstance(picture, dict):
        return ""
    url = ((picture.get("fields") or {}).get("file") or {}).get("url")
    if not url:
        LOGGER.warning("unresolved picture asset: slug=%s", fields.get("slug"))
        return ""
    return f"https:{url}" if url.startswith("//") else str(url)


def to_project(entry: Mapping[str, Any]) -> Project:
    fields = entry.get("fields") or {}
    return Project(
        slug=str(fields.get("slug") or ""),
        title=str(fields.get("title") or ""),
        description=str(fields.get("description") or ""),
        picture_url=picture_url(fields),
        github_repo_url=str(fields.get("githubRepoUrl") or ""),
        website_url=str(fields.get("websiteUrl") or ""),
        tags=[str(tag) for tag in fields.get("tags") or []],
        project_readme=fields.get("projectReadme") or dict(EMPTY_DOCUMENT),
        is_featured=bool(fields.get("isFeatured")),
        better_stack_status_id=str(fields.get("betterStackStatusId") or ""),
    )


def to_person(entry: Mapping[str, Any]) -> Person:
    fields = entry.get("fields") or {}
    links = [
        PersonLink(name=str(link.get("name") or ""), url=str(link.get("url") or ""))
        for link in fields.get("links") or []
        if isinstance(link, dict)
    ]
    return Person(
        slug=str(fields.get("slug") or ""),
        name=str(fields.get("name") or ""),
        occupation=str(fields.get("occupation") or ""),
        location=str(fields.get("location") or ""),
        pronouns=str(fields.get("pronouns") or ""),
        skills=[str(skill) for skill in fields.get("skills") or []],
        links=links,
        introduction=fields.get("introduction"),
        picture_url=picture_url(fields),
    )
