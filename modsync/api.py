"""Modrinth catalog client for project search and version listing."""

import json
import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Protocol

import requests

from .config import Settings

logger = logging.getLogger(__name__)

MAX_SEARCH_LIMIT = 100
MAX_QUERY_LENGTH = 200


class CatalogAPIError(Exception):
    """Base exception for catalog API errors."""

    pass


class CatalogRateLimited(CatalogAPIError):
    """Raised when rate limited by the API."""

    def __init__(self, retry_after: int = 60):
        self.retry_after = retry_after
        super().__init__(f"Rate limited. Retry after {retry_after} seconds.")


@dataclass(frozen=True)
class CatalogProject:
    """A project hit returned by catalog search."""

    project_id: str
    slug: str
    title: str
    description: str = ""
    icon_url: str | None = None
    downloads: int = 0
    author: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CatalogProject":
        return cls(
            project_id=data.get("project_id") or data.get("id", ""),
            slug=data.get("slug", ""),
            title=data.get("title", ""),
            description=data.get("description", ""),
            icon_url=data.get("icon_url"),
            downloads=data.get("downloads", 0),
            author=data.get("author", ""),
        )


@dataclass(frozen=True)
class VersionFile:
    filename: str
    url: str
    is_primary: bool = False

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "VersionFile":
        return cls(
            filename=data.get("filename", ""),
            url=data.get("url", ""),
            is_primary=bool(data.get("primary", False)),
        )


@dataclass(frozen=True)
class CatalogVersion:
    """One published version of a project."""

    id: str
    version_number: str
    name: str = ""
    files: list[VersionFile] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CatalogVersion":
        return cls(
            id=data.get("id", ""),
            version_number=data.get("version_number", ""),
            name=data.get("name", ""),
            files=[VersionFile.from_dict(f) for f in data.get("files", [])],
        )

    def primary_file(self) -> VersionFile | None:
        """The file marked primary, or the first file if none is marked."""
        for f in self.files:
            if f.is_primary:
                return f
        return self.files[0] if self.files else None

    def has_file(self, filename: str) -> bool:
        return any(f.filename == filename for f in self.files)


class CatalogSource(Protocol):
    """What the resolver needs from a catalog."""

    def search_projects(
        self,
        query: str,
        facets: list[list[str]] | None = None,
        index: str = "relevance",
        offset: int = 0,
        limit: int = 10,
    ) -> list[CatalogProject]: ...

    def list_versions(
        self,
        project_id: str,
        loaders: list[str] | None = None,
        game_versions: list[str] | None = None,
    ) -> list[CatalogVersion]: ...


class CatalogAPI:
    """Client for the Modrinth v2 REST API."""

    def __init__(self, settings: Settings | None = None):
        self.settings = settings or Settings.from_env()
        self.base_url = self.settings.api_url
        self.session = requests.Session()
        self.session.headers.update({"User-Agent": self.settings.user_agent})
        self._last_request_time = 0.0
        self._rate_lock = threading.Lock()
        self._min_request_interval = 0.2  # 5 requests per second max

    def _rate_limit_wait(self) -> None:
        """Ensure we don't exceed rate limits, across all threads sharing this client."""
        with self._rate_lock:
            elapsed = time.time() - self._last_request_time
            if elapsed < self._min_request_interval:
                time.sleep(self._min_request_interval - elapsed)
            self._last_request_time = time.time()

    def _handle_response(self, response: requests.Response) -> Any:
        """Handle API response and raise appropriate errors."""
        if response.status_code == 429:
            retry_after = int(response.headers.get("Retry-After", 60))
            raise CatalogRateLimited(retry_after)
        if response.status_code == 404:
            raise CatalogAPIError(f"Resource not found: {response.url}")
        if not response.ok:
            raise CatalogAPIError(
                f"Catalog API error {response.status_code}: {response.text[:200]}"
            )
        try:
            return response.json()
        except ValueError as e:
            raise CatalogAPIError(f"Invalid JSON from {response.url}: {e}")

    def _get(self, path: str, params: dict[str, Any] | None = None) -> Any:
        self._rate_limit_wait()
        url = f"{self.base_url}{path}"
        logger.debug("GET %s %s", url, params or "")
        try:
            response = self.session.get(url, params=params, timeout=self.settings.timeout)
        except requests.RequestException as e:
            raise CatalogAPIError(f"Request to {url} failed: {e}")
        return self._handle_response(response)

    def search_projects(
        self,
        query: str,
        facets: list[list[str]] | None = None,
        index: str = "relevance",
        offset: int = 0,
        limit: int = 10,
    ) -> list[CatalogProject]:
        """Free-text project search. Returns the hits of one page."""
        if len(query) > MAX_QUERY_LENGTH:
            raise CatalogAPIError(f"Search query too long (max {MAX_QUERY_LENGTH} characters)")

        params: dict[str, Any] = {
            "query": query,
            "index": index,
            "offset": offset,
            "limit": min(limit, MAX_SEARCH_LIMIT),
        }
        if facets:
            params["facets"] = json.dumps(facets)

        data = self._get("/search", params)
        return [CatalogProject.from_dict(hit) for hit in data.get("hits", [])]

    def list_versions(
        self,
        project_id: str,
        loaders: list[str] | None = None,
        game_versions: list[str] | None = None,
    ) -> list[CatalogVersion]:
        """
        List versions of a project, filtered by loader and game version.

        The API orders the result newest first.
        """
        params: dict[str, Any] = {}
        if loaders:
            params["loaders"] = json.dumps(loaders)
        if game_versions:
            params["game_versions"] = json.dumps(game_versions)

        data = self._get(f"/project/{project_id}/version", params)
        if not isinstance(data, list):
            raise CatalogAPIError(f"Unexpected version list response: {data}")
        return [CatalogVersion.from_dict(v) for v in data]
