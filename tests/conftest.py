from pathlib import Path

import pytest

from modsync.api import CatalogAPIError, CatalogProject, CatalogVersion, VersionFile
from modsync.downloader import DownloadError
from modsync.instance import InstanceError, LocalModFile


def make_project(slug: str, title: str | None = None, project_id: str | None = None) -> CatalogProject:
    return CatalogProject(
        project_id=project_id or f"id-{slug}",
        slug=slug,
        title=title or slug.title(),
        description=f"{slug} description",
        icon_url=f"https://cdn.modrinth.com/data/{slug}/icon.png",
        downloads=1000,
        author="someone",
    )


def make_version(
    version_id: str,
    filename: str | None = None,
    version_number: str = "",
    files: list[VersionFile] | None = None,
) -> CatalogVersion:
    if files is None:
        name = filename or f"{version_id}.jar"
        files = [VersionFile(name, f"https://cdn.modrinth.com/data/x/{name}", True)]
    return CatalogVersion(
        id=version_id,
        version_number=version_number,
        name=f"Version {version_id}",
        files=files,
    )


class FakeCatalog:
    """In-memory catalog recording the queries it receives."""

    def __init__(self, projects=None, versions=None):
        self.projects: list[CatalogProject] = list(projects or [])
        self.versions: dict[str, list[CatalogVersion]] = dict(versions or {})
        self.search_errors: set[str] = set()
        self.version_errors: set[str] = set()
        self.searches: list[tuple] = []
        self.version_queries: list[tuple] = []
        self.on_search = None

    def search_projects(self, query, facets=None, index="relevance", offset=0, limit=10):
        self.searches.append((query, facets, index, offset, limit))
        if self.on_search is not None:
            self.on_search(query)
        if query in self.search_errors:
            raise CatalogAPIError(f"search for {query} failed")
        words = query.replace("-", " ").replace("_", " ").split()
        hits = [
            p for p in self.projects
            if any(w in p.slug or w in p.title.lower() for w in words)
        ]
        return hits[offset:offset + limit]

    def list_versions(self, project_id, loaders=None, game_versions=None):
        self.version_queries.append((project_id, loaders, game_versions))
        if project_id in self.version_errors:
            raise CatalogAPIError(f"versions of {project_id} failed")
        return list(self.versions.get(project_id, []))


class FakeStore:
    """ModStore keeping files in a dict keyed by enabled-form filename."""

    def __init__(self, files=None):
        self.files: dict[str, LocalModFile] = {f.filename: f for f in (files or [])}
        self.failing_urls: set[str] = set()
        self.undeletable: set[str] = set()
        self.calls: list[tuple] = []

    def list_installed_files(self):
        return sorted(self.files.values(), key=lambda f: f.filename.lower())

    def download_file(self, url, target_filename):
        self.calls.append(("download", url, target_filename))
        if url in self.failing_urls:
            raise DownloadError(f"Failed to download {target_filename}: boom")
        self.files[target_filename] = LocalModFile(target_filename, 2048, False)

    def delete_file(self, filename):
        self.calls.append(("delete", filename))
        if filename in self.undeletable or filename not in self.files:
            raise InstanceError(f"Mod file '{filename}' not found")
        del self.files[filename]

    def set_file_enabled(self, filename, enabled):
        self.calls.append(("set_enabled", filename, enabled))
        local = self.files.get(filename)
        if local is None:
            raise InstanceError(f"Mod file '{filename}' not found")
        self.files[filename] = LocalModFile(filename, local.size_bytes, not enabled)


class FakeDownloader:
    """Writes a small payload instead of fetching; fails for listed URLs."""

    def __init__(self, failing_urls=()):
        self.failing_urls = set(failing_urls)

    def download(self, url, target_dir: Path, filename, on_progress=None):
        if url in self.failing_urls:
            raise DownloadError(f"Failed to download {filename}: connection reset")
        target_dir.mkdir(parents=True, exist_ok=True)
        path = target_dir / filename
        path.write_bytes(b"new jar")
        return path


@pytest.fixture
def sodium_catalog():
    """Catalog with one mod and three 1.20.1 fabric versions, newest first."""
    return FakeCatalog(
        projects=[make_project("sodium", "Sodium", "AANobbMI"), make_project("sodium-extra", "Sodium Extra")],
        versions={
            "AANobbMI": [
                make_version("B", "sodium-fabric-0.5.11+mc1.20.1.jar", "mc1.20.1-0.5.11"),
                make_version("A", "sodium-fabric-0.5.8+mc1.20.1.jar", "mc1.20.1-0.5.8"),
                make_version("C", "sodium-fabric-0.5.3+mc1.20.1.jar", "mc1.20.1-0.5.3"),
            ]
        },
    )
