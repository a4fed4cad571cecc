"""Merge installed files with catalog metadata, one record per file."""

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, replace

from .api import CatalogSource
from .instance import LocalModFile
from .matcher import NoCatalogMatch, match_project
from .normalize import NormalizationAmbiguous, normalize, require_slug
from .versions import VersionResolutionFailed, resolve_versions, supports_catalog

logger = logging.getLogger(__name__)

# Stage at which enrichment stopped
NORMALIZATION_AMBIGUOUS = "normalization_ambiguous"
NO_CATALOG_MATCH = "no_catalog_match"
VERSION_RESOLUTION_FAILED = "version_resolution_failed"
LOOKUP_ERROR = "lookup_error"


@dataclass(frozen=True)
class ModIdentity:
    """
    Local file facts plus whatever catalog metadata could be resolved.

    Catalog fields stay None when resolution stops early; the record itself
    is always present and displayable.
    """

    filename: str
    size_bytes: int
    disabled: bool
    slug: str = ""
    project_id: str | None = None
    current_version_id: str | None = None
    current_version_number: str | None = None
    name: str | None = None
    description: str | None = None
    icon_url: str | None = None
    downloads: int | None = None
    author: str | None = None
    failure: str | None = None

    @classmethod
    def local_only(cls, local: LocalModFile, slug: str = "", failure: str | None = None) -> "ModIdentity":
        return cls(
            filename=local.filename,
            size_bytes=local.size_bytes,
            disabled=local.disabled,
            slug=slug,
            failure=failure,
        )

    @property
    def display_name(self) -> str:
        return self.name or self.filename

    @property
    def resolved(self) -> bool:
        return bool(self.project_id and self.current_version_id)


def identify(
    local: LocalModFile,
    catalog: CatalogSource,
    loader: str,
    game_version: str,
    search_limit: int = 10,
) -> ModIdentity:
    """Run normalize -> match -> resolve for one file."""
    try:
        slug = require_slug(local.filename)
    except NormalizationAmbiguous:
        logger.debug("Skipping %s: no usable name", local.filename)
        return ModIdentity.local_only(local, failure=NORMALIZATION_AMBIGUOUS)

    try:
        project = match_project(catalog, slug, limit=search_limit)
    except NoCatalogMatch as e:
        logger.debug("%s", e)
        return ModIdentity.local_only(local, slug=slug, failure=NO_CATALOG_MATCH)

    identity = replace(
        ModIdentity.local_only(local, slug=slug),
        project_id=project.project_id,
        name=project.title,
        description=project.description,
        icon_url=project.icon_url,
        downloads=project.downloads,
        author=project.author,
    )

    if not supports_catalog(loader):
        return identity

    try:
        resolution = resolve_versions(
            catalog, project.project_id, local.filename, loader, game_version
        )
    except VersionResolutionFailed as e:
        logger.warning("%s: %s", local.filename, e)
        return replace(identity, failure=VERSION_RESOLUTION_FAILED)

    if resolution.current is None:
        return replace(identity, failure=VERSION_RESOLUTION_FAILED)

    return replace(
        identity,
        current_version_id=resolution.current.id,
        current_version_number=resolution.current.version_number,
    )


def aggregate_identities(
    files: list[LocalModFile],
    catalog: CatalogSource,
    loader: str,
    game_version: str,
    max_workers: int = 4,
    search_limit: int = 10,
) -> list[ModIdentity]:
    """
    Identify every file on a bounded worker pool.

    Returns a new list in the same order as files. A file whose lookup blows
    up unexpectedly still gets a local-only record.
    """
    if not files:
        return []

    with ThreadPoolExecutor(max_workers=max(1, max_workers)) as executor:
        futures = [
            executor.submit(identify, local, catalog, loader, game_version, search_limit)
            for local in files
        ]
        identities = []
        for local, future in zip(files, futures):
            try:
                identities.append(future.result())
            except Exception:
                logger.exception("Lookup for %s failed", local.filename)
                identities.append(
                    ModIdentity.local_only(
                        local, slug=normalize(local.filename), failure=LOOKUP_ERROR
                    )
                )

    resolved = sum(1 for i in identities if i.project_id)
    logger.info("Identified %d of %d mods", resolved, len(identities))
    return identities
