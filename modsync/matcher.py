"""Pick the catalog project a slug refers to."""

import logging

from .api import CatalogAPIError, CatalogProject, CatalogSource
from .normalize import compact

logger = logging.getLogger(__name__)

MOD_FACETS = [["project_type:mod"]]


class NoCatalogMatch(Exception):
    """Raised when no search hit matches the slug exactly."""

    def __init__(self, slug: str, reason: str = "no exact match"):
        self.slug = slug
        super().__init__(f"No catalog match for {slug!r}: {reason}")


def select_match(slug: str, hits: list[CatalogProject]) -> CatalogProject | None:
    """
    First hit whose slug or title equals the query once both are compacted.

    No partial or ranked fallback.
    """
    key = compact(slug)
    if not key:
        return None
    for hit in hits:
        if compact(hit.slug) == key or compact(hit.title) == key:
            return hit
    return None


def match_project(catalog: CatalogSource, slug: str, limit: int = 10) -> CatalogProject:
    """Search the catalog for slug and return the exactly matching project."""
    try:
        hits = catalog.search_projects(
            slug, facets=MOD_FACETS, index="relevance", offset=0, limit=limit
        )
    except CatalogAPIError as e:
        raise NoCatalogMatch(slug, f"search failed: {e}")

    match = select_match(slug, hits)
    if match is None:
        logger.debug("No exact match for %r among %d hits", slug, len(hits))
        raise NoCatalogMatch(slug)
    return match
