"""Resolve installed and latest catalog versions of a mod."""

import logging
import re
from dataclasses import dataclass

from .api import CatalogAPIError, CatalogSource, CatalogVersion

logger = logging.getLogger(__name__)

CATALOG_LOADERS = {"fabric", "quilt", "forge", "neoforge"}

_MC_VERSION_RE = re.compile(r"^\d+\.\d+(?:\.\d+)?$")
_MC_TAG_RE = re.compile(r"mc\d+(?:\.\d+)*", re.IGNORECASE)
_PRE_RELEASE_RE = re.compile(r"(?<![a-z])(dev|snapshot|alpha|beta|pre|rc)", re.IGNORECASE)

# Pre-release stages, oldest first
PRE_RELEASE_RANK = {"dev": 0, "snapshot": 0, "alpha": 1, "beta": 2, "pre": 3, "rc": 4}


class VersionResolutionFailed(Exception):
    """Raised when the version listing for a project cannot be fetched."""

    pass


@dataclass(frozen=True)
class Resolution:
    """Outcome of one filtered version query."""

    current: CatalogVersion | None
    latest: CatalogVersion | None


def supports_catalog(loader: str | None) -> bool:
    """Whether catalog versions can be filtered for this loader."""
    return (loader or "").lower() in CATALOG_LOADERS


def _neoforge_game_version(neoforge_version: str) -> str | None:
    """NeoForge 21.1.77 targets Minecraft 1.21.1; 20.4.x targets 1.20.4."""
    clean = neoforge_version.replace("-beta", "").replace("-alpha", "")
    parts = clean.split(".")
    if len(parts) < 2 or not (parts[0].isdigit() and parts[1].isdigit()):
        return None
    major, minor = int(parts[0]), int(parts[1])
    if major < 20:
        return None
    if minor == 0:
        return f"1.{major}"
    return f"1.{major}.{minor}"


def game_version_for(loader: str | None, version: str) -> str:
    """
    Extract the game version from an instance version string.

    Loader-flavored instances store compound ids:
        fabric-loader-0.16.5-1.21.1 -> 1.21.1
        neoforge-21.1.77            -> 1.21.1
        1.20.1-forge-47.2.0         -> 1.20.1
    """
    loader = (loader or "").lower()
    if loader in ("fabric", "quilt"):
        return version.split("-")[-1]
    if loader == "neoforge":
        game_version = _neoforge_game_version(version.removeprefix("neoforge-"))
        return game_version or version
    if loader == "forge":
        head = version.split("-")[0]
        return head if _MC_VERSION_RE.match(head) else version
    return version


def resolve_versions(
    catalog: CatalogSource,
    project_id: str,
    filename: str,
    loader: str,
    game_version: str,
) -> Resolution:
    """
    Find the installed version and the latest compatible version in one query.

    current is the version owning a file named exactly like the local file;
    latest is the first listed version, relying on the catalog's
    newest-first ordering.
    """
    try:
        versions = catalog.list_versions(project_id, [loader], [game_version])
    except CatalogAPIError as e:
        raise VersionResolutionFailed(f"Version listing for {project_id} failed: {e}")

    current = next((v for v in versions if v.has_file(filename)), None)
    latest = versions[0] if versions else None
    if current is None:
        logger.debug("No %s version of %s ships %s", game_version, project_id, filename)
    return Resolution(current=current, latest=latest)


def version_key(version_number: str) -> tuple | None:
    """
    Sort key for a catalog version_number.

    Build metadata after "+" and embedded "mc1.20.1" tags are ignored, so
    "0.5.8+mc1.20.1" and "mc1.20.1-0.5.8" key the same. Numbers after a
    pre-release marker rank the pre-release below its release:
    1.0.0-beta.2 < 1.0.0-rc.1 < 1.0.0 < 1.0.1.
    """
    text = version_number.split("+", 1)[0]
    text = _MC_TAG_RE.sub("", text)

    marker = _PRE_RELEASE_RE.search(text)
    core_text = text[: marker.start()] if marker else text
    core = [int(n) for n in re.findall(r"\d+", core_text)]
    if not core:
        return None
    while len(core) > 1 and core[-1] == 0:
        core.pop()

    if marker is None:
        return (tuple(core), 1, 0, ())
    stage = PRE_RELEASE_RANK[marker.group(1).lower()]
    pre_numbers = tuple(int(n) for n in re.findall(r"\d+", text[marker.end():]))
    return (tuple(core), 0, stage, pre_numbers)


def compare_versions(a: str, b: str) -> int | None:
    """-1, 0 or 1 as a is older, equal or newer than b; None if not comparable."""
    key_a, key_b = version_key(a), version_key(b)
    if key_a is None or key_b is None:
        return None
    return (key_a > key_b) - (key_a < key_b)
