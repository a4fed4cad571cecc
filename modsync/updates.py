"""Detect available mod updates and apply them as a batch."""

import logging
from dataclasses import dataclass, field
from typing import Callable

from .api import CatalogSource
from .downloader import DownloadError
from .identity import ModIdentity
from .instance import InstanceError, ModStore
from .versions import (
    VersionResolutionFailed,
    compare_versions,
    resolve_versions,
    supports_catalog,
)

logger = logging.getLogger(__name__)

# progress callback: (event_type, percentage 0-1, message)
ProgressCallback = Callable[[str, float, str], None]


class DeleteStaleFailed(Exception):
    """The superseded file could not be removed after an update."""

    def __init__(self, filename: str, cause: Exception):
        self.filename = filename
        super().__init__(f"Updated, but could not remove old file {filename}: {cause}")


@dataclass(frozen=True)
class LatestFile:
    id: str
    name: str
    version_number: str
    download_url: str
    filename: str


@dataclass(frozen=True)
class UpdateDescriptor:
    """A pending update of one installed file to a newer catalog version."""

    filename: str
    project_id: str
    current_version_id: str
    latest: LatestFile
    current_version_number: str | None = None
    name: str | None = None


@dataclass
class BatchResult:
    success_count: int = 0
    fail_count: int = 0
    updated: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


def _noop_progress(event: str, pct: float, msg: str) -> None:
    pass


def detect_updates(
    identities: list[ModIdentity],
    catalog: CatalogSource,
    loader: str,
    game_version: str,
) -> list[UpdateDescriptor]:
    """
    Compare each enabled, resolved mod against its latest compatible version.

    Queries run one after another. Disabled mods are never offered for
    update.
    """
    if not supports_catalog(loader):
        logger.info("Loader %r has no catalog support, skipping update check", loader)
        return []

    descriptors: list[UpdateDescriptor] = []
    for identity in identities:
        if identity.disabled or not identity.resolved:
            continue

        try:
            resolution = resolve_versions(
                catalog, identity.project_id, identity.filename, loader, game_version
            )
        except VersionResolutionFailed as e:
            logger.warning("Update check skipped for %s: %s", identity.filename, e)
            continue

        latest = resolution.latest
        if latest is None or latest.id == identity.current_version_id:
            continue

        if identity.current_version_number and latest.version_number:
            if compare_versions(latest.version_number, identity.current_version_number) == -1:
                logger.warning(
                    "Not offering %s %s: older than installed %s",
                    identity.display_name,
                    latest.version_number,
                    identity.current_version_number,
                )
                continue

        target = latest.primary_file()
        if target is None:
            logger.warning("Latest version %s of %s has no files", latest.id, identity.project_id)
            continue

        descriptors.append(
            UpdateDescriptor(
                filename=identity.filename,
                project_id=identity.project_id,
                current_version_id=identity.current_version_id,
                current_version_number=identity.current_version_number,
                name=identity.name,
                latest=LatestFile(
                    id=latest.id,
                    name=latest.name,
                    version_number=latest.version_number,
                    download_url=target.url,
                    filename=target.filename,
                ),
            )
        )

    return descriptors


def apply_updates(
    descriptors: list[UpdateDescriptor],
    store: ModStore,
    on_progress: ProgressCallback | None = None,
) -> BatchResult:
    """
    Download each update, then remove the file it replaces.

    Items run sequentially against the one mods directory. A failed item is
    counted and the batch moves on. A failed removal of the old file is only
    a warning; the downloaded file is kept.
    """
    progress = on_progress or _noop_progress
    result = BatchResult()
    total = len(descriptors)

    for i, update in enumerate(descriptors):
        label = update.name or update.filename
        progress("update", i / total, f"Updating {label} to {update.latest.version_number}...")

        try:
            store.download_file(update.latest.download_url, update.latest.filename)
        except (DownloadError, InstanceError, OSError) as e:
            logger.error("Update of %s failed: %s", update.filename, e)
            result.fail_count += 1
            result.errors.append(f"{update.filename}: {e}")
            continue
        except Exception as e:
            logger.exception("Unexpected error updating %s", update.filename)
            result.fail_count += 1
            result.errors.append(f"{update.filename}: {e}")
            continue

        if update.latest.filename != update.filename:
            try:
                store.delete_file(update.filename)
            except Exception as e:
                stale = DeleteStaleFailed(update.filename, e)
                logger.warning("%s", stale)
                result.warnings.append(str(stale))

        result.success_count += 1
        result.updated.append(update.latest.filename)

    progress("done", 1.0, f"{result.success_count} updated, {result.fail_count} failed")
    return result
