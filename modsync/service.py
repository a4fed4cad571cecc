"""Service layer - owns the published mod list and pending updates of one instance."""

import logging
import threading
from dataclasses import dataclass
from pathlib import Path

from .api import CatalogAPI, CatalogSource
from .config import Settings
from .downloader import Downloader
from .identity import ModIdentity, aggregate_identities
from .instance import Instance, InstanceError, InstanceFiles, LocalModFile, ModStore
from .state import InstanceState, StateError
from .updates import (
    BatchResult,
    ProgressCallback,
    UpdateDescriptor,
    apply_updates,
    detect_updates,
)

logger = logging.getLogger(__name__)


def _noop_progress(event: str, pct: float, msg: str) -> None:
    pass


@dataclass(frozen=True)
class _Ticket:
    """Identifies the instance and state generation a computation started from."""

    instance_name: str
    generation: int


class ModSyncService:
    """
    Business logic for one open instance at a time.

    Derived state (identities, pending updates) is only ever replaced as a
    whole. Work that finishes after its instance was closed, or after a newer
    refresh or mutation started, is discarded instead of published.
    """

    def __init__(self, settings: Settings | None = None, catalog: CatalogSource | None = None):
        self.settings = settings or Settings.from_env()
        self._catalog = catalog
        self._lock = threading.Lock()
        self._generation = 0
        self.instance: Instance | None = None
        self.store: ModStore | None = None
        self.state: InstanceState | None = None
        self._identities: list[ModIdentity] = []
        self._pending: list[UpdateDescriptor] = []

    @property
    def catalog(self) -> CatalogSource:
        if self._catalog is None:
            self._catalog = CatalogAPI(self.settings)
        return self._catalog

    @property
    def identities(self) -> list[ModIdentity]:
        with self._lock:
            return list(self._identities)

    @property
    def pending_updates(self) -> list[UpdateDescriptor]:
        with self._lock:
            return list(self._pending)

    # -- instance lifecycle --

    def init_instance(self, mods_dir: Path, name: str, loader: str, version: str) -> Instance:
        """Write the manifest for a mods directory and open it."""
        state = InstanceState(mods_dir)
        if state.exists():
            state.load()
        state.set_instance_info(name=name, loader=loader, version=version)
        state.save()
        return self.open_instance(mods_dir)

    def open_instance(self, mods_dir: Path, store: ModStore | None = None) -> Instance:
        """Load the manifest of mods_dir and make it the active instance."""
        state = InstanceState(mods_dir)
        state.load()
        instance = Instance(
            name=state.instance_name or Path(mods_dir).parent.name,
            loader=state.loader,
            version=state.version,
            mods_dir=Path(mods_dir),
        )
        if store is None:
            store = InstanceFiles(
                instance.mods_dir, Downloader(timeout=self.settings.timeout)
            )
        self.open(instance, store, state)
        return instance

    def open(self, instance: Instance, store: ModStore, state: InstanceState | None = None) -> None:
        with self._lock:
            self._generation += 1
            self.instance = instance
            self.store = store
            self.state = state or InstanceState(instance.mods_dir)
            self._identities = []
            self._pending = []
        logger.debug("Opened instance %s (%s %s)", instance.name, instance.loader, instance.version)

    def close(self) -> None:
        """Forget the active instance; in-flight results will be dropped."""
        with self._lock:
            self._generation += 1
            self.instance = None
            self.store = None
            self.state = None
            self._identities = []
            self._pending = []

    def _require_instance(self) -> tuple[Instance, ModStore]:
        if self.instance is None or self.store is None:
            raise StateError("No instance is open")
        return self.instance, self.store

    def _is_current(self, ticket: _Ticket) -> bool:
        return (
            self.instance is not None
            and self.instance.name == ticket.instance_name
            and self._generation == ticket.generation
        )

    # -- operations --

    def refresh(self, on_progress: ProgressCallback | None = None) -> list[ModIdentity]:
        """Re-read installed files and rebuild every identity from scratch."""
        progress = on_progress or _noop_progress
        instance, store = self._require_instance()
        with self._lock:
            self._generation += 1
            ticket = _Ticket(instance.name, self._generation)
            state = self.state

        progress("list", 0.0, "Reading installed mods...")
        files = store.list_installed_files()

        # The manifest belongs to the instance the ticket was taken for
        with self._lock:
            still_current = self._is_current(ticket)
        if still_current and state is not None:
            state.record_files(files)
            state.save()

        progress("identify", 0.1, f"Identifying {len(files)} mods...")
        identities = aggregate_identities(
            files,
            self.catalog,
            loader=instance.loader,
            game_version=instance.game_version,
            max_workers=self.settings.max_workers,
            search_limit=self.settings.search_limit,
        )

        with self._lock:
            if not self._is_current(ticket):
                logger.debug("Dropping stale mod list for %s", ticket.instance_name)
                return identities
            self._identities = identities
        progress("done", 1.0, f"Found {len(identities)} mods")
        return identities

    def check_updates(self) -> list[UpdateDescriptor]:
        """Recompute pending updates for the currently published mod list."""
        instance, _ = self._require_instance()
        with self._lock:
            identities = list(self._identities)
            ticket = _Ticket(instance.name, self._generation)

        descriptors = detect_updates(
            identities, self.catalog, instance.loader, instance.game_version
        )

        with self._lock:
            if not self._is_current(ticket):
                logger.debug("Dropping stale update check for %s", ticket.instance_name)
                return descriptors
            self._pending = descriptors
        return descriptors

    def apply_updates(
        self,
        descriptors: list[UpdateDescriptor] | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> BatchResult:
        """
        Apply updates (all pending ones by default).

        Whatever happens to individual items, the mod list is rebuilt
        afterwards and pending updates are cleared.
        """
        _, store = self._require_instance()
        if descriptors is None:
            descriptors = self.pending_updates

        try:
            result = apply_updates(descriptors, store, on_progress=on_progress)
        finally:
            with self._lock:
                self._pending = []
            if self.instance is not None:
                self.refresh()
        return result

    def set_enabled(self, filename: str, enabled: bool, refresh: bool = True) -> None:
        """Enable or disable a mod. Setting the current state again is a no-op."""
        _, store = self._require_instance()
        local = self._find_local(filename)
        if local.disabled != (not enabled):
            store.set_file_enabled(filename, enabled)
        self._invalidate(filename)
        if self.state is not None:
            self.state.set_disabled(filename, not enabled)
            self.state.save()
        if refresh:
            self.refresh()

    def toggle(self, filename: str, refresh: bool = True) -> bool:
        """Flip a mod's enabled state. Returns the new disabled flag."""
        local = self._find_local(filename)
        self.set_enabled(filename, enabled=local.disabled, refresh=refresh)
        return not local.disabled

    def delete(self, filename: str, refresh: bool = True) -> None:
        """Remove a mod file and everything derived from it."""
        _, store = self._require_instance()
        store.delete_file(filename)
        self._invalidate(filename, drop_identity=True)
        if self.state is not None:
            self.state.remove_mod(filename)
            self.state.save()
        if refresh:
            self.refresh()

    # -- internal helpers --

    def _find_local(self, filename: str) -> LocalModFile:
        _, store = self._require_instance()
        for local in store.list_installed_files():
            if local.filename == filename:
                return local
        raise InstanceError(f"Mod file '{filename}' not found")

    def _invalidate(self, filename: str, drop_identity: bool = False) -> None:
        """The file set changed: pending updates are stale, in-flight work too."""
        with self._lock:
            self._generation += 1
            self._pending = []
            if drop_identity:
                self._identities = [i for i in self._identities if i.filename != filename]
