"""Installed mod files of an instance: listing, download, delete, enable/disable."""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from .downloader import Downloader
from .versions import game_version_for

logger = logging.getLogger(__name__)

MOD_EXTENSION = ".jar"
DISABLED_SUFFIX = ".disabled"


class InstanceError(Exception):
    """Raised when an instance file operation fails."""

    pass


class UnsafeFilename(InstanceError):
    """Raised for filenames that could escape the mods directory."""

    pass


@dataclass(frozen=True)
class LocalModFile:
    """
    An installed mod file.

    filename is always the enabled form ("foo.jar"); the disabled state is
    carried by the flag, not the name.
    """

    filename: str
    size_bytes: int = 0
    disabled: bool = False

    @property
    def disk_name(self) -> str:
        return f"{self.filename}{DISABLED_SUFFIX}" if self.disabled else self.filename


@dataclass
class Instance:
    """A game instance whose mods live in mods_dir."""

    name: str
    loader: str
    version: str
    mods_dir: Path

    @property
    def game_version(self) -> str:
        return game_version_for(self.loader, self.version)


class ModStore(Protocol):
    """File operations the engine performs against an instance."""

    def list_installed_files(self) -> list[LocalModFile]: ...

    def download_file(self, url: str, target_filename: str) -> None: ...

    def delete_file(self, filename: str) -> None: ...

    def set_file_enabled(self, filename: str, enabled: bool) -> None: ...


def split_disabled(disk_name: str) -> tuple[str, bool]:
    """Map an on-disk name to (enabled-form filename, disabled)."""
    if disk_name.endswith(DISABLED_SUFFIX):
        return disk_name[: -len(DISABLED_SUFFIX)], True
    return disk_name, False


def sanitize_filename(filename: str) -> str:
    """Reject names that are empty, hidden, traverse paths or are not jars."""
    if not filename:
        raise UnsafeFilename("Filename cannot be empty")
    if ".." in filename or "/" in filename or "\\" in filename:
        raise UnsafeFilename(f"Filename contains invalid characters: {filename!r}")
    if filename.startswith("."):
        raise UnsafeFilename(f"Filename cannot start with a dot: {filename!r}")
    if "\0" in filename:
        raise UnsafeFilename("Filename contains null bytes")
    if not filename.lower().endswith(MOD_EXTENSION):
        raise UnsafeFilename(f"Only {MOD_EXTENSION} files are allowed for mods: {filename!r}")
    return filename


class InstanceFiles:
    """ModStore backed by a mods directory on the local filesystem."""

    def __init__(self, mods_dir: Path, downloader: Downloader | None = None):
        self.mods_dir = Path(mods_dir)
        self.downloader = downloader or Downloader()

    def _path(self, disk_name: str) -> Path:
        return self.mods_dir / disk_name

    def list_installed_files(self) -> list[LocalModFile]:
        """List jar mods (enabled or disabled), sorted case-insensitively."""
        if not self.mods_dir.is_dir():
            return []

        found: dict[str, LocalModFile] = {}
        for path in self.mods_dir.iterdir():
            if not path.is_file():
                continue
            filename, disabled = split_disabled(path.name)
            if not filename.lower().endswith(MOD_EXTENSION) or filename.startswith("."):
                continue
            if filename in found:
                # Both forms on disk; the enabled copy is the one the game loads.
                logger.warning("Both %s and its disabled copy exist", filename)
                if disabled:
                    continue
            found[filename] = LocalModFile(
                filename=filename,
                size_bytes=path.stat().st_size,
                disabled=disabled,
            )

        return sorted(found.values(), key=lambda m: m.filename.lower())

    def download_file(self, url: str, target_filename: str) -> None:
        sanitize_filename(target_filename)
        self.downloader.download(url, self.mods_dir, target_filename)

    def delete_file(self, filename: str) -> None:
        """Delete a mod in whichever form (enabled or disabled) it is on disk."""
        sanitize_filename(filename)
        for disk_name in (filename, f"{filename}{DISABLED_SUFFIX}"):
            path = self._path(disk_name)
            if path.is_file():
                try:
                    path.unlink()
                except OSError as e:
                    raise InstanceError(f"Failed to delete {disk_name}: {e}")
                logger.info("Deleted %s", disk_name)
                return
        raise InstanceError(f"Mod file '{filename}' not found")

    def set_file_enabled(self, filename: str, enabled: bool) -> None:
        """
        Rename between "name.jar" and "name.jar.disabled".

        A file already in the requested form is left alone.
        """
        sanitize_filename(filename)
        enabled_path = self._path(filename)
        disabled_path = self._path(f"{filename}{DISABLED_SUFFIX}")
        src, dest = (disabled_path, enabled_path) if enabled else (enabled_path, disabled_path)

        if dest.is_file() and not src.exists():
            return
        if not src.is_file():
            raise InstanceError(f"Mod file '{filename}' not found")
        if dest.exists():
            raise InstanceError(f"Cannot rename {src.name}: {dest.name} already exists")

        try:
            src.rename(dest)
        except OSError as e:
            raise InstanceError(f"Failed to rename {src.name}: {e}")
        logger.info("%s %s", "Enabled" if enabled else "Disabled", filename)
