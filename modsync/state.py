"""Per-instance manifest persisted inside the mods directory."""

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterable

logger = logging.getLogger(__name__)

STATE_FILENAME = ".modsync-state.json"


class StateError(Exception):
    """Raised when state file operations fail."""

    pass


class ModEntry:
    """Manifest record for one installed mod file."""

    def __init__(
        self,
        filename: str,
        disabled: bool = False,
        size_bytes: int = 0,
        first_seen: str | None = None,
    ):
        self.filename = filename
        self.disabled = disabled
        self.size_bytes = size_bytes
        self.first_seen = first_seen or datetime.now(timezone.utc).isoformat()

    def to_dict(self) -> dict[str, Any]:
        return {
            "disabled": self.disabled,
            "size_bytes": self.size_bytes,
            "first_seen": self.first_seen,
        }

    @classmethod
    def from_dict(cls, filename: str, data: dict[str, Any]) -> "ModEntry":
        return cls(
            filename=filename,
            disabled=bool(data.get("disabled", False)),
            size_bytes=data.get("size_bytes", 0),
            first_seen=data.get("first_seen"),
        )


class InstanceState:
    """
    Manages the manifest file for an instance.

    The manifest keeps the enabled/disabled flag as an explicit field keyed by
    the enabled-form filename. The ".disabled" suffix only exists on disk.
    """

    def __init__(self, mods_dir: Path):
        self.mods_dir = Path(mods_dir)
        self.state_file = self.mods_dir / STATE_FILENAME
        self.instance_name: str = ""
        self.loader: str = ""
        self.version: str = ""
        self.mods: dict[str, ModEntry] = {}

    def exists(self) -> bool:
        """Check if state file exists."""
        return self.state_file.exists()

    def load(self) -> None:
        """Load state from file."""
        if not self.state_file.exists():
            raise StateError(f"No state file found at {self.state_file}")

        try:
            with open(self.state_file, encoding="utf-8") as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise StateError(f"Invalid state file: {e}")

        if not isinstance(data, dict):
            raise StateError(f"Invalid state file: expected an object in {self.state_file}")

        self.instance_name = data.get("instance_name", "")
        self.loader = data.get("loader", "")
        self.version = data.get("version", "")

        self.mods = {}
        for filename, mod_data in data.get("mods", {}).items():
            self.mods[filename] = ModEntry.from_dict(filename, mod_data)

    def save(self) -> None:
        """Save state to file."""
        self.mods_dir.mkdir(parents=True, exist_ok=True)

        data = {
            "instance_name": self.instance_name,
            "loader": self.loader,
            "version": self.version,
            "mods": {name: mod.to_dict() for name, mod in sorted(self.mods.items())},
        }

        tmp_file = self.state_file.with_suffix(".tmp")
        with open(tmp_file, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)
        tmp_file.replace(self.state_file)

    def set_instance_info(self, name: str, loader: str, version: str) -> None:
        """Set instance metadata."""
        self.instance_name = name
        self.loader = loader.lower()
        self.version = version

    def record_files(self, files: Iterable[Any]) -> None:
        """
        Bring the manifest in line with the files found on disk.

        Accepts objects with filename, disabled and size_bytes attributes.
        Files missing from disk are dropped; the on-disk form decides the
        disabled flag since that is what the game loader reads.
        """
        seen: set[str] = set()
        for local in files:
            seen.add(local.filename)
            entry = self.mods.get(local.filename)
            if entry is None:
                self.mods[local.filename] = ModEntry(
                    filename=local.filename,
                    disabled=local.disabled,
                    size_bytes=local.size_bytes,
                )
                continue
            if entry.disabled != local.disabled:
                logger.debug(
                    "Manifest flag for %s corrected from disk (disabled=%s)",
                    local.filename,
                    local.disabled,
                )
            entry.disabled = local.disabled
            entry.size_bytes = local.size_bytes

        for filename in set(self.mods) - seen:
            del self.mods[filename]

    def set_disabled(self, filename: str, disabled: bool) -> None:
        entry = self.mods.get(filename)
        if entry is None:
            self.mods[filename] = ModEntry(filename=filename, disabled=disabled)
        else:
            entry.disabled = disabled

    def remove_mod(self, filename: str) -> None:
        """Remove a mod from the state."""
        self.mods.pop(filename, None)

    def get_mod(self, filename: str) -> ModEntry | None:
        return self.mods.get(filename)
