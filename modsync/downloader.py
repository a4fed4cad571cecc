"""Mod file downloads with progress tracking."""

import logging
from pathlib import Path
from typing import Callable
from urllib.parse import urlparse

import requests
from rich.progress import (
    BarColumn,
    DownloadColumn,
    Progress,
    TaskID,
    TextColumn,
    TimeRemainingColumn,
    TransferSpeedColumn,
)

logger = logging.getLogger(__name__)

ALLOWED_DOWNLOAD_HOSTS = {"cdn.modrinth.com", "github.com", "raw.githubusercontent.com"}


class DownloadError(Exception):
    """Raised when a download fails."""

    pass


def validate_download_url(url: str) -> None:
    """Only HTTPS downloads from known mod hosts are allowed."""
    parsed = urlparse(url)
    if parsed.scheme != "https":
        raise DownloadError(f"Only HTTPS URLs are allowed: {url}")
    if parsed.hostname not in ALLOWED_DOWNLOAD_HOSTS:
        raise DownloadError(
            f"Downloads only allowed from: {', '.join(sorted(ALLOWED_DOWNLOAD_HOSTS))}"
        )


class Downloader:
    """Streams files into a directory, renaming into place once complete."""

    def __init__(
        self,
        session: requests.Session | None = None,
        timeout: float = 30.0,
        progress: Progress | None = None,
    ):
        self.session = session or requests.Session()
        self.timeout = timeout
        self.progress = progress

    def download(
        self,
        url: str,
        target_dir: Path,
        filename: str,
        on_progress: Callable[[int, int], None] | None = None,
    ) -> Path:
        """
        Download url to target_dir/filename.

        Data goes to a hidden temporary file first; a failed download never
        leaves a partial jar under the final name.

        Args:
            on_progress: Optional callback(bytes_downloaded, total_bytes).

        Returns path to the downloaded file.
        """
        validate_download_url(url)

        target_dir.mkdir(parents=True, exist_ok=True)
        temp_path = target_dir / f".downloading_{filename}"
        task_id: TaskID | None = None
        if self.progress is not None:
            task_id = self.progress.add_task("download", filename=filename[:40], total=None)

        try:
            response = self.session.get(url, stream=True, timeout=self.timeout)
            response.raise_for_status()

            total_size = int(response.headers.get("content-length", 0))
            if self.progress is not None and task_id is not None:
                self.progress.update(task_id, total=total_size or None)

            bytes_downloaded = 0
            with open(temp_path, "wb") as f:
                for chunk in response.iter_content(chunk_size=8192):
                    if chunk:
                        f.write(chunk)
                        bytes_downloaded += len(chunk)
                        if self.progress is not None and task_id is not None:
                            self.progress.update(task_id, advance=len(chunk))
                        if on_progress:
                            on_progress(bytes_downloaded, total_size)

            final_path = target_dir / filename
            temp_path.replace(final_path)
            if self.progress is not None and task_id is not None:
                self.progress.update(task_id, total=bytes_downloaded, completed=bytes_downloaded)
            logger.debug("Downloaded %s (%d bytes)", final_path, bytes_downloaded)
            return final_path

        except Exception as e:
            # Clean up temp file on error
            if temp_path.exists():
                temp_path.unlink()
            if self.progress is not None and task_id is not None:
                self.progress.remove_task(task_id)
            raise DownloadError(f"Failed to download {filename}: {e}")


def create_download_progress() -> Progress:
    """Create a progress bar for downloads."""
    return Progress(
        TextColumn("[bold blue]{task.fields[filename]}", justify="right"),
        BarColumn(bar_width=30),
        "[progress.percentage]{task.percentage:>3.0f}%",
        DownloadColumn(),
        TransferSpeedColumn(),
        TimeRemainingColumn(),
    )
