"""Base class for cached reference datasets."""

import os
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Optional

from redflags.exceptions import DataIntegrityError
from .download import Downloader


def decode_text(data: bytes) -> str:
    """Decode a government data file; these are UTF-8 or Latin-1 in practice."""
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError:
        return data.decode("latin-1")


class BaseDataset(ABC):
    """
    One downloadable reference dataset.

    Subclasses describe where the data lives, how to turn the raw bytes into
    an immutable generation, and what the manifest records about it. The
    store drives the lifecycle: download -> parse -> validate -> persist.
    """

    source_name: str = "base"
    manifest_key: str = "base"
    display_name: str = "base"

    # Policy limits; overridable per instance
    MIN_ROWS: int = 0
    MAX_DOWNLOAD_BYTES: int = 0
    DOWNLOAD_TIMEOUT: float = 60

    def __init__(
        self,
        data_dir: Path,
        min_rows: Optional[int] = None,
        max_download_bytes: Optional[int] = None,
        timeout: Optional[float] = None,
    ):
        self.data_dir = Path(data_dir)
        self.min_rows = self.MIN_ROWS if min_rows is None else min_rows
        self.max_download_bytes = self.MAX_DOWNLOAD_BYTES if max_download_bytes is None else max_download_bytes
        self.timeout = self.DOWNLOAD_TIMEOUT if timeout is None else timeout

    # -------------------------------------------------------------------------
    # Cache files
    # -------------------------------------------------------------------------

    @property
    @abstractmethod
    def cache_files(self) -> dict[str, Path]:
        """Payload name -> on-disk cache path."""

    def has_cache(self) -> bool:
        return all(path.exists() for path in self.cache_files.values())

    def read_cache(self) -> dict[str, bytes]:
        return {name: path.read_bytes() for name, path in self.cache_files.items()}

    def write_cache(self, payload: dict[str, bytes]) -> None:
        """
        Persist a validated payload.

        Every file is staged as a .tmp first; the live cache files are only
        replaced once all of them are staged, so a failed write leaves the
        previous cache untouched.

        Raises:
            OSError: staging or replacing failed; staged files are removed
        """
        self.data_dir.mkdir(parents=True, exist_ok=True)
        staged = {
            path: path.with_name(path.name + ".tmp")
            for path in self.cache_files.values()
        }
        try:
            for name, path in self.cache_files.items():
                staged[path].write_bytes(payload[name])
            for path, tmp_path in staged.items():
                os.replace(tmp_path, path)
        except OSError:
            for tmp_path in staged.values():
                tmp_path.unlink(missing_ok=True)
            raise

    def load_cache(self) -> Any:
        """Parse the on-disk cache into a generation."""
        return self.parse(self.read_cache())

    # -------------------------------------------------------------------------
    # Validation
    # -------------------------------------------------------------------------

    def validate(self, generation: Any) -> None:
        """
        Reject generations too small to be the real dataset.

        Raises:
            DataIntegrityError: row count below the configured floor
        """
        if generation.row_count < self.min_rows:
            raise DataIntegrityError(
                f"{self.display_name} download has {generation.row_count:,} rows, "
                f"below the {self.min_rows:,} row minimum; treating it as truncated or corrupted",
                {"rows": generation.row_count, "min_rows": self.min_rows},
            )

    def looks_truncated(self, generation: Any) -> bool:
        return generation.row_count < self.min_rows

    # -------------------------------------------------------------------------
    # Dataset-specific behaviour
    # -------------------------------------------------------------------------

    @abstractmethod
    def download(self, downloader: Downloader) -> dict[str, bytes]:
        """
        Fetch the remote data and return the payload to cache.

        Returns:
            Payload name -> bytes, keyed like cache_files.
        """

    @abstractmethod
    def parse(self, payload: dict[str, bytes]) -> Any:
        """Build a new generation from a payload without touching live state."""

    @abstractmethod
    def empty_generation(self) -> Any:
        """Generation served before anything is loaded."""

    @abstractmethod
    def manifest_entry(self, generation: Any, downloaded_at: str) -> dict:
        """Manifest record describing a freshly published generation."""
