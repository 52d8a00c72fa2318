"""
In-memory store for the IRS revocation and OFAC SDN datasets.

Each dataset is served from one immutable generation. A refresh builds the
replacement generation off to the side (download, parse, validate, persist)
and only then publishes it with a single reference assignment, so a lookup
running during a refresh sees either the old generation or the new one,
never a mix.
"""

import asyncio
import math
import time
from pathlib import Path
from typing import Callable, Optional

from rich.console import Console
from rich.markup import escape

from redflags.config import config
from redflags.exceptions import (
    CooldownViolation,
    DataIntegrityError,
    InputValidationError,
    TransientNetworkError,
)
from redflags.models import RevocationRow, SanctionsRow
from redflags.normalization import clean_ein, normalize_name
from .base import BaseDataset
from .download import Downloader
from .irs_revocation import IrsRevocationDataset
from .manifest import is_stale, load_manifest, save_manifest, utc_now_iso
from .ofac_sdn import OfacSdnDataset


REFRESH_TARGETS = ("irs", "ofac", "all")

LOG_PREFIX = escape("[redflags]")


class DatasetStore:
    """Loads, validates, caches and serves the two reference datasets."""

    # Minimum seconds between two refresh calls
    REFRESH_COOLDOWN_SECONDS = 60

    def __init__(
        self,
        data_dir: Optional[Path] = None,
        max_age_days: Optional[int] = None,
        downloader: Optional[Downloader] = None,
        revocations: Optional[IrsRevocationDataset] = None,
        sanctions: Optional[OfacSdnDataset] = None,
        console: Optional[Console] = None,
        debug: Optional[bool] = None,
        refresh_cooldown: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.data_dir = Path(data_dir) if data_dir is not None else config.data_dir
        self.max_age_days = config.data_max_age_days if max_age_days is None else max_age_days
        self.downloader = downloader or Downloader()
        self.revocations = revocations or IrsRevocationDataset(self.data_dir)
        self.sanctions = sanctions or OfacSdnDataset(self.data_dir)
        self.console = console or Console(stderr=True)
        self.debug = config.debug if debug is None else debug
        self.refresh_cooldown = self.REFRESH_COOLDOWN_SECONDS if refresh_cooldown is None else refresh_cooldown
        self._clock = clock

        # Only written by refresh(); nothing reads it outside the cooldown check
        self._last_refresh_at: Optional[float] = None

        # source_name -> published generation; items are replaced, never mutated
        self._active = {
            dataset.source_name: dataset.empty_generation()
            for dataset in self._datasets()
        }
        self._manifest: dict = {}
        self._initialized = False

    # -------------------------------------------------------------------------
    # Output
    # -------------------------------------------------------------------------

    def _info(self, message: str) -> None:
        self.console.print(f"{LOG_PREFIX} {escape(message)}")

    def _warn(self, message: str) -> None:
        self.console.print(f"{LOG_PREFIX} [yellow]WARN {escape(message)}[/yellow]")

    def _error(self, message: str) -> None:
        self.console.print(f"{LOG_PREFIX} [red]ERROR {escape(message)}[/red]")

    def _debug(self, message: str) -> None:
        if self.debug:
            self.console.print(f"{LOG_PREFIX} [dim]DEBUG {escape(message)}[/dim]")

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    @property
    def irs_row_count(self) -> int:
        return self._active[self.revocations.source_name].row_count

    @property
    def ofac_entry_count(self) -> int:
        """Number of distinct normalized names in the sanctions index."""
        return self._active[self.sanctions.source_name].entry_count

    @property
    def manifest(self) -> dict:
        return dict(self._manifest)

    async def initialize(self) -> None:
        """
        Load both datasets, downloading whichever is stale.

        A fresh dataset is parsed straight from the disk cache. A stale one is
        downloaded and validated; if that fails the disk cache is used instead.

        Raises:
            DataIntegrityError, TransientNetworkError, OSError: a stale dataset
                could not be downloaded and has no cached copy
        """
        self.data_dir.mkdir(parents=True, exist_ok=True)
        self._manifest = load_manifest(self.data_dir)

        datasets = self._datasets()
        outcomes = await asyncio.gather(
            *(self._load(dataset) for dataset in datasets),
            return_exceptions=True,
        )
        for outcome in outcomes:
            if isinstance(outcome, BaseException):
                raise outcome

        self._initialized = True
        self._info(
            f"Data loaded: {self.irs_row_count:,} IRS revocations, "
            f"{self.ofac_entry_count:,} OFAC entries"
        )

    async def refresh(self, target: str = "all") -> dict:
        """
        Force a download-validate-publish cycle, ignoring staleness.

        Args:
            target: "irs", "ofac" or "all"

        Returns:
            {"irs_refreshed": bool, "ofac_refreshed": bool, "errors": {source: message}}.
            A dataset that fell back to its disk cache reports False plus its error;
            one whose new data is served but could not be cached reports True plus its error.

        Raises:
            InputValidationError: unknown target
            CooldownViolation: previous refresh was less than the cooldown ago
            DataIntegrityError, TransientNetworkError, OSError: a download failed
                and no cached copy exists
        """
        datasets = self._select(target)

        now = self._clock()
        if self._last_refresh_at is not None:
            elapsed = now - self._last_refresh_at
            if elapsed < self.refresh_cooldown:
                retry_after = max(1, math.ceil(self.refresh_cooldown - elapsed))
                self._warn(f"Refresh rejected: cooldown active for another {retry_after}s")
                raise CooldownViolation(retry_after)
        self._last_refresh_at = now

        self._debug(f"Refreshing data: {target}")
        outcomes = await asyncio.gather(
            *(self._download_and_publish(dataset) for dataset in datasets),
            return_exceptions=True,
        )

        result = {
            "irs_refreshed": False,
            "ofac_refreshed": False,
            "errors": {},
        }
        failure = None
        for dataset, outcome in zip(datasets, outcomes):
            if isinstance(outcome, BaseException):
                result["errors"][dataset.source_name] = str(outcome)
                failure = failure or outcome
            else:
                refreshed, error = outcome
                result[f"{dataset.source_name}_refreshed"] = refreshed
                if error is not None:
                    result["errors"][dataset.source_name] = error

        if failure is not None:
            raise failure
        return result

    def lookup_ein(self, ein: str) -> Optional[RevocationRow]:
        """Find a revocation row by EIN; dashes and whitespace are ignored."""
        generation = self._active[self.revocations.source_name]
        return generation.rows.get(clean_ein(ein))

    def lookup_name(self, name: str) -> tuple[SanctionsRow, ...]:
        """Find SDN entities whose primary name or alias normalizes to the same key."""
        key = normalize_name(name)
        if not key:
            return ()
        generation = self._active[self.sanctions.source_name]
        return generation.names.get(key, ())

    def status(self) -> dict:
        """Counts and manifest details for display."""
        return {
            "initialized": self._initialized,
            "irs_row_count": self.irs_row_count,
            "ofac_entry_count": self.ofac_entry_count,
            "manifest": self.manifest,
        }

    # -------------------------------------------------------------------------
    # Loading
    # -------------------------------------------------------------------------

    def _datasets(self) -> list[BaseDataset]:
        return [self.revocations, self.sanctions]

    def _select(self, target: str) -> list[BaseDataset]:
        if target not in REFRESH_TARGETS:
            raise InputValidationError(
                f"Invalid source: expected one of {', '.join(REFRESH_TARGETS)}, got {target!r}"
            )
        if target == "all":
            return self._datasets()
        return [d for d in self._datasets() if d.source_name == target]

    async def _load(self, dataset: BaseDataset) -> None:
        """Publish a dataset from cache when fresh, otherwise download it."""
        entry = self._manifest.get(dataset.manifest_key)
        if is_stale(entry, self.max_age_days) or not dataset.has_cache():
            await self._download_and_publish(dataset)
            return

        try:
            generation = await asyncio.to_thread(dataset.load_cache)
        except OSError as e:
            self._warn(f"Cached {dataset.display_name} unreadable ({e}); downloading")
            await self._download_and_publish(dataset)
            return

        # Already validated when written; only surface suspicious sizes
        if dataset.looks_truncated(generation):
            self._warn(
                f"Cached {dataset.display_name} has only {generation.row_count:,} rows "
                f"(expected at least {dataset.min_rows:,}); it may be corrupted"
            )

        self._publish(dataset, generation)
        self._debug(f"{dataset.display_name} loaded from disk: {generation.row_count:,} rows")

    async def _download_and_publish(self, dataset: BaseDataset) -> tuple[bool, Optional[str]]:
        """
        Download, validate, persist and publish one dataset.

        Returns:
            (published_fresh, error). A download, parse or validation failure
            publishes the disk cache instead and returns (False, message). A
            cache write failure still publishes the downloaded generation but
            drops its manifest entry and returns (True, message).
        """
        self._info(f"Downloading {dataset.display_name}...")
        try:
            payload = await asyncio.to_thread(dataset.download, self.downloader)
            generation = await asyncio.to_thread(dataset.parse, payload)
            dataset.validate(generation)
        except (DataIntegrityError, TransientNetworkError, OSError) as e:
            self._error(f"Failed to download {dataset.display_name}: {e}")
            if not dataset.has_cache():
                raise
            self._warn(f"Falling back to cached {dataset.display_name}")
            fallback = await asyncio.to_thread(dataset.load_cache)
            if dataset.looks_truncated(fallback):
                self._warn(
                    f"Cached {dataset.display_name} has only {fallback.row_count:,} rows; "
                    f"it may be corrupted"
                )
            self._publish(dataset, fallback)
            return False, str(e)

        try:
            await asyncio.to_thread(dataset.write_cache, payload)
        except OSError as e:
            # The disk cache may no longer match any single download
            self._error(f"Could not write {dataset.display_name} cache: {e}")
            self._publish(dataset, generation)
            self._update_manifest(dataset, None)
            return True, f"Cache write failed: {e}"

        self._publish(dataset, generation)
        self._update_manifest(dataset, dataset.manifest_entry(generation, utc_now_iso()))
        self._info(f"{dataset.display_name} loaded: {generation.row_count:,} rows")
        return True, None

    def _publish(self, dataset: BaseDataset, generation) -> None:
        self._active[dataset.source_name] = generation

    def _update_manifest(self, dataset: BaseDataset, entry: Optional[dict]) -> None:
        """Set or remove one dataset's entry, keeping every other entry on disk."""
        # No await between read and write, so concurrent refreshes cannot interleave here
        manifest = load_manifest(self.data_dir) or dict(self._manifest)
        if entry is None:
            manifest.pop(dataset.manifest_key, None)
        else:
            manifest[dataset.manifest_key] = entry
        self._manifest = manifest
        try:
            save_manifest(self.data_dir, manifest)
        except OSError as e:
            self._error(f"Could not write manifest: {e}")
