"""Dataset freshness manifest (data-manifest.json)."""

import json
import os
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Optional


MANIFEST_FILE = "data-manifest.json"


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat()


def load_manifest(data_dir: Path) -> dict:
    """
    Read the manifest from the data directory.

    A missing or unreadable manifest is treated as empty, which makes every
    dataset stale.
    """
    path = Path(data_dir) / MANIFEST_FILE
    try:
        with open(path, encoding="utf-8") as f:
            manifest = json.load(f)
    except (OSError, ValueError):
        return {}
    return manifest if isinstance(manifest, dict) else {}


def save_manifest(data_dir: Path, manifest: dict) -> None:
    """Write the manifest via a temporary file so readers never see a partial one."""
    path = Path(data_dir) / MANIFEST_FILE
    tmp_path = path.with_name(path.name + ".tmp")
    with open(tmp_path, "w", encoding="utf-8") as f:
        json.dump(manifest, f, indent=2)
    os.replace(tmp_path, path)


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    if not value or not isinstance(value, str):
        return None
    try:
        # Older manifests may carry a trailing "Z"
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def is_stale(entry: Optional[dict], max_age_days: int, now: Optional[datetime] = None) -> bool:
    """
    Decide whether a manifest entry is too old to trust.

    Args:
        entry: Manifest entry for one dataset (may be None)
        max_age_days: Maximum age before a re-download is required
        now: Reference time (defaults to current UTC time)

    Returns:
        True if there is no entry, no parseable timestamp, or it is older than max_age_days.
    """
    if not isinstance(entry, dict):
        return True

    downloaded_at = parse_timestamp(entry.get("downloaded_at"))
    if downloaded_at is None:
        return True

    now = now or datetime.now(timezone.utc)
    return now - downloaded_at > timedelta(days=max_age_days)
