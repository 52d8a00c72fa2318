"""
OFAC Specially Designated Nationals (SDN) list dataset.

Two headerless CSV files from Treasury:
- sdn.csv: ent_num, SDN_Name, SDN_Type, Program, Title, Call_Sign, ...
- alt.csv: ent_num, alt_num, alt_type, alt_name, alt_remarks

Aliases are folded into the primary entities at load time: every alias
name becomes another key in the name index pointing at its primary record.

Source: https://www.treasury.gov/ofac/downloads/
"""

import csv
import io
from concurrent.futures import ThreadPoolExecutor

from redflags.exceptions import DataIntegrityError
from redflags.models import AliasRow, SanctionsGeneration, SanctionsRow
from redflags.normalization import normalize_name
from .base import BaseDataset, decode_text
from .download import Downloader


MB = 1024 * 1024

# OFAC's placeholder for an empty field
NULL_MARKER = "-0-"


def _clean(value: str) -> str:
    value = (value or "").strip()
    return "" if value == NULL_MARKER else value


def _read_records(content: bytes) -> list[list[str]]:
    """
    Read a quoted CSV, tolerating ragged rows and blank lines.

    Raises:
        DataIntegrityError: the CSV cannot be tokenized (e.g. a field over the csv module's size limit)
    """
    reader = csv.reader(io.StringIO(decode_text(content)), quotechar='"', skipinitialspace=True)
    try:
        return [record for record in reader if record]
    except csv.Error as e:
        raise DataIntegrityError(f"OFAC file is not valid CSV (line {reader.line_num}): {e}") from e


def parse_sdn(content: bytes) -> list[SanctionsRow]:
    """Parse sdn.csv into primary entity rows."""
    rows = []
    for record in _read_records(content):
        if len(record) < 6:
            continue

        entity_number = _clean(record[0])
        primary_name = _clean(record[1])
        if not entity_number or not primary_name:
            continue

        rows.append(SanctionsRow(
            entity_number=entity_number,
            primary_name=primary_name,
            entity_type=_clean(record[2]),
            program=_clean(record[3]),
            title=_clean(record[4]),
            remarks=_clean(record[5]),
        ))
    return rows


def parse_alt(content: bytes) -> list[AliasRow]:
    """Parse alt.csv into alias rows."""
    rows = []
    for record in _read_records(content):
        if len(record) < 5:
            continue

        entity_number = _clean(record[0])
        alias_name = _clean(record[3])
        if not entity_number or not alias_name:
            continue

        rows.append(AliasRow(
            entity_number=entity_number,
            alias_number=_clean(record[1]),
            alias_type=_clean(record[2]),
            alias_name=alias_name,
            alias_remarks=_clean(record[4]),
        ))
    return rows


def build_name_index(sdn_rows: list[SanctionsRow], alias_rows: list[AliasRow]) -> SanctionsGeneration:
    """
    Build the normalized-name index for one generation.

    Primary names are indexed first, then aliases, both pointing at the
    primary entity. Aliases with no matching primary entity are dropped, and
    an entity already listed under a key is not listed twice.
    """
    index: dict[str, list[SanctionsRow]] = {}
    seen: dict[str, set[str]] = {}

    def add(key: str, row: SanctionsRow) -> None:
        if not key:
            return
        entities = seen.setdefault(key, set())
        if row.entity_number in entities:
            return
        entities.add(row.entity_number)
        index.setdefault(key, []).append(row)

    by_entity: dict[str, SanctionsRow] = {}
    for row in sdn_rows:
        by_entity.setdefault(row.entity_number, row)
        add(normalize_name(row.primary_name), row)

    alias_count = 0
    for alias in alias_rows:
        primary = by_entity.get(alias.entity_number)
        if primary is None:
            continue
        alias_count += 1
        add(normalize_name(alias.alias_name), primary)

    return SanctionsGeneration(names=index, sdn_count=len(sdn_rows), alias_count=alias_count)


class OfacSdnDataset(BaseDataset):
    """Downloads and indexes the OFAC SDN primary and alias files."""

    source_name = "ofac"
    manifest_key = "ofac_sdn"
    display_name = "OFAC SDN list"

    SDN_URL = "https://www.treasury.gov/ofac/downloads/sdn.csv"
    ALT_URL = "https://www.treasury.gov/ofac/downloads/alt.csv"
    SDN_FILE = "sdn.csv"
    ALT_FILE = "alt.csv"

    MIN_ROWS = 5_000
    MAX_DOWNLOAD_BYTES = 50 * MB  # per file
    DOWNLOAD_TIMEOUT = 60

    @property
    def cache_files(self):
        return {
            self.SDN_FILE: self.data_dir / self.SDN_FILE,
            self.ALT_FILE: self.data_dir / self.ALT_FILE,
        }

    def download(self, downloader: Downloader) -> dict[str, bytes]:
        """Fetch sdn.csv and alt.csv in parallel."""
        targets = {
            self.SDN_FILE: self.SDN_URL,
            self.ALT_FILE: self.ALT_URL,
        }
        with ThreadPoolExecutor(max_workers=len(targets)) as executor:
            futures = {
                name: executor.submit(
                    downloader.fetch,
                    url,
                    max_bytes=self.max_download_bytes,
                    timeout=self.timeout,
                    desc=name,
                )
                for name, url in targets.items()
            }
            return {name: future.result() for name, future in futures.items()}

    def parse(self, payload: dict[str, bytes]) -> SanctionsGeneration:
        sdn_rows = parse_sdn(payload[self.SDN_FILE])
        alias_rows = parse_alt(payload[self.ALT_FILE])
        return build_name_index(sdn_rows, alias_rows)

    def empty_generation(self) -> SanctionsGeneration:
        return SanctionsGeneration.empty()

    def manifest_entry(self, generation: SanctionsGeneration, downloaded_at: str) -> dict:
        return {
            "downloaded_at": downloaded_at,
            "sdn_count": generation.sdn_count,
            "alt_count": generation.alias_count,
        }
