"""Tests for dataset parsing, archive guards, downloads and the manifest."""

import io
import zipfile
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest
import requests

from conftest import (
    DEFAULT_ALT,
    DEFAULT_IRS,
    DEFAULT_SDN,
    alt_line,
    csv_bytes,
    irs_line,
    irs_text,
    make_zip,
    sdn_line,
)
from redflags.exceptions import DataIntegrityError, TransientNetworkError
from redflags.ingestion import Downloader, IrsRevocationDataset, OfacSdnDataset
from redflags.ingestion.manifest import (
    is_stale,
    load_manifest,
    parse_timestamp,
    save_manifest,
)
from redflags.ingestion.ofac_sdn import build_name_index, parse_alt, parse_sdn


# =============================================================================
# IRS revocation list
# =============================================================================

def test_irs_parse_skips_header_and_bad_lines(tmp_path):
    dataset = IrsRevocationDataset(tmp_path)
    text = irs_text([
        irs_line("12-3456789", "DASHED EIN ORG"),
        "987654321|TOO|FEW|FIELDS",
        irs_line("ABC123456", "BAD EIN ORG"),
        "",
        irs_line("555666777", "LAST ORG", reinstated="02-FEB-2023"),
    ])

    generation = dataset.parse({dataset.TEXT_FILE: text})

    assert generation.row_count == 2
    assert generation.rows["123456789"].legal_name == "DASHED EIN ORG"
    assert generation.rows["555666777"].reinstatement_date == "02-FEB-2023"
    assert generation.rows["123456789"].reinstatement_date == ""


def test_irs_parse_handles_latin1(tmp_path):
    dataset = IrsRevocationDataset(tmp_path)
    text = irs_text([irs_line("123456789", "CAFÉ ORG")]).decode("utf-8").encode("latin-1")

    generation = dataset.parse({dataset.TEXT_FILE: text})

    assert generation.rows["123456789"].legal_name == "CAFÉ ORG"


def test_irs_generation_is_read_only(tmp_path):
    dataset = IrsRevocationDataset(tmp_path)
    generation = dataset.parse({dataset.TEXT_FILE: DEFAULT_IRS})

    with pytest.raises(TypeError):
        generation.rows["000000000"] = None


def test_extract_archive(tmp_path):
    dataset = IrsRevocationDataset(tmp_path)
    assert dataset.extract_archive(make_zip(DEFAULT_IRS)) == DEFAULT_IRS


def test_extract_rejects_non_zip(tmp_path):
    dataset = IrsRevocationDataset(tmp_path)
    with pytest.raises(DataIntegrityError, match="not a valid ZIP"):
        dataset.extract_archive(b"<html>maintenance</html>")


def test_extract_rejects_empty_archive(tmp_path):
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w"):
        pass

    dataset = IrsRevocationDataset(tmp_path)
    with pytest.raises(DataIntegrityError, match="empty"):
        dataset.extract_archive(buffer.getvalue())


def test_extract_rejects_oversized_member(tmp_path):
    # Highly compressible payload: small archive, large declared size
    archive = make_zip(b"0" * 10_000)
    dataset = IrsRevocationDataset(tmp_path, max_extracted_bytes=1_000)

    with pytest.raises(DataIntegrityError, match="limit"):
        dataset.extract_archive(archive)


def test_extract_counts_bytes_when_header_lies(tmp_path):
    archive = bytearray(make_zip(b"0" * 10_000))

    # Rewrite the uncompressed size in the central directory entry to 10 bytes
    central = archive.rfind(b"PK\x01\x02")
    archive[central + 24:central + 28] = (10).to_bytes(4, "little")

    dataset = IrsRevocationDataset(tmp_path, max_extracted_bytes=1_000)
    with pytest.raises(DataIntegrityError):
        dataset.extract_archive(bytes(archive))


@pytest.mark.parametrize("offset,value", [
    (8, 0x0001),   # general purpose flags: encrypted member
    (10, 99),      # compression method: AES, not supported by zipfile
])
def test_extract_rejects_unreadable_member(tmp_path, offset, value):
    archive = bytearray(make_zip(DEFAULT_IRS))
    central = archive.rfind(b"PK\x01\x02")
    archive[central + offset:central + offset + 2] = value.to_bytes(2, "little")

    dataset = IrsRevocationDataset(tmp_path)
    with pytest.raises(DataIntegrityError, match="corrupted"):
        dataset.extract_archive(bytes(archive))


def test_irs_validate_row_floor(tmp_path):
    dataset = IrsRevocationDataset(tmp_path, min_rows=10)
    generation = dataset.parse({dataset.TEXT_FILE: DEFAULT_IRS})

    with pytest.raises(DataIntegrityError, match="below the 10 row minimum"):
        dataset.validate(generation)
    assert dataset.looks_truncated(generation)


def test_irs_default_policy():
    assert IrsRevocationDataset.MIN_ROWS == 100_000
    assert IrsRevocationDataset.MAX_DOWNLOAD_BYTES == 100 * 1024 * 1024
    assert IrsRevocationDataset.MAX_EXTRACTED_BYTES == 500 * 1024 * 1024
    assert OfacSdnDataset.MIN_ROWS == 5_000
    assert OfacSdnDataset.MAX_DOWNLOAD_BYTES == 50 * 1024 * 1024


# =============================================================================
# OFAC SDN list
# =============================================================================

def test_parse_sdn():
    rows = parse_sdn(csv_bytes([
        sdn_line("1001", "BAD ACTORS FOUNDATION"),
        "1002,SHORT,ROW",
        sdn_line("-0-", "NO NUMBER"),
        sdn_line("1003", "DOE, John", entity_type="individual"),
    ]))

    assert [r.entity_number for r in rows] == ["1001", "1003"]
    assert rows[0].entity_type == ""
    assert rows[0].title == ""
    assert rows[1].primary_name == "DOE, John"
    assert rows[1].entity_type == "individual"


def test_parse_alt():
    rows = parse_alt(csv_bytes([
        alt_line("1001", "1", "HELPING HANDS"),
        "1002,2,aka",
        alt_line("1003", "3", "-0-"),
    ]))

    assert len(rows) == 1
    assert rows[0].alias_name == "HELPING HANDS"
    assert rows[0].alias_type == "aka"


def test_parse_sdn_rejects_oversized_field():
    content = csv_bytes([
        sdn_line("1001", "BAD ACTORS FOUNDATION"),
        sdn_line("1002", "X" * 200_000),
    ])

    with pytest.raises(DataIntegrityError, match="not valid CSV"):
        parse_sdn(content)


def test_build_name_index_joins_aliases():
    generation = build_name_index(parse_sdn(DEFAULT_SDN), parse_alt(DEFAULT_ALT))

    assert generation.sdn_count == 3
    # Orphan alias for entity 9999 is not counted
    assert generation.alias_count == 2
    assert generation.names["helping hands international"][0].entity_number == "1001"
    assert "orphan alias" not in generation.names


def test_build_name_index_dedups_entities_per_key():
    sdn = parse_sdn(csv_bytes([
        sdn_line("1", "SHADOW RELIEF FUND"),
        sdn_line("2", "SHADOW RELIEF FUND LLC"),
    ]))
    alt = parse_alt(csv_bytes([
        alt_line("1", "10", "Shadow Relief Fund Inc"),
    ]))

    generation = build_name_index(sdn, alt)
    entities = [row.entity_number for row in generation.names["shadow relief fund"]]

    assert entities == ["1", "2"]
    assert generation.entry_count == 1


def test_ofac_parse_payload(tmp_path):
    dataset = OfacSdnDataset(tmp_path)
    generation = dataset.parse({dataset.SDN_FILE: DEFAULT_SDN, dataset.ALT_FILE: DEFAULT_ALT})

    assert generation.row_count == 3
    entry = dataset.manifest_entry(generation, "2026-01-01T00:00:00+00:00")
    assert entry == {
        "downloaded_at": "2026-01-01T00:00:00+00:00",
        "sdn_count": 3,
        "alt_count": 2,
    }


def test_ofac_download_fetches_both_files(tmp_path, fake_downloader):
    dataset = OfacSdnDataset(tmp_path)
    payload = dataset.download(fake_downloader)

    assert set(payload) == {"sdn.csv", "alt.csv"}
    assert sorted(fake_downloader.calls) == sorted([dataset.SDN_URL, dataset.ALT_URL])


def test_write_cache_replaces_files(tmp_path):
    dataset = OfacSdnDataset(tmp_path)
    dataset.write_cache({dataset.SDN_FILE: DEFAULT_SDN, dataset.ALT_FILE: DEFAULT_ALT})

    assert dataset.has_cache()
    assert (tmp_path / "sdn.csv").read_bytes() == DEFAULT_SDN
    assert not list(tmp_path.glob("*.tmp"))
    assert dataset.load_cache().sdn_count == 3


def test_write_cache_failure_leaves_previous_cache(tmp_path, monkeypatch):
    dataset = OfacSdnDataset(tmp_path)
    dataset.write_cache({dataset.SDN_FILE: DEFAULT_SDN, dataset.ALT_FILE: DEFAULT_ALT})

    original_write_bytes = Path.write_bytes

    def failing_write_bytes(self, data):
        if self.name == "alt.csv.tmp":
            raise OSError("No space left on device")
        return original_write_bytes(self, data)

    monkeypatch.setattr(Path, "write_bytes", failing_write_bytes)

    new_sdn = csv_bytes([sdn_line("2001", "NEW ENTITY ONE")])
    with pytest.raises(OSError):
        dataset.write_cache({dataset.SDN_FILE: new_sdn, dataset.ALT_FILE: b""})

    assert (tmp_path / "sdn.csv").read_bytes() == DEFAULT_SDN
    assert (tmp_path / "alt.csv").read_bytes() == DEFAULT_ALT
    assert not list(tmp_path.glob("*.tmp"))


# =============================================================================
# Downloader
# =============================================================================

class FakeResponse:
    def __init__(self, status_code=200, chunks=(), headers=None, error=None):
        self.status_code = status_code
        self.chunks = list(chunks)
        self.headers = headers or {}
        self.error = error

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")

    def iter_content(self, chunk_size=1):
        for chunk in self.chunks:
            yield chunk
        if self.error is not None:
            raise self.error


class FakeSession:
    def __init__(self, response=None, error=None):
        self.headers = {}
        self.response = response
        self.error = error
        self.requests = []

    def get(self, url, **kwargs):
        self.requests.append((url, kwargs))
        if self.error is not None:
            raise self.error
        return self.response


def test_downloader_fetch():
    session = FakeSession(FakeResponse(chunks=[b"abc", b"def"], headers={"content-length": "6"}))
    downloader = Downloader(session=session, show_progress=False)

    assert downloader.fetch("https://example.test/f", max_bytes=100, timeout=5) == b"abcdef"
    url, kwargs = session.requests[0]
    assert kwargs["stream"] is True
    assert kwargs["timeout"] == 5
    assert session.headers["User-Agent"].startswith("redflags/")


def test_downloader_rejects_declared_size():
    session = FakeSession(FakeResponse(chunks=[b"x"], headers={"content-length": "1000"}))
    downloader = Downloader(session=session, show_progress=False)

    with pytest.raises(DataIntegrityError, match="declares"):
        downloader.fetch("https://example.test/f", max_bytes=100, timeout=5)


@pytest.mark.parametrize("content_length", ["abc", "-5", "1e3"])
def test_downloader_rejects_invalid_content_length(content_length):
    session = FakeSession(FakeResponse(chunks=[b"x"], headers={"content-length": content_length}))
    downloader = Downloader(session=session, show_progress=False)

    with pytest.raises(DataIntegrityError, match="invalid Content-Length"):
        downloader.fetch("https://example.test/f", max_bytes=100, timeout=5)


def test_downloader_aborts_mid_stream():
    session = FakeSession(FakeResponse(chunks=[b"x" * 60, b"x" * 60]))
    downloader = Downloader(session=session, show_progress=False)

    with pytest.raises(DataIntegrityError, match="mid-download"):
        downloader.fetch("https://example.test/f", max_bytes=100, timeout=5)


@pytest.mark.parametrize("session", [
    FakeSession(error=requests.ConnectionError("refused")),
    FakeSession(error=requests.Timeout("slow")),
    FakeSession(FakeResponse(status_code=503)),
    FakeSession(FakeResponse(chunks=[b"x"], error=requests.ConnectionError("reset"))),
])
def test_downloader_network_errors(session):
    downloader = Downloader(session=session, show_progress=False)

    with pytest.raises(TransientNetworkError):
        downloader.fetch("https://example.test/f", max_bytes=100, timeout=5)


# =============================================================================
# Manifest
# =============================================================================

def test_manifest_roundtrip(tmp_path):
    manifest = {"irs_revocation": {"downloaded_at": "2026-01-01T00:00:00+00:00", "row_count": 5}}
    save_manifest(tmp_path, manifest)

    assert load_manifest(tmp_path) == manifest
    assert (tmp_path / "data-manifest.json").exists()


def test_manifest_missing_or_corrupt(tmp_path):
    assert load_manifest(tmp_path) == {}
    (tmp_path / "data-manifest.json").write_text("{not json")
    assert load_manifest(tmp_path) == {}


def test_parse_timestamp_accepts_z_suffix():
    parsed = parse_timestamp("2026-01-01T00:00:00Z")
    assert parsed == datetime(2026, 1, 1, tzinfo=timezone.utc)
    assert parse_timestamp("yesterday") is None


def test_is_stale():
    now = datetime(2026, 1, 10, tzinfo=timezone.utc)
    fresh = {"downloaded_at": (now - timedelta(days=6)).isoformat()}
    old = {"downloaded_at": (now - timedelta(days=8)).isoformat()}

    assert not is_stale(fresh, 7, now=now)
    assert is_stale(old, 7, now=now)
    assert is_stale(None, 7, now=now)
    assert is_stale({"downloaded_at": "garbage"}, 7, now=now)
