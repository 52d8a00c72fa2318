"""Shared fixtures: in-memory payload builders and a fake downloader."""

import io
import zipfile

import pytest
from rich.console import Console

from redflags.exceptions import TransientNetworkError
from redflags.ingestion import DatasetStore, IrsRevocationDataset, OfacSdnDataset


IRS_HEADER = (
    "EIN|Legal Name|DBA|City|State|ZIP|Country|Exemption Type|"
    "Revocation Date|Posting Date|Reinstatement Date"
)


def irs_line(ein, name, revoked="15-MAY-2020", reinstated=""):
    return f"{ein}|{name}||AUSTIN|TX|78701|US|03|{revoked}|10-JUN-2020|{reinstated}"


def irs_text(lines) -> bytes:
    return ("\n".join([IRS_HEADER] + list(lines)) + "\n").encode("utf-8")


def make_zip(content: bytes, member="data-download-revocation.txt") -> bytes:
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", zipfile.ZIP_DEFLATED) as zf:
        zf.writestr(member, content)
    return buffer.getvalue()


def sdn_line(number, name, entity_type="-0-", program="SDGT"):
    return f'{number},"{name}","{entity_type}","{program}",-0-,-0-,-0-,-0-,-0-,-0-,-0-,-0-'


def alt_line(number, alias_number, alias_name, alias_type="aka"):
    return f'{number},{alias_number},"{alias_type}","{alias_name}",-0-'


def csv_bytes(lines) -> bytes:
    return ("\n".join(lines) + "\n").encode("utf-8")


DEFAULT_IRS = irs_text([
    irs_line("123456789", "REVOKED CHARITY INC"),
    irs_line("987654321", "COMEBACK FOUNDATION", reinstated="01-JAN-2022"),
    irs_line("111222333", "THIRD ROW ORG"),
])

DEFAULT_SDN = csv_bytes([
    sdn_line("1001", "BAD ACTORS FOUNDATION", program="SDGT"),
    sdn_line("1002", "SHADOW RELIEF FUND", program="IRAN"),
    sdn_line("1003", "DOE, John", entity_type="individual", program="SDNTK"),
])

DEFAULT_ALT = csv_bytes([
    alt_line("1001", "1", "HELPING HANDS INTERNATIONAL"),
    alt_line("1002", "2", "SHADOW RELIEF"),
    alt_line("9999", "3", "ORPHAN ALIAS"),
])


class FakeDownloader:
    """Serves canned bytes by URL and counts every fetch."""

    def __init__(self, payloads=None, failures=None):
        self.payloads = dict(payloads or {})
        self.failures = dict(failures or {})
        self.calls = []

    @property
    def call_count(self) -> int:
        return len(self.calls)

    def fetch(self, url, max_bytes, timeout, desc="Downloading"):
        self.calls.append(url)
        if url in self.failures:
            raise self.failures[url]
        if url not in self.payloads:
            raise TransientNetworkError(f"Failed to download {url}: no fake payload")
        return self.payloads[url]


def default_payloads(irs=DEFAULT_IRS, sdn=DEFAULT_SDN, alt=DEFAULT_ALT):
    return {
        IrsRevocationDataset.URL: make_zip(irs),
        OfacSdnDataset.SDN_URL: sdn,
        OfacSdnDataset.ALT_URL: alt,
    }


@pytest.fixture
def fake_downloader():
    return FakeDownloader(default_payloads())


@pytest.fixture
def make_store(tmp_path, fake_downloader):
    """Build a store over tmp_path with row floors small enough for fixtures."""

    def factory(downloader=None, irs_min_rows=2, ofac_min_rows=2, clock=None, **kwargs):
        options = dict(
            data_dir=tmp_path,
            max_age_days=7,
            downloader=downloader or fake_downloader,
            revocations=IrsRevocationDataset(tmp_path, min_rows=irs_min_rows),
            sanctions=OfacSdnDataset(tmp_path, min_rows=ofac_min_rows),
            console=Console(file=io.StringIO()),
            debug=False,
        )
        if clock is not None:
            options["clock"] = clock
        options.update(kwargs)
        return DatasetStore(**options)

    return factory


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start=1000.0):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()
