"""
IRS Auto-Revocation List dataset.

The IRS publishes every organization whose tax-exempt status was
automatically revoked for failing to file a Form 990-series return for
three consecutive years (~600K rows). The download is a ZIP holding a
single pipe-delimited text file:

    EIN|Legal Name|DBA|City|State|ZIP|Country|Exemption Type|
    Revocation Date|Posting Date|Reinstatement Date

Source: https://apps.irs.gov/pub/epostcard/data-download-revocation.zip
"""

import io
import zipfile
import zlib

from redflags.exceptions import DataIntegrityError
from redflags.models import RevocationGeneration, RevocationRow
from redflags.normalization import clean_ein, is_valid_ein
from .base import BaseDataset, decode_text
from .download import Downloader


MB = 1024 * 1024


class IrsRevocationDataset(BaseDataset):
    """Downloads, guards and parses the IRS revocation list."""

    source_name = "irs"
    manifest_key = "irs_revocation"
    display_name = "IRS revocation list"

    URL = "https://apps.irs.gov/pub/epostcard/data-download-revocation.zip"
    TEXT_FILE = "irs-revocation.txt"

    FIELD_COUNT = 11
    DELIMITER = "|"

    MIN_ROWS = 100_000
    MAX_DOWNLOAD_BYTES = 100 * MB
    MAX_EXTRACTED_BYTES = 500 * MB
    DOWNLOAD_TIMEOUT = 120  # ~15 MB compressed

    EXTRACT_CHUNK = 1024 * 1024

    def __init__(self, data_dir, max_extracted_bytes=None, **kwargs):
        super().__init__(data_dir, **kwargs)
        self.max_extracted_bytes = self.MAX_EXTRACTED_BYTES if max_extracted_bytes is None else max_extracted_bytes

    @property
    def cache_files(self):
        return {self.TEXT_FILE: self.data_dir / self.TEXT_FILE}

    def download(self, downloader: Downloader) -> dict[str, bytes]:
        archive = downloader.fetch(
            self.URL,
            max_bytes=self.max_download_bytes,
            timeout=self.timeout,
            desc="IRS revocations",
        )
        return {self.TEXT_FILE: self.extract_archive(archive)}

    def extract_archive(self, archive: bytes) -> bytes:
        """
        Pull the revocation text out of the downloaded ZIP.

        The size declared in the archive header is checked before extracting,
        and the bytes actually produced are counted while extracting, since
        the header is under the sender's control.

        Raises:
            DataIntegrityError: not a ZIP, empty archive, or either size over the limit
        """
        limit = self.max_extracted_bytes

        try:
            zf = zipfile.ZipFile(io.BytesIO(archive))
        except zipfile.BadZipFile as e:
            raise DataIntegrityError(f"IRS download is not a valid ZIP archive: {e}") from e

        with zf:
            members = [info for info in zf.infolist() if not info.is_dir()]
            if not members:
                raise DataIntegrityError("IRS ZIP archive is empty")

            member = members[0]
            if member.file_size > limit:
                raise DataIntegrityError(
                    f"IRS archive member {member.filename} declares {member.file_size:,} bytes "
                    f"uncompressed, over the {limit:,} byte limit",
                    {"declared_bytes": member.file_size, "max_bytes": limit},
                )

            buffer = io.BytesIO()
            extracted = 0
            try:
                with zf.open(member) as f:
                    while True:
                        chunk = f.read(self.EXTRACT_CHUNK)
                        if not chunk:
                            break
                        extracted += len(chunk)
                        if extracted > limit:
                            raise DataIntegrityError(
                                f"IRS archive expanded past the {limit:,} byte limit",
                                {"max_bytes": limit},
                            )
                        buffer.write(chunk)
            # RuntimeError: encrypted member; NotImplementedError: unsupported compression
            except (zipfile.BadZipFile, zlib.error, EOFError, RuntimeError, NotImplementedError) as e:
                raise DataIntegrityError(f"IRS archive is corrupted: {e}") from e

        return buffer.getvalue()

    def parse(self, payload: dict[str, bytes]) -> RevocationGeneration:
        """
        Parse the pipe-delimited revocation text.

        The header line is skipped. Lines with fewer than 11 fields or an EIN
        that is not 9 digits are dropped.
        """
        text = decode_text(payload[self.TEXT_FILE])
        lines = text.split("\n")

        rows: dict[str, RevocationRow] = {}
        for line in lines[1:]:
            line = line.strip()
            if not line:
                continue

            fields = [f.strip() for f in line.split(self.DELIMITER)]
            if len(fields) < self.FIELD_COUNT:
                continue

            ein = clean_ein(fields[0])
            if not is_valid_ein(ein):
                continue

            rows[ein] = RevocationRow(
                ein=ein,
                legal_name=fields[1],
                dba=fields[2],
                city=fields[3],
                state=fields[4],
                zip_code=fields[5],
                country=fields[6],
                exemption_type=fields[7],
                revocation_date=fields[8],
                posting_date=fields[9],
                reinstatement_date=fields[10],
            )

        return RevocationGeneration(rows=rows)

    def empty_generation(self) -> RevocationGeneration:
        return RevocationGeneration.empty()

    def manifest_entry(self, generation: RevocationGeneration, downloaded_at: str) -> dict:
        return {
            "downloaded_at": downloaded_at,
            "row_count": generation.row_count,
        }
