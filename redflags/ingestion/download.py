"""
Bounded HTTP downloads for reference datasets.

Every download is streamed with a byte ceiling and a timeout. A response
that declares or delivers more bytes than allowed is abandoned mid-stream,
so an unbounded or hostile upstream cannot exhaust memory.
"""

import io

import requests
from tqdm import tqdm

from redflags import __version__
from redflags.exceptions import DataIntegrityError, TransientNetworkError


USER_AGENT = f"redflags/{__version__}"
CHUNK_SIZE = 64 * 1024


class Downloader:
    """Fetches whole files over plain HTTP GET, enforcing size and time limits."""

    def __init__(self, session: requests.Session | None = None, show_progress: bool | None = None):
        self.session = session or requests.Session()
        self.session.headers.setdefault("User-Agent", USER_AGENT)
        # None lets tqdm disable itself when stderr is not a terminal
        self.show_progress = show_progress

    def fetch(self, url: str, max_bytes: int, timeout: float, desc: str = "Downloading") -> bytes:
        """
        Download a URL into memory.

        Args:
            url: Resource to GET
            max_bytes: Abort once more than this many bytes arrive
            timeout: Connect/read timeout in seconds
            desc: Progress bar label

        Returns:
            Response body.

        Raises:
            TransientNetworkError: timeout, connection failure or HTTP error status
            DataIntegrityError: response exceeds max_bytes
        """
        try:
            response = self.session.get(url, timeout=timeout, stream=True)
        except requests.RequestException as e:
            raise TransientNetworkError(f"Failed to download {url}: {e}", {"url": url}) from e

        with response:
            try:
                response.raise_for_status()
            except requests.HTTPError as e:
                raise TransientNetworkError(
                    f"Failed to download {url}: HTTP {response.status_code}",
                    {"url": url, "status": response.status_code},
                ) from e

            raw_length = response.headers.get("content-length") or "0"
            try:
                declared = int(raw_length)
            except ValueError:
                declared = -1
            if declared < 0:
                raise DataIntegrityError(
                    f"{url} sent an invalid Content-Length: {raw_length!r}",
                    {"url": url, "content_length": raw_length},
                )
            if declared > max_bytes:
                raise DataIntegrityError(
                    f"{url} declares {declared:,} bytes, over the {max_bytes:,} byte limit",
                    {"url": url, "declared_bytes": declared, "max_bytes": max_bytes},
                )

            buffer = io.BytesIO()
            received = 0
            disable = None if self.show_progress is None else not self.show_progress
            try:
                with tqdm(total=declared or None, unit="B", unit_scale=True,
                          desc=desc, leave=False, disable=disable) as pbar:
                    for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
                        received += len(chunk)
                        if received > max_bytes:
                            raise DataIntegrityError(
                                f"{url} exceeded the {max_bytes:,} byte limit mid-download",
                                {"url": url, "max_bytes": max_bytes},
                            )
                        buffer.write(chunk)
                        pbar.update(len(chunk))
            except requests.RequestException as e:
                raise TransientNetworkError(f"Download of {url} interrupted: {e}", {"url": url}) from e

        return buffer.getvalue()
