"""
Federal court records check via the CourtListener REST API.

Searches RECAP dockets for an organization name over a lookback window.
Requires a CourtListener API token.

API docs: https://www.courtlistener.com/help/api/rest/
"""

import asyncio
import re
import time
from datetime import date
from typing import Optional

import requests
from rich.console import Console
from rich.markup import escape

from redflags import __version__
from redflags.config import config
from redflags.exceptions import LitigationSearchError
from redflags.models import CourtCase, LitigationResult


COURTLISTENER_SITE = "https://www.courtlistener.com"

# Solr query syntax characters; removed so a name cannot alter the query
SOLR_SPECIAL_CHARS = re.compile(r'[\\"+\-!(){}\[\]^~*?:/]')

LOG_PREFIX = escape("[redflags]")


class RateLimiter:
    """Spaces out requests by at least delay_ms milliseconds."""

    def __init__(self, delay_ms: int):
        self.delay = delay_ms / 1000.0
        self._last_request = 0.0
        self._lock = asyncio.Lock()

    async def wait(self) -> float:
        """Sleep until the next request is allowed; returns seconds waited."""
        async with self._lock:
            elapsed = time.monotonic() - self._last_request
            waited = 0.0
            if elapsed < self.delay:
                waited = self.delay - elapsed
                await asyncio.sleep(waited)
            self._last_request = time.monotonic()
            return waited


def subtract_years(today: date, years: int) -> date:
    try:
        return today.replace(year=today.year - years)
    except ValueError:
        # Feb 29 -> Feb 28
        return today.replace(year=today.year - years, day=28)


class CourtListenerClient:
    """Rate-limited CourtListener docket search."""

    PAGE_SIZE = 20

    def __init__(
        self,
        api_token: Optional[str] = None,
        base_url: Optional[str] = None,
        rate_limit_ms: Optional[int] = None,
        timeout: float = 30,
        session: Optional[requests.Session] = None,
        console: Optional[Console] = None,
        debug: Optional[bool] = None,
    ):
        self.api_token = api_token or config.courtlistener_api_token
        self.base_url = (base_url or config.courtlistener_base_url).rstrip("/")
        self.timeout = timeout
        self.rate_limiter = RateLimiter(
            config.courtlistener_rate_limit_ms if rate_limit_ms is None else rate_limit_ms
        )
        self.console = console or Console(stderr=True)
        self.debug = config.debug if debug is None else debug

        self.session = session or requests.Session()
        self.session.headers.update({
            "Authorization": f"Token {self.api_token}",
            "Content-Type": "application/json",
            "User-Agent": f"redflags/{__version__}",
        })

    def _debug(self, message: str) -> None:
        if self.debug:
            self.console.print(f"{LOG_PREFIX} [dim]DEBUG {escape(message)}[/dim]")

    def _error(self, message: str) -> None:
        self.console.print(f"{LOG_PREFIX} [red]ERROR {escape(message)}[/red]")

    def _get(self, path: str, params: dict) -> requests.Response:
        url = f"{self.base_url}{path}"
        self._debug(f"CourtListener Request: GET {url}")
        # Redirects would carry the Authorization header to another host
        response = self.session.get(url, params=params, timeout=self.timeout, allow_redirects=False)
        self._debug(f"CourtListener Response: {response.status_code} {url}")
        return response

    async def search_by_org_name(self, name: str, lookback_years: int = 1) -> LitigationResult:
        """
        Search federal dockets filed in the last lookback_years for a name.

        Args:
            name: Organization name (quoted as an exact phrase)
            lookback_years: Years back from today to search

        Returns:
            LitigationResult; case_count is the API's total hit count.

        Raises:
            LitigationSearchError: invalid token or unexpected API response
        """
        waited = await self.rate_limiter.wait()
        if waited:
            self._debug(f"Rate limiting: waited {waited * 1000:.0f}ms")

        date_after = subtract_years(date.today(), lookback_years).isoformat()
        sanitized = SOLR_SPECIAL_CHARS.sub("", name)

        params = {
            "q": f'"{sanitized}"',
            "type": "r",  # RECAP dockets
            "filed_after": date_after,
            "order_by": "dateFiled desc",
            "page_size": self.PAGE_SIZE,
        }

        try:
            response = await asyncio.to_thread(self._get, "/search/", params)
        except requests.RequestException as e:
            self._error(f"CourtListener Error: no response received ({e})")
            raise LitigationSearchError(f"CourtListener request failed: {e}") from e

        if response.status_code == 401:
            self._error("CourtListener Error: 401 (invalid token)")
            raise LitigationSearchError("CourtListener API token is invalid or expired")

        if response.status_code == 429:
            self.console.print(f"{LOG_PREFIX} [yellow]WARN CourtListener rate limit hit[/yellow]")
            return LitigationResult(
                found=False,
                detail="CourtListener rate limit exceeded: try again later",
                case_count=0,
                cases=[],
            )

        if response.status_code != 200:
            self._error(f"CourtListener Error: {response.status_code} {response.url}")
            raise LitigationSearchError(
                f"CourtListener returned HTTP {response.status_code}",
                {"status": response.status_code},
            )

        try:
            data = response.json()
        except ValueError as e:
            raise LitigationSearchError(f"CourtListener returned invalid JSON: {e}") from e

        results = data.get("results") or []
        total = data.get("count") or len(results)

        if not results:
            return LitigationResult(
                found=False,
                detail=f'No federal court cases found for "{name}" in the past {lookback_years} year(s)',
                case_count=0,
                cases=[],
            )

        cases = [
            CourtCase(
                id=docket.get("id"),
                case_name=docket.get("case_name") or docket.get("caseName") or "",
                court=docket.get("court") or "",
                date_argued=docket.get("date_argued") or docket.get("dateArgued"),
                date_filed=docket.get("date_filed") or docket.get("dateFiled"),
                docket_number=docket.get("docket_number") or docket.get("docketNumber") or "",
                absolute_url=(
                    f"{COURTLISTENER_SITE}{docket['absolute_url']}" if docket.get("absolute_url") else ""
                ),
            )
            for docket in results
        ]

        return LitigationResult(
            found=True,
            detail=f'Found {total} federal court case(s) for "{name}" in the past {lookback_years} year(s)',
            case_count=total,
            cases=cases,
        )
