"""
Request-level operations for Red Flags.

Each function validates its input, runs one or more checks and wraps the
outcome in a ToolResponse. Errors never escape: they become a failed
response with a readable message.
"""

from dataclasses import dataclass
from typing import Any, Optional

from rich.console import Console
from rich.markup import escape

from redflags.detection import (
    CourtListenerClient,
    RevocationMatcher,
    SanctionsMatcher,
    aggregate_flags,
    generate_summary,
    get_recommendation,
)
from redflags.exceptions import InputValidationError, RedFlagsError
from redflags.ingestion import DatasetStore
from redflags.models import LitigationResult


ATTRIBUTION = (
    "Data from IRS Auto-Revocation List, US Treasury OFAC SDN List, "
    "and CourtListener (Free Law Project)"
)

MAX_NAME_LENGTH = 500
MAX_EIN_LENGTH = 20
MIN_LOOKBACK_YEARS = 1
MAX_LOOKBACK_YEARS = 10

console = Console(stderr=True)


@dataclass
class ToolResponse:
    success: bool
    data: Optional[Any] = None
    error: Optional[str] = None
    attribution: str = ATTRIBUTION

    def to_dict(self) -> dict:
        result = {"success": self.success}
        if self.data is not None:
            result["data"] = self.data
        if self.error is not None:
            result["error"] = self.error
        result["attribution"] = self.attribution
        return result


def _failed(operation: str, error: Exception) -> ToolResponse:
    """Turn an exception into a failed response, logging anything unexpected."""
    if isinstance(error, InputValidationError):
        return ToolResponse(success=False, error=error.message)

    message = error.message if isinstance(error, RedFlagsError) else str(error)
    console.print(f"{escape('[redflags]')} [red]ERROR {escape(operation)} failed: {escape(message)}[/red]")
    return ToolResponse(success=False, error=f"{operation} failed: {message}")


def _require_ein(ein: Optional[str]) -> None:
    if not ein:
        raise InputValidationError("EIN is required")
    if len(ein) > MAX_EIN_LENGTH:
        raise InputValidationError(f"EIN too long (max {MAX_EIN_LENGTH} characters)")


def _require_name(name: Optional[str]) -> None:
    if not name:
        raise InputValidationError("Name is required")
    if len(name) > MAX_NAME_LENGTH:
        raise InputValidationError(f"Name too long (max {MAX_NAME_LENGTH} characters)")


def skipped_litigation_result() -> LitigationResult:
    return LitigationResult(
        found=False,
        detail="Court record check skipped: no CourtListener API token configured",
        case_count=0,
        cases=[],
    )


async def check_red_flags(
    revocation_matcher: RevocationMatcher,
    sanctions_matcher: SanctionsMatcher,
    litigation_client: Optional[CourtListenerClient],
    ein: str,
    name: str,
) -> ToolResponse:
    """
    Run all checks for one organization and build the composite report.

    Returns:
        ToolResponse whose data holds ein, name, per-source checks, flags,
        clean, and summary.
    """
    try:
        if not ein or not name:
            raise InputValidationError("Both ein and name are required")
        _require_ein(ein)
        _require_name(name)

        revocation = revocation_matcher.check(ein)
        sanctions = sanctions_matcher.check(name)

        if litigation_client is None:
            litigation = skipped_litigation_result()
            sources_checked = 2
        else:
            litigation = await litigation_client.search_by_org_name(name)
            sources_checked = 3

        flags = aggregate_flags(revocation, sanctions, litigation)
        recommendation = get_recommendation(flags)
        summary = generate_summary(flags, recommendation, sources_checked)

        report = {
            "ein": ein,
            "name": name,
            "checks": {
                "irs_revocation": revocation.to_dict(),
                "ofac_sanctions": sanctions.to_dict(),
                "court_records": litigation.to_dict(),
            },
            "flags": [flag.to_dict() for flag in flags],
            "clean": not flags,
            "summary": summary.to_dict(),
        }
        return ToolResponse(success=True, data=report)
    except Exception as e:
        return _failed("Red flag check", e)


def check_irs_revocation(matcher: RevocationMatcher, ein: str) -> ToolResponse:
    try:
        _require_ein(ein)
        return ToolResponse(success=True, data=matcher.check(ein).to_dict())
    except Exception as e:
        return _failed("IRS revocation check", e)


def check_ofac_sanctions(matcher: SanctionsMatcher, name: str) -> ToolResponse:
    try:
        _require_name(name)
        return ToolResponse(success=True, data=matcher.check(name).to_dict())
    except Exception as e:
        return _failed("OFAC sanctions check", e)


async def check_court_records(
    client: Optional[CourtListenerClient],
    name: str,
    lookback_years: Optional[int] = None,
) -> ToolResponse:
    try:
        _require_name(name)

        lookback_years = 1 if lookback_years is None else lookback_years
        if not MIN_LOOKBACK_YEARS <= lookback_years <= MAX_LOOKBACK_YEARS:
            raise InputValidationError(
                f"lookback_years must be between {MIN_LOOKBACK_YEARS} and {MAX_LOOKBACK_YEARS}"
            )

        if client is None:
            raise InputValidationError(
                "Court record checks are disabled: set COURTLISTENER_API_TOKEN to enable them"
            )

        result = await client.search_by_org_name(name, lookback_years)
        return ToolResponse(success=True, data=result.to_dict())
    except Exception as e:
        return _failed("Court records check", e)


async def refresh_data(store: DatasetStore, source: Optional[str] = None) -> ToolResponse:
    """Force a re-download of one or both cached datasets."""
    try:
        result = await store.refresh(source or "all")
        return ToolResponse(success=True, data=result)
    except Exception as e:
        return _failed("Data refresh", e)
