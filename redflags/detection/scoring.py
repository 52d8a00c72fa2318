"""
Red flag scoring.

Turns the three check results into severity-tagged flags and a single
recommendation. Pure functions; flags are rebuilt for every request.
"""

from redflags.models import (
    Flag,
    FlagSource,
    LitigationResult,
    Recommendation,
    RevocationResult,
    SanctionsResult,
    Severity,
)


# Case count at which litigation becomes HIGH rather than MEDIUM
LITIGATION_HIGH_CASE_COUNT = 3


def aggregate_flags(
    revocation: RevocationResult,
    sanctions: SanctionsResult,
    litigation: LitigationResult,
) -> list[Flag]:
    """
    Build the flag list, always in the order revocation, sanctions, litigation.

    - Revoked tax-exempt status: CRITICAL
    - Any SDN match: CRITICAL
    - 1-2 federal court cases: MEDIUM; 3 or more: HIGH
    """
    flags = []

    if revocation.revoked:
        flags.append(Flag(
            severity=Severity.CRITICAL,
            source=FlagSource.REVOCATION,
            type="tax_exempt_status_revoked",
            detail=revocation.detail,
        ))

    if sanctions.found:
        flags.append(Flag(
            severity=Severity.CRITICAL,
            source=FlagSource.SANCTIONS,
            type="sanctions_list_match",
            detail=sanctions.detail,
        ))

    if litigation.case_count >= 1:
        if litigation.case_count >= LITIGATION_HIGH_CASE_COUNT:
            severity = Severity.HIGH
        else:
            severity = Severity.MEDIUM
        flags.append(Flag(
            severity=severity,
            source=FlagSource.LITIGATION,
            type="federal_court_cases",
            detail=litigation.detail,
        ))

    return flags


def get_recommendation(flags: list[Flag]) -> Recommendation:
    """BLOCK on any CRITICAL flag, FLAG on any other flag, else CLEAN."""
    if any(f.severity == Severity.CRITICAL for f in flags):
        return Recommendation.BLOCK
    if flags:
        return Recommendation.FLAG
    return Recommendation.CLEAN
