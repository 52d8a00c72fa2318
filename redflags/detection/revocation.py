"""
IRS revocation check.

Classifies an EIN into one of four outcomes: invalid format, not on the
list, revoked then reinstated, or currently revoked. Only the last one is
a red flag, but the detail text distinguishes all four.
"""

from redflags.exceptions import InputValidationError
from redflags.models import RevocationResult
from redflags.normalization import clean_ein, is_valid_ein


def validate_ein(ein: str) -> str:
    """
    Return the 9-digit form of an EIN.

    Raises:
        InputValidationError: not exactly 9 digits after removing dashes/whitespace
    """
    if not isinstance(ein, str) or not is_valid_ein(ein):
        raise InputValidationError(
            f'Invalid EIN format: expected 9 digits, got "{ein}"',
            {"ein": ein},
        )
    return clean_ein(ein)


class RevocationMatcher:
    """Looks up EINs in the store's revocation index."""

    def __init__(self, store):
        self.store = store

    def check(self, ein: str) -> RevocationResult:
        try:
            normalized = validate_ein(ein)
        except InputValidationError as e:
            return RevocationResult(found=False, revoked=False, detail=e.message)

        row = self.store.lookup_ein(normalized)

        if row is None:
            return RevocationResult(
                found=False,
                revoked=False,
                detail="EIN not found in IRS auto-revocation list (good: no revocation on record)",
            )

        if row.reinstatement_date:
            return RevocationResult(
                found=True,
                revoked=False,
                detail=f"Was revoked on {row.revocation_date} but reinstated on {row.reinstatement_date}",
                revocation_date=row.revocation_date,
                reinstatement_date=row.reinstatement_date,
                legal_name=row.legal_name,
            )

        return RevocationResult(
            found=True,
            revoked=True,
            detail=(
                f"Tax-exempt status REVOKED on {row.revocation_date}: "
                f"failed to file Form 990 for 3 consecutive years"
            ),
            revocation_date=row.revocation_date,
            legal_name=row.legal_name,
        )
