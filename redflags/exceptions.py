"""
Red Flags exception hierarchy.

Error kinds:
- InputValidationError: malformed EIN or name, out-of-range parameter
- DataIntegrityError: download below size floor, zip-bomb guard tripped, empty archive
- TransientNetworkError: timeout, connection failure, bad HTTP status
- CooldownViolation: refresh requested too soon after the previous one
- LitigationSearchError: CourtListener rejected the request
"""

from typing import Any, Optional


class RedFlagsError(Exception):
    """
    Base exception for all Red Flags errors.

    Carries a human-readable message plus a details dict that can be
    serialized into a tool response.
    """

    code: str = "internal_error"

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details if details is not None else {}

    def to_dict(self) -> dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "details": self.details,
        }


class InputValidationError(RedFlagsError):
    """Caller supplied input that cannot be checked."""

    code = "input_invalid"


class DataIntegrityError(RedFlagsError):
    """Downloaded dataset failed a size, archive or row-count check."""

    code = "data_integrity"


class TransientNetworkError(RedFlagsError):
    """Download failed for a network reason (timeout, connection, HTTP status)."""

    code = "network_error"


class CooldownViolation(RedFlagsError):
    """Refresh rejected because the previous one was too recent."""

    code = "refresh_cooldown"

    def __init__(self, retry_after: int) -> None:
        super().__init__(
            f"Refresh cooldown active: try again in {retry_after}s",
            {"retry_after": retry_after},
        )
        self.retry_after = retry_after


class LitigationSearchError(RedFlagsError):
    """CourtListener search could not be completed."""

    code = "litigation_search_failed"
