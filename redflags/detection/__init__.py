"""Watchlist checks and red flag scoring for Red Flags."""

from .revocation import RevocationMatcher, validate_ein
from .sanctions import SanctionsMatcher
from .litigation import CourtListenerClient
from .scoring import aggregate_flags, get_recommendation
from .summary import generate_summary

__all__ = [
    "RevocationMatcher",
    "validate_ein",
    "SanctionsMatcher",
    "CourtListenerClient",
    "aggregate_flags",
    "get_recommendation",
    "generate_summary",
]
