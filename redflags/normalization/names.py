"""
Organization name and EIN normalization.

Sanctions screening is a binary legal question, so names are compared by
exact match on a canonical key rather than by fuzzy similarity. The same
input always produces the same key, which keeps every match reproducible.
"""

import re
import unicodedata
from typing import Optional


# Legal-entity-form words that never carry identity on their own.
# "national", "fund", "trust", "society", "international", "institute" and
# "group" are deliberately absent: they are part of real names
# (e.g. "National Wildlife Fund") and must never be stripped.
ORG_SUFFIXES = (
    "incorporated",
    "inc",
    "corporation",
    "corp",
    "association",
    "assoc",
    "assn",
    "organization",
    "org",
    "limited",
    "ltd",
    "llc",
    "llp",
    "lp",
    "co",
    "company",
    "nfp",
    "pbc",
)

LEADING_ARTICLE = "the"

# Upper bound on trailing-suffix removals for one name.
MAX_SUFFIX_PASSES = 10

_DISALLOWED_CHARS = re.compile(r"[^a-z0-9\s]")
_EIN_SEPARATORS = re.compile(r"[-\s]")
_EIN_PATTERN = re.compile(r"[0-9]{9}")


def normalize_name(name: Optional[str]) -> str:
    """
    Canonicalize an organization name into a sanctions matching key.

    Transformations, in order:
    - Unicode NFD decomposition, combining marks dropped ("José" -> "Jose")
    - Lowercase
    - Drop everything except a-z, 0-9 and whitespace
    - Drop a leading "the" ("The Red Cross" -> "red cross")
    - Drop trailing organizational suffixes one at a time ("Acme Corp Inc" -> "acme")
    - Collapse whitespace

    Args:
        name: Free-text organization name

    Returns:
        Normalized key; empty string for empty input
    """
    if not name:
        return ""

    decomposed = unicodedata.normalize("NFD", name)
    normalized = "".join(c for c in decomposed if not unicodedata.combining(c))

    normalized = normalized.lower()
    normalized = _DISALLOWED_CHARS.sub("", normalized)

    # split() also collapses whitespace runs and trims the ends
    tokens = normalized.split()

    # A lone "the" is a name, not a prefix
    while len(tokens) > 1 and tokens[0] == LEADING_ARTICLE:
        tokens.pop(0)

    passes = 0
    while len(tokens) > 1 and tokens[-1] in ORG_SUFFIXES and passes < MAX_SUFFIX_PASSES:
        tokens.pop()
        passes += 1

    return " ".join(tokens)


def clean_ein(ein: Optional[str]) -> str:
    """Strip dashes and whitespace from an EIN ("12-3456789" -> "123456789")."""
    if not ein:
        return ""
    return _EIN_SEPARATORS.sub("", str(ein))


def is_valid_ein(ein: Optional[str]) -> bool:
    """True if the EIN is exactly 9 ASCII digits once separators are removed."""
    return bool(_EIN_PATTERN.fullmatch(clean_ein(ein)))
