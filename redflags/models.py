"""Data model for Red Flags: dataset rows, in-memory generations, check results."""

from dataclasses import dataclass, field, asdict
from enum import Enum as PyEnum
from types import MappingProxyType
from typing import Mapping, Optional


class Severity(PyEnum):
    """Red flag severity levels."""
    CRITICAL = "CRITICAL"
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"


class FlagSource(PyEnum):
    """Which watchlist produced a flag."""
    REVOCATION = "irs_revocation"
    SANCTIONS = "ofac_sanctions"
    LITIGATION = "court_records"


class Recommendation(PyEnum):
    """Overall vetting outcome."""
    CLEAN = "CLEAN"
    FLAG = "FLAG"
    BLOCK = "BLOCK"


# =============================================================================
# Dataset rows
# =============================================================================

@dataclass(frozen=True)
class RevocationRow:
    """One entry of the IRS auto-revocation list."""
    ein: str
    legal_name: str
    dba: str
    city: str
    state: str
    zip_code: str
    country: str
    exemption_type: str
    revocation_date: str
    posting_date: str
    reinstatement_date: str  # empty = still revoked


@dataclass(frozen=True)
class SanctionsRow:
    """One primary entity of the OFAC SDN list."""
    entity_number: str
    primary_name: str
    entity_type: str
    program: str
    title: str
    remarks: str


@dataclass(frozen=True)
class AliasRow:
    """Alias entry from the OFAC ALT file; only used while building the name index."""
    entity_number: str
    alias_number: str
    alias_type: str
    alias_name: str
    alias_remarks: str


# =============================================================================
# Generations
# =============================================================================

@dataclass(frozen=True, eq=False)
class RevocationGeneration:
    """Immutable EIN index built from one parse of the revocation list."""
    rows: Mapping[str, RevocationRow]

    def __post_init__(self):
        object.__setattr__(self, "rows", MappingProxyType(dict(self.rows)))

    @property
    def row_count(self) -> int:
        return len(self.rows)

    @classmethod
    def empty(cls) -> "RevocationGeneration":
        return cls(rows={})


@dataclass(frozen=True, eq=False)
class SanctionsGeneration:
    """
    Immutable name index built from one parse of the SDN + ALT files.

    Keys are normalized names; values are the primary entities reachable
    under that key, in insertion order, without repeated entity numbers.
    """
    names: Mapping[str, tuple[SanctionsRow, ...]]
    sdn_count: int
    alias_count: int

    def __post_init__(self):
        frozen = {key: tuple(rows) for key, rows in self.names.items()}
        object.__setattr__(self, "names", MappingProxyType(frozen))

    @property
    def row_count(self) -> int:
        return self.sdn_count

    @property
    def entry_count(self) -> int:
        return len(self.names)

    @classmethod
    def empty(cls) -> "SanctionsGeneration":
        return cls(names={}, sdn_count=0, alias_count=0)


# =============================================================================
# Check results
# =============================================================================

def _drop_none(data: dict) -> dict:
    return {k: v for k, v in data.items() if v is not None}


@dataclass
class RevocationResult:
    found: bool
    revoked: bool
    detail: str
    revocation_date: Optional[str] = None
    reinstatement_date: Optional[str] = None
    legal_name: Optional[str] = None

    def to_dict(self) -> dict:
        return _drop_none(asdict(self))


@dataclass
class SanctionsMatch:
    entity_number: str
    name: str
    entity_type: str
    program: str
    matched_on: str  # "primary" or "alias"


@dataclass
class SanctionsResult:
    found: bool
    detail: str
    matches: list[SanctionsMatch] = field(default_factory=list)

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class CourtCase:
    id: int
    case_name: str
    court: str
    date_argued: Optional[str]
    date_filed: Optional[str]
    docket_number: str
    absolute_url: str


@dataclass
class LitigationResult:
    found: bool
    detail: str
    case_count: int
    cases: list[CourtCase] = field(default_factory=list)

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class Flag:
    severity: Severity
    source: FlagSource
    type: str
    detail: str

    def to_dict(self) -> dict:
        return {
            "severity": self.severity.value,
            "source": self.source.value,
            "type": self.type,
            "detail": self.detail,
        }


@dataclass(frozen=True)
class Summary:
    headline: str
    sources_checked: int
    flags_found: int
    recommendation: Recommendation

    def to_dict(self) -> dict:
        return {
            "headline": self.headline,
            "sources_checked": self.sources_checked,
            "flags_found": self.flags_found,
            "recommendation": self.recommendation.value,
        }
