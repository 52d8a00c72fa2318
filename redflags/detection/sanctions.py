"""OFAC SDN name check (exact match on normalized names, primary or alias)."""

from redflags.models import SanctionsMatch, SanctionsResult
from redflags.normalization import normalize_name


class SanctionsMatcher:
    """Looks up organization names in the store's sanctions index."""

    def __init__(self, store):
        self.store = store

    def check(self, name: str) -> SanctionsResult:
        """
        Check a name against the SDN list.

        Every entity indexed under the normalized name is returned. Each match
        records whether the query equals the entity's own primary name or only
        one of its aliases.
        """
        rows = self.store.lookup_name(name)

        if not rows:
            return SanctionsResult(
                found=False,
                detail="No OFAC SDN matches found (good: not on sanctions list)",
                matches=[],
            )

        query = normalize_name(name)
        matches = [
            SanctionsMatch(
                entity_number=row.entity_number,
                name=row.primary_name,
                entity_type=row.entity_type,
                program=row.program,
                matched_on="primary" if normalize_name(row.primary_name) == query else "alias",
            )
            for row in rows
        ]

        return SanctionsResult(
            found=True,
            detail=f'OFAC SDN MATCH: {len(matches)} sanctioned entity/entities found matching "{name}"',
            matches=matches,
        )
