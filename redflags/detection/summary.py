"""User-facing summary of a red flag report."""

from redflags.models import Flag, Recommendation, Summary


HEADLINES = {
    Recommendation.CLEAN: "No Red Flags Detected",
    Recommendation.FLAG: "Red Flags Found: Manual Review Required",
    Recommendation.BLOCK: "CRITICAL Red Flags: Do Not Proceed",
}


def generate_summary(flags: list[Flag], recommendation: Recommendation, sources_checked: int) -> Summary:
    return Summary(
        headline=HEADLINES[recommendation],
        sources_checked=sources_checked,
        flags_found=len(flags),
        recommendation=recommendation,
    )
