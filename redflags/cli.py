"""
Red Flags CLI - Command Line Interface

Entry point for all Red Flags operations.
"""

import asyncio
import json
import time
from typing import Optional

import click
from tabulate import tabulate

from redflags import __version__
from redflags.config import config


SEVERITY_COLORS = {"CRITICAL": "red", "HIGH": "yellow", "MEDIUM": "cyan"}
RECOMMENDATION_COLORS = {"CLEAN": "green", "FLAG": "yellow", "BLOCK": "red"}


@click.group()
@click.version_option(version=__version__, prog_name="redflags")
@click.pass_context
def cli(ctx):
    """Red Flags - Nonprofit Vetting Against Public Watchlists.

    Checks an organization against the IRS auto-revocation list, the
    OFAC SDN sanctions list, and federal court records.
    """
    ctx.ensure_object(dict)


# =============================================================================
# Helpers
# =============================================================================

def _build_store():
    from redflags.ingestion import DatasetStore

    return DatasetStore()


def _build_litigation_client():
    """CourtListener client, or None when no API token is configured."""
    from redflags.detection import CourtListenerClient

    if not config.courtlistener_api_token:
        return None
    return CourtListenerClient()


async def _loaded_store():
    store = _build_store()
    await store.initialize()
    return store


def _emit(response, as_json: bool, render) -> None:
    """Print a ToolResponse and exit 1 when it failed."""
    if as_json:
        click.echo(json.dumps(response.to_dict(), indent=2))
    elif response.success:
        render(response.data)
    else:
        click.echo(click.style(f"Error: {response.error}", fg="red"))

    if not response.success:
        raise SystemExit(1)


def _run(coro_factory):
    """Run one coroutine; dataset load failures become exit code 1."""
    from redflags.exceptions import RedFlagsError

    try:
        return asyncio.run(coro_factory())
    except (RedFlagsError, OSError) as e:
        click.echo(click.style(f"Could not load reference data: {e}", fg="red"))
        raise SystemExit(1)


def _status_line(label: str, bad: bool, detail: str) -> None:
    marker = click.style("FLAG", fg="red") if bad else click.style("ok", fg="green")
    click.echo(f"  {label:<16} [{marker}] {detail}")


# =============================================================================
# Check Commands
# =============================================================================

@cli.command()
@click.argument("ein")
@click.argument("name")
@click.option("--json", "as_json", is_flag=True, help="Print raw JSON response")
def check(ein, name, as_json):
    """Run all red flag checks for an organization."""
    from redflags.detection import RevocationMatcher, SanctionsMatcher
    from redflags.tools import check_red_flags

    async def run():
        store = await _loaded_store()
        return await check_red_flags(
            RevocationMatcher(store),
            SanctionsMatcher(store),
            _build_litigation_client(),
            ein,
            name,
        )

    def render(report):
        summary = report["summary"]
        recommendation = summary["recommendation"]
        color = RECOMMENDATION_COLORS.get(recommendation, "white")

        click.echo(f"\n=== {report['name']} (EIN {report['ein']}) ===\n")
        click.echo(click.style(summary["headline"], fg=color, bold=True))
        click.echo(f"Recommendation: {click.style(recommendation, fg=color)}")
        click.echo(f"Sources checked: {summary['sources_checked']}\n")

        checks = report["checks"]
        _status_line("IRS revocation", checks["irs_revocation"]["revoked"], checks["irs_revocation"]["detail"])
        _status_line("OFAC sanctions", checks["ofac_sanctions"]["found"], checks["ofac_sanctions"]["detail"])
        _status_line("Court records", checks["court_records"]["case_count"] > 0, checks["court_records"]["detail"])

        if report["flags"]:
            rows = [
                [
                    click.style(f["severity"], fg=SEVERITY_COLORS.get(f["severity"], "white")),
                    f["source"],
                    f["type"],
                ]
                for f in report["flags"]
            ]
            click.echo("\nFlags:")
            click.echo(tabulate(rows, headers=["Severity", "Source", "Type"], tablefmt="simple"))

    _emit(_run(run), as_json, render)


@cli.command("check-irs")
@click.argument("ein")
@click.option("--json", "as_json", is_flag=True, help="Print raw JSON response")
def check_irs(ein, as_json):
    """Check an EIN against the IRS auto-revocation list."""
    from redflags.detection import RevocationMatcher
    from redflags.tools import check_irs_revocation

    async def run():
        store = await _loaded_store()
        return check_irs_revocation(RevocationMatcher(store), ein)

    def render(result):
        _status_line("IRS revocation", result["revoked"], result["detail"])
        if result.get("legal_name"):
            click.echo(f"  Legal name: {result['legal_name']}")

    _emit(_run(run), as_json, render)


@cli.command("check-ofac")
@click.argument("name")
@click.option("--json", "as_json", is_flag=True, help="Print raw JSON response")
def check_ofac(name, as_json):
    """Check a name against the OFAC SDN list (primary names and aliases)."""
    from redflags.detection import SanctionsMatcher
    from redflags.tools import check_ofac_sanctions

    async def run():
        store = await _loaded_store()
        return check_ofac_sanctions(SanctionsMatcher(store), name)

    def render(result):
        _status_line("OFAC sanctions", result["found"], result["detail"])
        if result["matches"]:
            rows = [
                [m["entity_number"], m["name"], m["entity_type"], m["program"], m["matched_on"]]
                for m in result["matches"]
            ]
            click.echo()
            click.echo(tabulate(
                rows,
                headers=["Entity #", "Name", "Type", "Program", "Matched On"],
                tablefmt="simple",
            ))

    _emit(_run(run), as_json, render)


@cli.command("check-court")
@click.argument("name")
@click.option("--lookback-years", "-y", type=int, default=None, help="Years back to search (1-10)")
@click.option("--json", "as_json", is_flag=True, help="Print raw JSON response")
def check_court(name, lookback_years, as_json):
    """Search federal court dockets for an organization name."""
    from redflags.tools import check_court_records

    response = asyncio.run(check_court_records(_build_litigation_client(), name, lookback_years))

    def render(result):
        _status_line("Court records", result["case_count"] > 0, result["detail"])
        if result["cases"]:
            rows = [
                [c["date_filed"] or "-", c["court"], c["docket_number"], c["case_name"][:60]]
                for c in result["cases"]
            ]
            click.echo()
            click.echo(tabulate(rows, headers=["Filed", "Court", "Docket", "Case"], tablefmt="simple"))

    _emit(response, as_json, render)


# =============================================================================
# Data Commands
# =============================================================================

@cli.command()
@click.option(
    "--source", "-s",
    type=click.Choice(["irs", "ofac", "all"]),
    default="all",
    help="Dataset to refresh",
)
@click.option("--json", "as_json", is_flag=True, help="Print raw JSON response")
def refresh(source, as_json):
    """Force a re-download of the cached datasets."""
    from redflags.tools import refresh_data

    store = _build_store()
    response = asyncio.run(refresh_data(store, source))

    def render(result):
        errors = result.get("errors", {})
        for name in ("irs", "ofac"):
            if source not in ("all", name):
                continue
            if result.get(f"{name}_refreshed"):
                click.echo(click.style(f"  {name}: refreshed", fg="green"))
            else:
                click.echo(click.style(f"  {name}: kept cached copy ({errors.get(name)})", fg="yellow"))

    _emit(response, as_json, render)


@cli.command()
def status():
    """Show cached dataset status."""
    from redflags.ingestion.manifest import is_stale, load_manifest

    manifest = load_manifest(config.data_dir)

    click.echo("\n=== Dataset Status ===\n")

    datasets = [
        ("IRS Auto-Revocation List", "irs_revocation", "row_count"),
        ("OFAC SDN List", "ofac_sdn", "sdn_count"),
    ]
    rows = []
    for label, key, count_field in datasets:
        entry = manifest.get(key)
        if not entry:
            rows.append([label, "Never", "-", click.style("MISSING", fg="red")])
            continue
        stale = is_stale(entry, config.data_max_age_days)
        state = click.style("STALE", fg="yellow") if stale else click.style("FRESH", fg="green")
        count = entry.get(count_field)
        rows.append([
            label,
            entry.get("downloaded_at", "-"),
            f"{count:,}" if isinstance(count, int) else "-",
            state,
        ])

    click.echo(tabulate(rows, headers=["Dataset", "Downloaded", "Rows", "Status"], tablefmt="simple"))

    ofac = manifest.get("ofac_sdn")
    if ofac and "alt_count" in ofac:
        click.echo(f"\nOFAC aliases: {ofac['alt_count']:,}")
    click.echo(f"Data directory: {config.data_dir}")
    click.echo(f"Max age: {config.data_max_age_days} days")


@cli.command("config")
@click.option("--show", is_flag=True, help="Show current configuration")
def show_config(show):
    """View configuration."""
    if show:
        click.echo("\n=== Current Configuration ===\n")
        click.echo(f"Data Directory: {config.data_dir}")
        click.echo(f"Data Max Age: {config.data_max_age_days} days")
        click.echo(f"CourtListener Token: {'[SET]' if config.courtlistener_api_token else '[NOT SET]'}")
        click.echo(f"CourtListener Rate Limit: {config.courtlistener_rate_limit_ms} ms")
        click.echo(f"Refresh Interval: {config.refresh_interval_hours} hours")
        click.echo(f"Debug: {config.debug}")
    else:
        click.echo("Edit config.yaml directly or set environment variables.")
        click.echo("Use 'redflags config --show' to view current settings.")


@cli.command()
@click.option("--background", is_flag=True, help="Run scheduler in background")
@click.option("--interval", "-i", type=int, default=None, help="Override refresh interval (hours)")
def schedule(background, interval: Optional[int]):
    """Start the periodic dataset refresh scheduler."""
    from redflags.scheduler import start_scheduler

    scheduler = start_scheduler(foreground=not background, interval_hours=interval)
    if background and scheduler is not None:
        click.echo("Scheduler started in background. Press Ctrl+C to stop.")
        try:
            while True:
                time.sleep(60)
        except KeyboardInterrupt:
            scheduler.shutdown(wait=False)


if __name__ == "__main__":
    cli()
