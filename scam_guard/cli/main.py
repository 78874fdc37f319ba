"""
CLI interface for Scam Guard.

Provides command-line access to scanning, history, quota, the security alerts feed and SOS.
"""

import logging
import mimetypes
import sqlite3
import sys
from datetime import date
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from scam_guard.config.loader import AppConfig, default_config, load_config
from scam_guard.core.admission import ScanAdmissionController, ScanState
from scam_guard.core.alerts import AlertSeverity, category_label, list_alerts
from scam_guard.core.analysis import ScanContent, risk_label, RiskLevel
from scam_guard.core.errors import QuotaExceeded, ScamGuardError
from scam_guard.core.escalation import EscalationDispatcher
from scam_guard.core.quota import QuotaLedger, current_scan_date
from scam_guard.core.stats import compute_scan_stats, display_name
from scam_guard.core.tiers import parse_tier, resolve_tier
from scam_guard.sdk.openai_engine import OpenAIScanEngine
from scam_guard.sdk.webhook import WebhookNotificationChannel
from scam_guard.storage.models import Profile
from scam_guard.storage.repository import ScanRepository, get_profile, initialize_schema, upsert_profile

app = typer.Typer()
console = Console()

EXIT_CODE_PASS = 0
EXIT_CODE_FAIL = 1
EXIT_CODE_QUOTA = 2  # Expected outcome, prompts an upgrade

_RISK_STYLES = {
    RiskLevel.SAFE: "green",
    RiskLevel.SUSPICIOUS: "yellow",
    RiskLevel.FRAUDULENT: "red",
}

_SEVERITY_STYLES = {
    AlertSeverity.CRITICAL: "bold white on red",
    AlertSeverity.HIGH: "bold yellow",
    AlertSeverity.MEDIUM: "cyan",
    AlertSeverity.LOW: "dim",
}

_STATE_LABELS = {
    ScanState.SUBMITTED: "Submitted",
    ScanState.TIER_RESOLVED: "Checked subscription",
    ScanState.QUOTA_RESERVED: "Reserved daily scan",
    ScanState.QUOTA_BYPASSED: "Unlimited plan",
    ScanState.ANALYZING: "Analyzing...",
    ScanState.COMPLETED: "Done",
    ScanState.FAILED: "Failed",
}


def _config(ctx: typer.Context) -> AppConfig:
    return ctx.obj if isinstance(ctx.obj, AppConfig) else default_config()


def _exit_uninitialized(error: sqlite3.OperationalError) -> None:
    """Explain a missing schema, or re-raise any other database error."""
    if "no such table" not in str(error).lower():
        raise error
    console.print("\n[bold yellow]No scan data found[/]")
    console.print("Run `scam-guard init` to initialize the database.\n")
    sys.exit(EXIT_CODE_PASS)


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    config: Optional[Path] = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to YAML configuration file"
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable debug logging"
    )
):
    """Scam Guard CLI."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    try:
        ctx.obj = load_config(str(config)) if config else default_config()
    except (FileNotFoundError, ValueError) as e:
        console.print(f"[red]Invalid configuration:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)
    
    if ctx.invoked_subcommand is None:
        console.print("Scam Guard - Use --help to see available commands")


@app.command()
def init(ctx: typer.Context):
    """Initialize the Scam Guard database."""
    try:
        initialize_schema(_config(ctx).storage.db_path)
        console.print("[green]✓[/] Database initialized successfully")
        sys.exit(EXIT_CODE_PASS)
    except Exception as e:
        console.print(f"[red]Error initializing database:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)


@app.command()
def scan(
    ctx: typer.Context,
    text: Optional[str] = typer.Argument(None, help="Text or message to scan"),
    user: str = typer.Option(..., "--user", "-u", help="User id submitting the scan"),
    file: Optional[Path] = typer.Option(
        None,
        "--file",
        "-f",
        exists=True,
        dir_okay=False,
        help="File to scan instead of text"
    ),
    media_type: Optional[str] = typer.Option(
        None,
        "--media-type",
        help="Media type of --file (guessed from the name if omitted)"
    )
):
    """Analyze text or a file for scam risk."""
    config = _config(ctx)
    try:
        if file is not None:
            declared = media_type or mimetypes.guess_type(file.name)[0] or ""
            content = ScanContent.file(file.name, declared)
        else:
            content = ScanContent.text(text or "")
        
        try:
            engine = OpenAIScanEngine(config.analysis.model, config.analysis.timeout_seconds)
        except ValueError as e:
            console.print(f"[red]Analysis engine not configured:[/] {str(e)}")
            console.print("Set OPENAI_API_KEY and try again.")
            sys.exit(EXIT_CODE_FAIL)

        controller = ScanAdmissionController(
            engine=engine,
            db_path=config.storage.db_path,
            daily_limit=config.quota.daily_limit,
            tz_name=config.quota.timezone,
            analysis_timeout=config.analysis.timeout_seconds,
        )
        
        final = None
        for final in controller.stream(user, content):
            console.print(f"[dim]{final.progress:3d}%[/] {_STATE_LABELS[final.state]}")
        
        if final.error is not None:
            raise final.error
        _display_scan_result(final.result, config.quota.daily_limit)
        sys.exit(EXIT_CODE_PASS)
    
    except QuotaExceeded as e:
        console.print(f"\n[bold yellow]Daily Limit Reached[/] ({e.current_count}/{e.limit})")
        console.print(e.user_message)
        sys.exit(EXIT_CODE_QUOTA)
    except ScamGuardError as e:
        console.print(f"[red]Error:[/] {e.user_message}")
        sys.exit(EXIT_CODE_FAIL)


def _display_scan_result(result, daily_limit: int):
    """Print the verdict of a completed scan."""
    outcome = result.outcome
    style = _RISK_STYLES[outcome.risk_level]
    console.print("\n[bold]Scan Result[/bold]")
    console.print("-" * 40)
    console.print(f"Risk level: [{style}]{risk_label(outcome.risk_level)}[/]")
    console.print(f"Risk score: {outcome.risk_score}/100")
    console.print(f"\n{outcome.analysis}")
    if result.scans_used_today is not None:
        console.print(f"\n[dim]Free scans used today: {result.scans_used_today}/{daily_limit}[/]")


@app.command()
def history(
    ctx: typer.Context,
    user: str = typer.Option(..., "--user", "-u", help="User id"),
    limit: Optional[int] = typer.Option(None, "--limit", "-n", help="Show at most this many scans")
):
    """List a user's scans, most recent first."""
    try:
        records = ScanRepository(_config(ctx).storage.db_path).list_by_user(user, limit=limit)
    except sqlite3.OperationalError as e:
        _exit_uninitialized(e)
    if not records:
        console.print("\n[dim]No scans yet.[/]")
        sys.exit(EXIT_CODE_PASS)
    
    table = Table(title="Scan History")
    table.add_column("ID", justify="right")
    table.add_column("When")
    table.add_column("Type")
    table.add_column("Content")
    table.add_column("Risk")
    table.add_column("Score", justify="right")
    for record in records:
        table.add_row(
            str(record.id),
            record.created_at.strftime("%Y-%m-%d %H:%M"),
            record.scan_type,
            record.content[:40],
            record.risk_level,
            str(record.risk_score)
        )
    console.print(table)


@app.command()
def quota(
    ctx: typer.Context,
    user: str = typer.Option(..., "--user", "-u", help="User id"),
    day: Optional[str] = typer.Option(None, "--date", "-d", help="Day as YYYY-MM-DD (default: today)")
):
    """Show how many scans a user has used on a day."""
    config = _config(ctx)
    try:
        scan_date = date.fromisoformat(day) if day else current_scan_date(config.quota.timezone)
    except ValueError:
        console.print(f"[red]Invalid date:[/] {day}")
        sys.exit(EXIT_CODE_FAIL)
    
    tier = resolve_tier(user, config.storage.db_path)
    try:
        count = QuotaLedger(config.storage.db_path).get_count(user, scan_date)
    except ScamGuardError as e:
        console.print(f"[red]Error:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)
    console.print(f"Tier: {tier.value}")
    console.print(f"Scans on {scan_date.isoformat()}: {count}/{config.quota.daily_limit}")


@app.command()
def stats(
    ctx: typer.Context,
    user: str = typer.Option(..., "--user", "-u", help="User id")
):
    """Summarize a user's scans by risk level and month."""
    db_path = _config(ctx).storage.db_path
    try:
        result = compute_scan_stats(ScanRepository(db_path).list_by_user(user))
        profile = get_profile(user, db_path)
    except sqlite3.OperationalError as e:
        _exit_uninitialized(e)
    
    console.print(f"\n[bold]Welcome back, {display_name(profile)}![/bold]")
    console.print(f"Total scans: {result.total_scans}")
    console.print(f"[green]Safe:[/] {result.safe_count}")
    console.print(f"[yellow]Suspicious:[/] {result.suspicious_count}")
    console.print(f"[red]Fraudulent:[/] {result.fraudulent_count}")
    for month, count in result.monthly.items():
        console.print(f"  {month}: {count}")


@app.command()
def alerts(
    ctx: typer.Context,
    limit: Optional[int] = typer.Option(None, "--limit", "-n", help="Show at most this many alerts")
):
    """List published security alerts, newest first."""
    try:
        feed = list_alerts(limit, _config(ctx).storage.db_path)
    except sqlite3.OperationalError as e:
        _exit_uninitialized(e)
    if not feed:
        console.print("\n[dim]No security alerts.[/]")
        sys.exit(EXIT_CODE_PASS)
    
    table = Table(title="Security Alerts")
    table.add_column("When")
    table.add_column("Severity")
    table.add_column("Category")
    table.add_column("Title")
    for alert in feed:
        table.add_row(
            alert.created_at.strftime("%Y-%m-%d"),
            f"[{_SEVERITY_STYLES[alert.severity]}]{alert.severity.value.upper()}[/]",
            category_label(alert.category),
            alert.title
        )
    console.print(table)


@app.command("set-tier")
def set_tier(
    ctx: typer.Context,
    user: str = typer.Argument(..., help="User id"),
    tier: str = typer.Argument(..., help="free, monthly or annual"),
    email: Optional[str] = typer.Option(None, "--email", help="User email"),
    name: Optional[str] = typer.Option(None, "--name", help="User full name")
):
    """Record a user's subscription tier (billing hook)."""
    try:
        parsed = parse_tier(tier)
    except ValueError as e:
        console.print(f"[red]Error:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)
    
    try:
        upsert_profile(
            Profile(user_id=user, subscription_tier=parsed.value, email=email, full_name=name),
            _config(ctx).storage.db_path
        )
    except sqlite3.OperationalError as e:
        _exit_uninitialized(e)
    console.print(f"[green]✓[/] {user} is now on the {parsed.value} plan")


@app.command()
def sos(
    ctx: typer.Context,
    user: str = typer.Option(..., "--user", "-u", help="User id"),
    yes: bool = typer.Option(False, "--yes", help="Confirm sending the emergency alert"),
    lat: Optional[float] = typer.Option(None, "--lat", help="Current latitude"),
    lng: Optional[float] = typer.Option(None, "--lng", help="Current longitude")
):
    """Send an emergency SOS alert with your latest scan."""
    config = _config(ctx)
    if not yes:
        console.print("[yellow]Not sent.[/] Re-run with --yes to confirm the SOS alert.")
        sys.exit(EXIT_CODE_FAIL)
    if not config.escalation.webhook_url:
        console.print("[red]No escalation webhook configured.[/] Please contact authorities directly.")
        sys.exit(EXIT_CODE_FAIL)
    
    provider = None
    if lat is not None and lng is not None:
        provider = lambda: (lat, lng)
    
    dispatcher = EscalationDispatcher(
        channel=WebhookNotificationChannel(
            config.escalation.webhook_url,
            timeout=config.escalation.webhook_timeout_seconds
        ),
        db_path=config.storage.db_path,
        location_timeout=config.escalation.location_timeout_seconds,
        summary_length=config.escalation.summary_length,
    )
    try:
        result = dispatcher.dispatch(user, confirmed=True, location_provider=provider)
    except ScamGuardError as e:
        console.print(f"[red]Error:[/] {e.user_message}")
        sys.exit(EXIT_CODE_FAIL)
    
    if result.sent:
        console.print(f"[green]✓[/] {result.message}")
        sys.exit(EXIT_CODE_PASS)
    console.print(f"[red]{result.message}[/]")
    sys.exit(EXIT_CODE_FAIL)


if __name__ == "__main__":
    app()
