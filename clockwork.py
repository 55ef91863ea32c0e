#!/usr/bin/env python3
"""
Clockwork CLI Tool

Commands for local development and operations of the wearables service.

Usage:
    clockwork start dev --port 8000 --tunnel
    clockwork providers
    clockwork connect --provider fitbit --user-id abc123
    clockwork sync --provider fitbit --user-id abc123 --timeout 60
    clockwork data --user-id abc123 --days 7
    clockwork manual --user-id abc123 --steps 9000 --sleep-minutes 420
    clockwork insights --user-id abc123 --days 7
    clockwork ratelimit --provider fitbit --user-id abc123
    clockwork tokens list
    clockwork tokens refresh --provider fitbit --user-id abc123
    clockwork tokens revoke --provider fitbit --user-id abc123
    clockwork score --hrv 65 --resting-hr 55
"""

import asyncio
import logging
import os
import signal
import socket
import subprocess
import sys
import webbrowser
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Optional, TypeVar

import typer
from dateutil import parser as date_parser
from dotenv import load_dotenv
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from clockwork_connector import ConnectorError, ManualEntry, Settings, WearableService, __version__
from clockwork_scores import ScoreBreakdown, recovery_breakdown, training_load_breakdown

CLI_ROOT = Path(__file__).parent

T = TypeVar("T")

console = Console()

app = typer.Typer(
    name="clockwork",
    help="Clockwork CLI - Wearable connections, sync and scores",
    no_args_is_help=True,
)


def version_callback(value: bool):
    """Show version and exit."""
    if value:
        console.print(f"[bold cyan]Clockwork CLI[/bold cyan] version [green]{__version__}[/green]")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        help="Show version and exit",
        callback=version_callback,
        is_eager=True,
    ),
    verbose: bool = typer.Option(False, "--verbose", help="Debug logging"),
):
    """Clockwork CLI - Wearable connections, sync and scores."""
    _configure_logging(verbose)


# ============================================================================
# Helper Functions
# ============================================================================


def _configure_logging(verbose: bool = False) -> None:
    level = logging.DEBUG if verbose else os.getenv("LOG_LEVEL", "WARNING").upper()
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )


def _load_env(env_file: Optional[str] = None, mode: str = "dev") -> Optional[Path]:
    """
    Load environment variables from a dotenv file.

    Priority: --env flag > .env.local (dev mode) > .env
    """
    if env_file:
        env_path = Path(env_file)
        if not env_path.is_absolute():
            env_path = CLI_ROOT / env_file
        if not env_path.exists():
            console.print(f"[yellow]⚠️  Environment file not found: {env_file}[/yellow]")
            return None
        load_dotenv(env_path, override=True)
        return env_path

    candidates = [CLI_ROOT / ".env.local", CLI_ROOT / ".env"] if mode == "dev" else [CLI_ROOT / ".env"]
    for env_path in candidates:
        if env_path.exists():
            load_dotenv(env_path, override=True)
            return env_path
    return None


def _service(env_file: Optional[str] = None) -> WearableService:
    _load_env(env_file)
    return WearableService.from_settings(Settings.from_env())


def _run(service: WearableService, operation: Callable[[], Awaitable[T]]) -> T:
    """Run one async service operation and close its HTTP clients."""

    async def runner() -> T:
        try:
            return await operation()
        finally:
            await service.aclose()

    return asyncio.run(runner())


def _fail(error: ConnectorError) -> None:
    console.print(f"[red]❌ {error.message}[/red]")
    if error.provider:
        console.print(f"   [dim]provider: {error.provider} ({error.code})[/dim]")
    raise typer.Exit(1)


def _is_port_available(port: int) -> bool:
    """Check if a port is available."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        try:
            s.bind(("localhost", port))
            return True
        except OSError:
            return False


def _fmt(value, suffix: str = "") -> str:
    if value is None:
        return "[dim]-[/dim]"
    if isinstance(value, float):
        return f"{value:.1f}{suffix}"
    return f"{value}{suffix}"


# ============================================================================
# START Command - Local Development Server
# ============================================================================


@app.command()
def start(
    mode: str = typer.Argument("dev", help="Mode: dev or live"),
    port: int = typer.Option(8000, "--port", "-p", help="Port to run on"),
    reload: bool = typer.Option(True, "--reload/--no-reload", help="Auto-reload on code changes (dev only)"),
    env_file: Optional[str] = typer.Option(None, "--env", help="Environment file (.env.production, .env.test)"),
    tunnel: bool = typer.Option(False, "--tunnel", help="Expose the server through an ngrok tunnel"),
):
    """
    Start the wearables API server.

    In dev mode: auto-reload and debug logging.
    In live mode: production settings.

    Examples:
        clockwork start dev --tunnel
        clockwork start live --port 8080 --env .env.production
    """
    if mode not in ("dev", "live"):
        console.print(f"[red]❌ Unknown mode: {mode} (use dev or live)[/red]")
        raise typer.Exit(1)

    console.print()
    console.print("[bold green]🚀 Starting Clockwork wearables service[/bold green]")
    console.print("━" * 60)
    console.print()
    console.print("[bold]📍 Configuration:[/bold]")
    console.print(f"   Mode:           [cyan]{mode}[/cyan]")
    console.print(f"   Port:           [cyan]{port}[/cyan]")
    console.print(f"   Auto-reload:    {'✅ enabled' if reload and mode == 'dev' else '❌ disabled'}")
    console.print(f"   Tunnel:         {'✅ enabled' if tunnel else '❌ disabled'}")
    console.print()

    if not _is_port_available(port):
        console.print(f"[red]❌ Port {port} is already in use[/red]")
        console.print(f"   Use a different port: [cyan]clockwork start {mode} --port {port + 1}[/cyan]")
        raise typer.Exit(1)

    env_path = _load_env(env_file, mode)
    if env_path:
        console.print(f"[green]📝 Loaded environment from:[/green] [cyan]{env_path.name}[/cyan]")
    else:
        console.print("[dim]💡 No environment file found. Using system environment variables.[/dim]")

    env = os.environ.copy()
    if mode == "dev":
        env.setdefault("LOG_LEVEL", "DEBUG")

    public_url = None
    if tunnel:
        from pyngrok import ngrok
        from pyngrok.exception import PyngrokError

        console.print("[bold]🌐 Starting ngrok tunnel...[/bold]")
        try:
            public_url = ngrok.connect(port, "http").public_url
        except PyngrokError as e:
            console.print(f"[red]❌ Could not start ngrok: {e}[/red]")
            console.print("   Set your authtoken: [cyan]ngrok config add-authtoken YOUR_TOKEN[/cyan]")
            raise typer.Exit(1)
        console.print(f"[green]✅ ngrok tunnel started:[/green] [cyan]{public_url}[/cyan]")
        console.print()

    base_url = public_url or f"http://localhost:{port}"
    console.print("[bold]🌐 Endpoints:[/bold]")
    console.print(f"   API Docs:      [cyan]{base_url}/docs[/cyan]")
    console.print(f"   Health Check:  [cyan]{base_url}/health[/cyan]")
    console.print(f"   OAuth start:   [cyan]{base_url}/authorize/{{provider}}[/cyan]")
    console.print(f"   OAuth redirect:[cyan] {base_url}/callback/{{provider}}[/cyan]")
    if public_url:
        console.print()
        console.print("[yellow]📝 Set {PROVIDER}_REDIRECT_URI to the OAuth redirect above in your provider apps[/yellow]")
    console.print()
    console.print("[dim]Press Ctrl+C to stop[/dim]")

    cmd = ["uvicorn", "server.app:app", "--host", "0.0.0.0", "--port", str(port)]
    if reload and mode == "dev":
        cmd.extend(["--reload", "--reload-dir", str(CLI_ROOT / "server")])

    def cleanup_tunnel():
        if public_url:
            from pyngrok import ngrok

            ngrok.disconnect(public_url)
            console.print("[dim]ngrok tunnel stopped[/dim]")

    process = subprocess.Popen(cmd, cwd=CLI_ROOT, env=env)

    def signal_handler(sig, frame):
        """Handle SIGINT (Ctrl+C) to stop the server and the tunnel."""
        console.print("\n\n👋 Shutting down...")
        if process.poll() is None:
            process.terminate()
            try:
                process.wait(timeout=2)
            except subprocess.TimeoutExpired:
                process.kill()
        cleanup_tunnel()
        sys.exit(0)

    signal.signal(signal.SIGINT, signal_handler)
    returncode = process.wait()
    cleanup_tunnel()
    if returncode:
        console.print(f"\n[red]❌ Server failed with exit code {returncode}[/red]")
        raise typer.Exit(returncode)


# ============================================================================
# PROVIDERS / CONNECT
# ============================================================================


@app.command()
def providers(
    env_file: Optional[str] = typer.Option(None, "--env", help="Environment file"),
):
    """
    Show provider configuration.

    Credentials are read from {PROVIDER}_CLIENT_ID, {PROVIDER}_CLIENT_SECRET
    and {PROVIDER}_REDIRECT_URI.
    """
    service = _service(env_file)

    table = Table(title="Wearable Providers")
    table.add_column("Provider", style="cyan")
    table.add_column("Configured")
    table.add_column("OAuth 2.0")
    table.add_column("PKCE")
    table.add_column("Sync")
    table.add_column("Rate limit")
    table.add_column("Missing", style="dim")

    for status in service.provider_status():
        table.add_row(
            status["name"],
            "✅" if status["configured"] else "❌ not configured",
            "✅" if status["oauth2"] else "❌",
            "✅" if status["pkce"] else "-",
            "✅" if status["implemented"] else "not implemented",
            status["rate_limit"],
            ", ".join(status["missing"]),
        )

    console.print(table)


@app.command()
def connect(
    provider: str = typer.Option(..., "--provider", "-p", help="Provider (fitbit, polar, ...)"),
    user_id: str = typer.Option(..., "--user-id", "-u", help="User ID"),
    open_browser: bool = typer.Option(False, "--open", help="Open the URL in the default browser"),
    env_file: Optional[str] = typer.Option(None, "--env", help="Environment file"),
):
    """
    Start an OAuth authorization and print the provider URL.

    The callback must reach a running server (clockwork start) that shares
    the same state store, i.e. not LOCAL_MODE.

    Example:
        clockwork connect --provider fitbit --user-id abc123 --open
    """
    service = _service(env_file)
    try:
        request = service.begin_authorization(user_id, provider)
    except ConnectorError as e:
        _fail(e)

    console.print(f"🔗 Authorize [cyan]{request.provider.display_name}[/cyan] for user [cyan]{user_id}[/cyan]:")
    console.print()
    console.print(request.auth_url, soft_wrap=True)
    console.print()
    if open_browser and not webbrowser.open(request.auth_url):
        console.print("[yellow]⚠️  Could not open a browser; open the URL above manually[/yellow]")


# ============================================================================
# SYNC / DATA
# ============================================================================


@app.command()
def sync(
    provider: str = typer.Option(..., "--provider", "-p", help="Provider (fitbit, polar, ...)"),
    user_id: str = typer.Option(..., "--user-id", "-u", help="User ID"),
    timeout: Optional[float] = typer.Option(None, "--timeout", "-t", help="Deadline in seconds"),
    env_file: Optional[str] = typer.Option(None, "--env", help="Environment file"),
):
    """
    Sync recent days for one user and provider. Ctrl+C cancels cleanly.

    Example:
        clockwork sync --provider fitbit --user-id abc123 --timeout 60
    """
    service = _service(env_file)
    console.print(f"🔄 Syncing [cyan]{provider}[/cyan] for user [cyan]{user_id}[/cyan]...")

    async def run_sync():
        cancel = asyncio.Event()
        loop = asyncio.get_running_loop()
        try:
            loop.add_signal_handler(signal.SIGINT, cancel.set)
        except (NotImplementedError, RuntimeError):
            pass
        try:
            return await service.sync(user_id, provider, timeout=timeout, cancel_event=cancel)
        finally:
            try:
                loop.remove_signal_handler(signal.SIGINT)
            except (NotImplementedError, RuntimeError):
                pass

    try:
        result = _run(service, run_sync)
    except ConnectorError as e:
        _fail(e)

    console.print(f"[green]✅ Synced {result.days_stored} day(s)[/green]")
    _print_records(result.records)


@app.command()
def data(
    user_id: str = typer.Option(..., "--user-id", "-u", help="User ID"),
    provider: Optional[str] = typer.Option(None, "--provider", "-p", help="Filter by provider"),
    days: Optional[int] = typer.Option(None, "--days", "-d", help="Days back from today (default 2)"),
    env_file: Optional[str] = typer.Option(None, "--env", help="Environment file"),
):
    """
    Show stored daily records, newest first.

    Example:
        clockwork data --user-id abc123 --provider fitbit --days 7
    """
    service = _service(env_file)
    try:
        records = service.get_records(user_id, provider=provider, days=days)
    except ConnectorError as e:
        _fail(e)

    if not records:
        console.print(f"[yellow]No records for user {user_id}[/yellow]")
        return
    _print_records(records)


def _print_records(records) -> None:
    table = Table()
    table.add_column("Date", style="cyan")
    table.add_column("Provider")
    table.add_column("Status")
    table.add_column("Steps", justify="right")
    table.add_column("Sleep", justify="right")
    table.add_column("HRV", justify="right")
    table.add_column("Resting HR", justify="right")
    table.add_column("Recovery", justify="right", style="green")
    table.add_column("Training", justify="right", style="green")

    status_style = {"success": "green", "partial": "yellow", "failed": "red"}
    for record in records:
        metrics = record.metrics
        status = record.sync_status.value
        table.add_row(
            record.date.isoformat(),
            record.provider.value,
            f"[{status_style[status]}]{status}[/{status_style[status]}]",
            _fmt(metrics.steps),
            _fmt(metrics.sleep_minutes or None, " min"),
            _fmt(metrics.hrv, " ms"),
            _fmt(metrics.resting_heart_rate),
            str(record.derived.recovery_score),
            str(record.derived.training_load),
        )
    console.print(table)


@app.command()
def manual(
    user_id: str = typer.Option(..., "--user-id", "-u", help="User ID"),
    day: Optional[str] = typer.Option(None, "--date", help="Day (YYYY-MM-DD, default today)"),
    steps: Optional[int] = typer.Option(None, "--steps", min=0, help="Steps"),
    sleep_minutes: Optional[int] = typer.Option(None, "--sleep-minutes", min=0, help="Time in bed (minutes)"),
    sleep_efficiency: Optional[float] = typer.Option(None, "--sleep-efficiency", min=0, max=100, help="Sleep efficiency (0-100)"),
    active_minutes: Optional[int] = typer.Option(None, "--active-minutes", min=0, help="Active minutes"),
    resting_hr: Optional[float] = typer.Option(None, "--resting-hr", min=0, help="Resting heart rate (bpm)"),
    hrv: Optional[float] = typer.Option(None, "--hrv", min=0, help="HRV (RMSSD, ms)"),
    calories: Optional[float] = typer.Option(None, "--calories", min=0, help="Calories burned"),
    env_file: Optional[str] = typer.Option(None, "--env", help="Environment file"),
):
    """
    Store metrics entered by hand for one day.

    Example:
        clockwork manual --user-id abc123 --date 2024-03-01 --steps 9000 --sleep-minutes 420
    """
    try:
        parsed_day = date_parser.isoparse(day).date() if day else None
    except ValueError:
        console.print(f"[red]❌ Invalid date: {day}[/red]")
        raise typer.Exit(1)

    entry = ManualEntry(
        day=parsed_day,
        steps=steps,
        sleep_minutes=sleep_minutes,
        sleep_efficiency=sleep_efficiency,
        active_minutes=active_minutes,
        resting_heart_rate=resting_hr,
        hrv=hrv,
        calories_burned=calories,
    )
    service = _service(env_file)
    try:
        record = service.manual_entry(user_id, entry.to_metrics(), day=entry.day)
    except ConnectorError as e:
        _fail(e)

    console.print(f"[green]✅ Stored manual entry for {record.date.isoformat()}[/green]")
    _print_records([record])


@app.command()
def insights(
    user_id: str = typer.Option(..., "--user-id", "-u", help="User ID"),
    days: int = typer.Option(7, "--days", "-d", min=1, max=365, help="Days back from today"),
    env_file: Optional[str] = typer.Option(None, "--env", help="Environment file"),
):
    """
    Show averages and the steps trend over recent days.

    Example:
        clockwork insights --user-id abc123 --days 14
    """
    service = _service(env_file)
    try:
        summary = service.insights(user_id, days=days)
    except ConnectorError as e:
        _fail(e)

    if summary is None:
        console.print(f"[yellow]No data available for user {user_id}[/yellow]")
        return

    averages = summary["averages"]
    table = Table(title=f"Last {summary['period']} day(s): {summary['dataPoints']} record(s)")
    table.add_column("Average", style="cyan")
    table.add_column("Value", justify="right")
    table.add_row("Steps", _fmt(averages["steps"]))
    table.add_row("Sleep", _fmt(averages["sleep"], " min"))
    table.add_row("Active minutes", _fmt(averages["activeMinutes"]))
    table.add_row("Resting HR", _fmt(averages["restingHR"]))
    table.add_row("Recovery", _fmt(averages["recoveryScore"]))
    console.print(table)
    console.print(f"Steps trend: [bold]{summary['trends']['steps']}[/bold]")


@app.command()
def ratelimit(
    provider: str = typer.Option(..., "--provider", "-p", help="Provider"),
    user_id: str = typer.Option(..., "--user-id", "-u", help="User ID"),
    reset: bool = typer.Option(False, "--reset", help="Clear the current window"),
    env_file: Optional[str] = typer.Option(None, "--env", help="Environment file"),
):
    """
    Show (or reset) the sync quota left for one user and provider.

    Example:
        clockwork ratelimit --provider fitbit --user-id abc123 --reset
    """
    service = _service(env_file)
    try:
        if reset:
            service.reset_rate_limit(user_id, provider)
            console.print(f"[green]✅ Rate limit reset for {provider}:{user_id}[/green]")
        quota = service.rate_limit_status(user_id, provider)
    except ConnectorError as e:
        _fail(e)

    if not quota:
        console.print(f"[yellow]No rate limit configured for {provider}[/yellow]")
        return
    console.print(f"Remaining: [cyan]{quota['remaining']}/{quota['max']}[/cyan]")
    if quota["reset_at"]:
        console.print(f"Window resets in {max(0, int(quota['reset_at'] - service.cache.clock()))}s")


# ============================================================================
# TOKENS Commands
# ============================================================================

tokens_app = typer.Typer(help="OAuth connection management")
app.add_typer(tokens_app, name="tokens")


@tokens_app.command("list")
def tokens_list(
    user_id: Optional[str] = typer.Option(None, "--user-id", "-u", help="Filter by user"),
    provider: Optional[str] = typer.Option(None, "--provider", "-p", help="Filter by provider"),
    env_file: Optional[str] = typer.Option(None, "--env", help="Environment file"),
):
    """
    List stored connections. Tokens are never printed.

    Example:
        clockwork tokens list --provider fitbit
    """
    service = _service(env_file)
    try:
        connections = service.connections.list(user_id)
    except ConnectorError as e:
        _fail(e)

    if provider:
        connections = [c for c in connections if c.provider.value == provider.lower()]

    if not connections:
        console.print("[yellow]No connections found[/yellow]")
        return

    table = Table(title="Connections")
    table.add_column("User", style="cyan")
    table.add_column("Provider")
    table.add_column("Status")
    table.add_column("Expires at")
    table.add_column("Last sync")

    for connection in connections:
        expired = connection.is_expired()
        table.add_row(
            connection.user_id,
            connection.provider.display_name,
            "[red]expired[/red]" if expired else "[green]active[/green]",
            connection.expires_at.isoformat() if connection.expires_at else "-",
            connection.last_sync.isoformat() if connection.last_sync else "-",
        )
    console.print(table)


@tokens_app.command("refresh")
def tokens_refresh(
    provider: str = typer.Option(..., "--provider", "-p", help="Provider"),
    user_id: str = typer.Option(..., "--user-id", "-u", help="User ID"),
    env_file: Optional[str] = typer.Option(None, "--env", help="Environment file"),
):
    """
    Refresh the access token of a connection.

    Example:
        clockwork tokens refresh --provider fitbit --user-id abc123
    """
    console.print(f"🔄 Refreshing token for [cyan]{provider}[/cyan] user [cyan]{user_id}[/cyan]...")
    service = _service(env_file)
    try:
        connection = _run(service, lambda: service.refresh(user_id, provider))
    except ConnectorError as e:
        _fail(e)

    expires = connection.expires_at.isoformat() if connection.expires_at else "never"
    console.print(f"[green]✅ Token refreshed[/green] (expires {expires})")


@tokens_app.command("revoke")
def tokens_revoke(
    provider: str = typer.Option(..., "--provider", "-p", help="Provider"),
    user_id: str = typer.Option(..., "--user-id", "-u", help="User ID"),
    confirm: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
    env_file: Optional[str] = typer.Option(None, "--env", help="Environment file"),
):
    """
    Revoke a connection at the provider (when supported) and delete it.

    Example:
        clockwork tokens revoke --provider fitbit --user-id abc123 --yes
    """
    if not confirm and not typer.confirm(f"Are you sure you want to revoke {provider}:{user_id}?"):
        console.print("Cancelled.")
        raise typer.Exit(0)

    service = _service(env_file)
    try:
        removed = _run(service, lambda: service.disconnect(user_id, provider))
    except ConnectorError as e:
        _fail(e)

    if removed:
        console.print(f"[green]✅ Revoked {provider} connection for {user_id}[/green]")
    else:
        console.print(f"[yellow]No {provider} connection found for {user_id}[/yellow]")


# ============================================================================
# SCORE Command
# ============================================================================


@app.command()
def score(
    hrv: Optional[float] = typer.Option(None, "--hrv", help="HRV (RMSSD, ms)"),
    resting_hr: Optional[float] = typer.Option(None, "--resting-hr", help="Resting heart rate (bpm)"),
    sleep_minutes: Optional[float] = typer.Option(None, "--sleep-minutes", help="Time in bed (minutes)"),
    sleep_efficiency: Optional[float] = typer.Option(None, "--sleep-efficiency", help="Sleep efficiency (0-100)"),
    breathing_rate: Optional[float] = typer.Option(None, "--breathing-rate", help="Breaths per minute"),
    azm: Optional[float] = typer.Option(None, "--azm", help="Active zone minutes"),
    cardio_load: Optional[float] = typer.Option(None, "--cardio-load", help="Cardio load"),
    active_minutes: Optional[float] = typer.Option(None, "--active-minutes", help="Active minutes"),
    calories: Optional[float] = typer.Option(None, "--calories", help="Calories burned"),
    steps: Optional[float] = typer.Option(None, "--steps", help="Steps"),
):
    """
    Compute Recovery Score and Training Load from raw values.

    Example:
        clockwork score --hrv 65 --resting-hr 55 --sleep-minutes 450 --sleep-efficiency 90
    """
    recovery = recovery_breakdown(
        hrv=hrv,
        resting_hr=resting_hr,
        sleep_minutes=sleep_minutes,
        sleep_efficiency=sleep_efficiency,
        breathing_rate=breathing_rate,
    )
    load = training_load_breakdown(
        active_zone_minutes=azm,
        cardio_load=cardio_load,
        active_minutes=active_minutes,
        calories=calories,
        steps=steps,
    )
    _print_breakdown("Recovery Score", recovery)
    _print_breakdown("Training Load", load)


def _print_breakdown(title: str, breakdown: ScoreBreakdown) -> None:
    table = Table(title=f"{title}: {breakdown.score}")
    table.add_column("Signal", style="cyan")
    table.add_column("Sub-score", justify="right")
    table.add_column("Weight", justify="right")
    table.add_column("Effective", justify="right")

    effective = breakdown.effective_weights()
    for component in breakdown.components:
        table.add_row(
            component.name,
            f"{component.subscore:.1f}",
            f"{component.weight:.2f}",
            f"{effective[component.name]:.2f}",
        )
    for name in breakdown.missing:
        table.add_row(name, "[dim]missing[/dim]", "[dim]-[/dim]", "[dim]-[/dim]")
    console.print(table)


# ============================================================================
# VERSION Command
# ============================================================================


@app.command()
def version():
    """Show version information."""
    console.print("[bold]Clockwork CLI[/bold]")
    console.print(f"Version: [cyan]{__version__}[/cyan]")
    console.print()
    console.print(f"Repository: [dim]{CLI_ROOT}[/dim]")


# ============================================================================
# Main Entry Point
# ============================================================================

if __name__ == "__main__":
    app()
