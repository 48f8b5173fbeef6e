"""VesselTrack CLI: vessel voyage tracking for port operations.

Service commands (run next to the database):
  serve              start the API server
  init-db            create tables
  seed --demo        load demo accounts and voyages
  grant-admin EMAIL  give an account admin privileges

Client commands (talk to the API at API_URL):
  register, login, logout, whoami, reset-password, change-password, update-contact
  voyages, add-vessel, set-status, complete, trips
  admin users | toggle | delete
"""
from __future__ import annotations

import json
import logging
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Iterator, Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from vesseltrack.client.admin import AdminConsole
from vesseltrack.client.api import BackendClient
from vesseltrack.client.notifications import Notifier, Toast
from vesseltrack.client.session import UserSession
from vesseltrack.client.voyages import VoyageForm, VoyageStore, filter_by_status
from vesseltrack.config import settings
from vesseltrack.models.base import TripStatusEnum

logger = logging.getLogger(__name__)

app = typer.Typer(
    name="vesseltrack",
    help="Vessel voyage tracking for port operations.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)
admin_app = typer.Typer(help="User administration (admin only).", no_args_is_help=True)
app.add_typer(admin_app, name="admin")
console = Console()

STATUS_BADGES = {
    TripStatusEnum.IN_TRANSIT.value: "[black on yellow] In Transit [/black on yellow]",
    TripStatusEnum.DOCKED.value: "[black on green] Docked [/black on green]",
    TripStatusEnum.DELAYED.value: "[white on red] Delayed [/white on red]",
}


# ---------------------------------------------------------------------------
# Service commands
# ---------------------------------------------------------------------------


@app.command("serve")
def serve(
    host: str = typer.Option("127.0.0.1", "--host"),
    port: int = typer.Option(8000, "--port"),
    reload: bool = typer.Option(False, "--reload", help="Restart on code changes"),
):
    """Run the API server."""
    import uvicorn

    console.print(f"API running at [cyan]http://{host}:{port}/api/v1[/cyan], press Ctrl+C to stop")
    uvicorn.run("vesseltrack.main:app", host=host, port=port, reload=reload)


@app.command("init-db")
def init_database():
    """Create all tables."""
    from vesseltrack.database import init_db

    try:
        init_db()
    except Exception as e:
        console.print(f"[red]Database setup failed: {e}[/red]")
        raise typer.Exit(1)
    console.print("[green]Database ready.[/green]")


@app.command("seed")
def seed(
    demo: bool = typer.Option(False, "--demo", help="Load demo accounts and voyages"),
):
    """Load starter data into the database."""
    if not demo:
        console.print("[yellow]Nothing to seed.[/yellow] Pass [cyan]--demo[/cyan] to load sample data.")
        raise typer.Exit(0)

    from vesseltrack.database import SessionLocal, init_db
    from vesseltrack.modules.demo_data import DEMO_PASSWORD, load_demo_data

    init_db()
    db = SessionLocal()
    try:
        with console.status("[bold]Loading demo data..."):
            result = load_demo_data(db)
        db.commit()
    except Exception as e:
        db.rollback()
        console.print(f"[red]Seeding failed: {e}[/red]")
        raise typer.Exit(1)
    finally:
        db.close()

    console.print(
        f"[green]Demo data loaded:[/green] {result['users']} users, {result['voyages']} voyages"
    )
    if result["users"]:
        console.print(f"[dim]Demo accounts use the password '{DEMO_PASSWORD}'.[/dim]")


@app.command("grant-admin")
def grant_admin(email: str = typer.Argument(..., help="Account email")):
    """Give an existing account admin privileges."""
    from vesseltrack.database import SessionLocal
    from vesseltrack.modules.auth_service import AuthError, get_user_by_email
    from vesseltrack.modules.auth_service import grant_admin as grant

    db = SessionLocal()
    try:
        user = get_user_by_email(db, email)
        if user is None:
            console.print(f"[red]No account with email {email}[/red]")
            raise typer.Exit(1)
        try:
            grant(db, user.id)
        except AuthError as e:
            console.print(f"[yellow]{e.message}[/yellow]")
            raise typer.Exit(1)
        db.commit()
        console.print(f"[green]{email} is now an admin.[/green]")
    finally:
        db.close()


# ---------------------------------------------------------------------------
# Auth commands
# ---------------------------------------------------------------------------


@app.command("register")
def register(
    email: str = typer.Option(..., "--email", prompt=True),
    username: str = typer.Option(..., "--username", prompt=True),
    name: str = typer.Option(..., "--name", prompt="Full name"),
    password: str = typer.Option(..., "--password", prompt=True, hide_input=True),
    confirm: str = typer.Option(..., "--confirm-password", prompt="Confirm password", hide_input=True),
):
    """Create an account."""
    with _session() as session:
        if not session.signup(email, password, username, name, confirm_password=confirm):
            raise typer.Exit(1)
    console.print("Run [cyan]vesseltrack login[/cyan] to sign in.")


@app.command("login")
def login(
    email: str = typer.Option(..., "--email", prompt=True),
    password: str = typer.Option(..., "--password", prompt=True, hide_input=True),
):
    """Sign in and remember the session."""
    with _session(restore=False) as session:
        if not session.login(email, password):
            raise typer.Exit(1)
        _save_token(session.access_token)
        console.print(f"Signed in as [bold]{session.display_name}[/bold]")


@app.command("logout")
def logout():
    """Sign out and forget the stored session."""
    with _session() as session:
        session.logout()
    _clear_token()


@app.command("whoami")
def whoami():
    """Show the signed-in account."""
    with _session() as session:
        _require_login(session)
        role = "[bold magenta]Admin[/bold magenta]" if session.is_admin else "User"
        console.print(f"[bold]{session.display_name}[/bold]  {session.user.email}  ({role})")
        if session.profile and session.profile.name:
            console.print(f"  Name: {session.profile.name}")
        if session.user.last_sign_in_at:
            console.print(f"  Last sign-in: {_format_timestamp(session.user.last_sign_in_at)}")


@app.command("reset-password")
def reset_password(
    email: Optional[str] = typer.Option(None, "--email", help="Send reset instructions to this address"),
    token: Optional[str] = typer.Option(None, "--token", help="Reset token from the emailed link"),
):
    """Request a reset link, or set a new password with --token."""
    with _session(restore=False) as session:
        if token:
            new_password = typer.prompt("New password", hide_input=True)
            confirm = typer.prompt("Confirm new password", hide_input=True)
            ok = session.complete_password_reset(token, new_password, confirm)
        elif email:
            ok = session.request_password_reset(email)
        else:
            console.print("[red]Provide --email or --token[/red]")
            raise typer.Exit(1)
        if not ok:
            raise typer.Exit(1)


@app.command("change-password")
def change_password(
    password: str = typer.Option(..., "--password", prompt="New password", hide_input=True),
    confirm: str = typer.Option(..., "--confirm-password", prompt="Confirm new password", hide_input=True),
):
    """Change the signed-in account's password."""
    with _session() as session:
        _require_login(session)
        if not session.update_password(password, confirm):
            raise typer.Exit(1)


@app.command("update-contact")
def update_contact(
    email: Optional[str] = typer.Option(None, "--email"),
    name: Optional[str] = typer.Option(None, "--name"),
):
    """Update the account email and display name."""
    with _session() as session:
        _require_login(session)
        current_name = session.profile.name if session.profile else ""
        if not session.update_contact(email or session.user.email, name if name is not None else current_name or ""):
            raise typer.Exit(1)


# ---------------------------------------------------------------------------
# Dashboard commands
# ---------------------------------------------------------------------------


@app.command("voyages")
def voyages(
    status: Optional[str] = typer.Option(None, "--status", help="in-transit, delayed, docked or all"),
    refresh: bool = typer.Option(False, "--refresh", help="Re-fetch from the server and confirm"),
):
    """List active voyages, newest first."""
    with _session() as session:
        _require_login(session)
        store = VoyageStore(session.client, session)
        rows = filter_by_status(store.refresh() if refresh else store.list(), status)
        _print_voyages_table(console, rows, status)


@app.command("add-vessel")
def add_vessel(
    name: Optional[str] = typer.Option(None, "--name", help="Vessel name"),
    vessel_id: Optional[str] = typer.Option(None, "--vessel-id", help="Vessel identifier"),
    destination: Optional[str] = typer.Option(None, "--destination"),
    eta_date: Optional[datetime] = typer.Option(None, "--eta-date", formats=["%Y-%m-%d"], help="YYYY-MM-DD"),
    eta_time: str = typer.Option("12:00", "--eta-time", help="HH:MM, local time"),
):
    """Register a new voyage (status in-transit)."""
    with _session() as session:
        _require_login(session)
        form = VoyageForm(
            name=name or "",
            vessel_id=vessel_id or "",
            destination=destination or "",
            eta_date=eta_date.date() if eta_date else None,
            eta_time=eta_time,
        )
        voyage = VoyageStore(session.client, session).create(form)
        if voyage is None:
            raise typer.Exit(1)
        console.print(f"[green]Added[/green] {voyage.name} ({voyage.vessel_id}) as voyage #{voyage.id}")


@app.command("set-status")
def set_status(
    voyage_id: int = typer.Argument(..., help="Voyage number"),
    status: TripStatusEnum = typer.Argument(..., help="New status"),
):
    """Overwrite a voyage's status."""
    with _session() as session:
        _require_login(session)
        if VoyageStore(session.client, session).update_status(voyage_id, status.value) is None:
            raise typer.Exit(1)


@app.command("complete")
def complete(
    voyage_id: int = typer.Argument(..., help="Voyage number"),
    notes: Optional[str] = typer.Option(None, "--notes", help="Completion notes"),
):
    """Mark a voyage as successfully completed and archive it."""
    with _session() as session:
        _require_login(session)
        store = VoyageStore(session.client, session)
        voyage = next((v for v in store.list() if v.id == voyage_id), None)
        if voyage is None:
            console.print(f"[red]No active voyage #{voyage_id}[/red]")
            raise typer.Exit(1)
        if store.mark_successful(voyage, notes=notes) is None:
            raise typer.Exit(1)


@app.command("trips")
def trips():
    """List successfully completed voyages."""
    with _session() as session:
        _require_login(session)
        entries = VoyageStore(session.client, session).successful_trips()
        if not entries:
            console.print("[dim]No completed trips yet.[/dim]")
            return

        table = Table(title=f"Successful Trips ({len(entries)})")
        table.add_column("Vessel", style="bold")
        table.add_column("Vessel ID", style="cyan")
        table.add_column("Destination")
        table.add_column("Arrived")
        table.add_column("Completed")
        table.add_column("Notes", style="dim")
        for e in entries:
            table.add_row(
                e.vessel_name, e.vessel_id, e.destination,
                _format_timestamp(e.arrival_time), _format_timestamp(e.completed_at),
                e.completion_notes or "",
            )
        console.print(table)


# ---------------------------------------------------------------------------
# Admin commands
# ---------------------------------------------------------------------------


@admin_app.command("users")
def admin_users():
    """List all accounts with their role."""
    with _session() as session:
        _require_login(session)
        _require_admin(session)
        users = AdminConsole(session.client, session).list_users()

        table = Table(title=f"Users ({len(users)})")
        table.add_column("Username", style="bold")
        table.add_column("Email")
        table.add_column("Created")
        table.add_column("Last sign-in")
        table.add_column("Role")
        table.add_column("ID", style="dim")
        for u in users:
            table.add_row(
                u.username, u.email,
                _format_timestamp(u.created_at, with_time=False),
                _format_timestamp(u.last_sign_in_at) if u.last_sign_in_at else "Never",
                "[magenta]Admin[/magenta]" if u.is_admin else "User",
                u.id,
            )
        console.print(table)


@admin_app.command("toggle")
def admin_toggle(user_id: str = typer.Argument(..., help="Account id")):
    """Grant or revoke admin privileges."""
    with _session() as session:
        _require_login(session)
        _require_admin(session)
        admin = AdminConsole(session.client, session)
        target = next((u for u in admin.list_users() if u.id == user_id), None)
        if target is None:
            console.print(f"[red]No user with id {user_id}[/red]")
            raise typer.Exit(1)
        if not admin.toggle_admin(user_id, make_admin=not target.is_admin):
            raise typer.Exit(1)


@admin_app.command("delete")
def admin_delete(
    user_id: str = typer.Argument(..., help="Account id"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
):
    """Permanently delete an account."""
    with _session() as session:
        _require_login(session)
        _require_admin(session)
        if not yes and not typer.confirm(f"Delete user {user_id}? This cannot be undone."):
            console.print("[dim]Cancelled.[/dim]")
            return
        if not AdminConsole(session.client, session).delete_user(user_id):
            raise typer.Exit(1)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _make_client() -> BackendClient:
    """Build the API client (mockable for testing)."""
    return BackendClient()


def _session_path() -> Path:
    return Path(settings.SESSION_FILE).expanduser()


def _load_token() -> Optional[str]:
    path = _session_path()
    if not path.exists():
        return None
    try:
        return json.loads(path.read_text()).get("access_token")
    except (OSError, ValueError) as e:
        logger.warning("Ignoring unreadable session file %s: %s", path, e)
        return None


def _save_token(token: str) -> None:
    path = _session_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps({"access_token": token}))
    path.chmod(0o600)


def _clear_token() -> None:
    _session_path().unlink(missing_ok=True)


def _render_toast(toast: Toast) -> None:
    style = "red" if toast.is_error else "green"
    console.print(Panel(toast.description or toast.title, title=toast.title, border_style=style, expand=False))


@contextmanager
def _session(restore: bool = True) -> Iterator[UserSession]:
    """A UserSession whose notifications print to the console."""
    notifier = Notifier()
    notifier.subscribe(_render_toast)
    client = _make_client()
    session = UserSession(client, notifier)
    try:
        if restore:
            token = _load_token()
            if token and not session.restore(token):
                _clear_token()
        yield session
    finally:
        client.close()


def _require_login(session: UserSession) -> None:
    if not session.is_authenticated:
        console.print("[red]Not logged in.[/red] Run [cyan]vesseltrack login[/cyan] first.")
        raise typer.Exit(1)


def _require_admin(session: UserSession) -> None:
    if not session.is_admin:
        console.print(Panel(
            "You don't have permission to access this page.",
            title="Access denied",
            border_style="red",
            expand=False,
        ))
        raise typer.Exit(1)


def _format_timestamp(value: Optional[datetime], with_time: bool = True) -> str:
    """Local time as e.g. ``Apr 15, 2025 2:30 PM``."""
    if value is None:
        return "-"
    local = value.astimezone()
    text = f"{local:%b} {local.day}, {local.year}"
    if not with_time:
        return text
    return f"{text} {local.hour % 12 or 12}:{local:%M} {local:%p}"


def _status_badge(status: str) -> str:
    return STATUS_BADGES.get(status, "[reverse] Unknown [/reverse]")


def _print_voyages_table(con: Console, rows, status: Optional[str]) -> None:
    if not rows:
        if status and status != "all":
            con.print(f"[dim]No voyages with status '{status}'.[/dim]")
        else:
            con.print("[dim]No vessels are currently being tracked.[/dim]")
        return

    table = Table(title=f"Active Voyages ({len(rows)})")
    table.add_column("#", style="cyan", justify="right")
    table.add_column("Vessel", style="bold")
    table.add_column("Vessel ID")
    table.add_column("Destination")
    table.add_column("ETA")
    table.add_column("Status")
    table.add_column("Added", style="dim")
    for v in rows:
        table.add_row(
            str(v.id), v.name, v.vessel_id, v.destination,
            _format_timestamp(v.eta), _status_badge(v.status),
            f"{_format_timestamp(v.added_at, with_time=False)} by {v.added_by or 'unknown'}",
        )
    con.print(table)
