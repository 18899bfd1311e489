"""Command-line interface for the June waitlist."""

from typing import Annotated

import typer
import uvicorn
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from waitlist.errors import WaitlistError
from waitlist.logging_config import configure_logging, get_logger
from waitlist.signup.service import create_signup_service

# Configure logging
configure_logging()
logger = get_logger(__name__)

# Create Typer app
app = typer.Typer(
    name="waitlist",
    help="June waitlist - magic-link signup and referral leaderboard",
    no_args_is_help=True,
)

# Rich console for pretty output
console = Console()


@app.command("init")
def init_database() -> None:
    """Initialize the database and create tables."""
    console.print("[bold blue]Initializing database...[/bold blue]")
    service = create_signup_service()
    service.store.setup()
    console.print("[bold green]✓[/bold green] Database initialized successfully")


@app.command("serve")
def serve(
    host: Annotated[str, typer.Option("--host", help="Bind address")] = "0.0.0.0",
    port: Annotated[int, typer.Option("--port", "-p", envvar="PORT", help="Port to listen on")] = 5000,
    reload: Annotated[bool, typer.Option("--reload", help="Reload on code changes")] = False,
) -> None:
    """Run the HTTP API."""
    console.print(f"[bold blue]Serving on http://{host}:{port}[/bold blue]")
    uvicorn.run("waitlist.api.main:build_app", factory=True, host=host, port=port, reload=reload)


@app.command("leaderboard")
def show_leaderboard(
    limit: Annotated[int, typer.Option("--limit", "-l", help="Number of members to show")] = 10,
) -> None:
    """Show members with the most referrals."""
    service = create_signup_service()
    try:
        entries = service.leaderboard(limit)
        total = service.member_count()
    except WaitlistError as e:
        console.print(f"[bold red]✗[/bold red] {escape(e.message)}")
        raise typer.Exit(1)

    if not entries:
        console.print("[yellow]No verified members yet[/yellow]")
        return

    table = Table(title=f"Leaderboard ({total} members)")
    table.add_column("Rank", justify="right", style="cyan")
    table.add_column("Member", style="green")
    table.add_column("Referrals", justify="right")

    for entry in entries:
        table.add_row(str(entry.rank), entry.email, str(entry.referral_count))

    console.print(table)


@app.command("user")
def show_user(
    email: Annotated[str, typer.Argument(help="Member email")],
) -> None:
    """Show one verified member."""
    service = create_signup_service()
    try:
        user = service.get_user(email)
    except WaitlistError as e:
        console.print(f"[bold red]✗[/bold red] {escape(e.message)}")
        raise typer.Exit(1)

    if not user:
        console.print(f"[red]No verified member with email {email}[/red]")
        raise typer.Exit(1)

    console.print(f"[bold]Email:[/bold] {user['email']}")
    console.print(f"[bold]Referral code:[/bold] {user['referral_code']}")
    console.print(f"[bold]Referrals:[/bold] {user['referral_count']}")
    console.print(f"[bold]Referred by:[/bold] {user['referred_by'] or '-'}")
    console.print(f"[bold]Joined:[/bold] {user['created_at'].strftime('%Y-%m-%d %H:%M:%S')}")


@app.command("generate-code")
def generate_code(
    email: Annotated[str | None, typer.Option("--email", "-e", help="Reserve the code for this email")] = None,
) -> None:
    """Reserve a fresh referral code and print it."""
    service = create_signup_service()
    try:
        code = service.code_generator().generate_unique_code(owner=email)
    except WaitlistError as e:
        console.print(f"[bold red]✗[/bold red] {escape(e.message)}")
        raise typer.Exit(1)

    console.print(f"[bold green]✓[/bold green] {code}")


if __name__ == "__main__":
    app()
