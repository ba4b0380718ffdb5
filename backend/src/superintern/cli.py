"""Command-line interface for SuperIntern."""

from typing import Annotated

import typer
from rich.console import Console
from rich.table import Table

from superintern.auth.profiles import ProfileError
from superintern.logging_config import configure_logging, get_logger
from superintern.services import Services, build_services
from superintern.storage.db import Database

# Configure logging
configure_logging()
logger = get_logger(__name__)

# Create Typer app
app = typer.Typer(
    name="superintern",
    help="SuperIntern - internship program administration",
    no_args_is_help=True,
)

# Rich console for pretty output
console = Console()


def _services() -> Services:
    return build_services(Database())


@app.command("init")
def init_database() -> None:
    """Initialize the database and create tables."""
    console.print("[bold blue]Initializing database...[/bold blue]")
    Database().create_tables()
    console.print("[bold green]✓[/bold green] Database initialized successfully")


@app.command("make-admin")
def make_admin(
    email: Annotated[str, typer.Argument(help="E-mail address of an existing profile")],
) -> None:
    """Grant admin rights to a user."""
    services = _services()
    try:
        profile = services.profiles.promote_admin(email)
    except ProfileError as e:
        console.print(f"[bold red]✗[/bold red] {e}")
        raise typer.Exit(1)

    console.print(f"[bold green]✓[/bold green] {profile.email} is now an admin")


@app.command("issue-code")
def issue_code(
    user_id: Annotated[str, typer.Argument(help="Identity ID of the user")],
) -> None:
    """Show a user's referral code, issuing one if needed."""
    services = _services()
    if not services.profiles.get_profile(user_id):
        console.print(f"[red]Profile {user_id} not found[/red]")
        raise typer.Exit(1)

    code = services.referrals.ensure_code(user_id)
    if not code:
        console.print("[bold red]✗[/bold red] Could not issue a referral code, see logs")
        raise typer.Exit(1)

    console.print(f"[bold]Code:[/bold] {code}")
    console.print(f"[bold]Link:[/bold] {services.referrals.share_link(code)}")


@app.command("referral-stats")
def referral_stats(
    user_id: Annotated[str, typer.Argument(help="Identity ID of the referrer")],
) -> None:
    """Show referral statistics for a user."""
    services = _services()
    if not services.profiles.get_profile(user_id):
        console.print(f"[red]Profile {user_id} not found[/red]")
        raise typer.Exit(1)

    stats = services.referrals.get_referral_stats(user_id)

    console.print(f"[bold]Code:[/bold] {stats['code'] or 'N/A'}")
    console.print(f"[bold]Visits:[/bold] {stats['visits']}")
    console.print(f"[bold]Conversions:[/bold] {stats['conversions']}")
    console.print(f"[bold]Referrals:[/bold] {stats['referrals_count']}")
    console.print(f"[bold]Points earned:[/bold] {stats['points_earned']}")

    if stats["referrals"]:
        table = Table(title="Referred users")
        table.add_column("User", style="green")
        table.add_column("Status", style="cyan")
        table.add_column("Tasks", justify="right")
        table.add_column("Rewarded")
        table.add_column("Joined")

        for referral in stats["referrals"]:
            created = referral["created_at"]
            table.add_row(
                referral["email"] or referral["referred_user_id"],
                referral["status"],
                f"{referral['completed_task_count']}/{referral['tasks_required']}",
                "yes" if referral["points_awarded"] else "no",
                created.strftime("%Y-%m-%d %H:%M") if created else "N/A",
            )

        console.print(table)


@app.command("prune-webhook-events")
def prune_webhook_events(
    days: Annotated[int, typer.Option("--days", "-d", help="Keep events newer than this")] = 30,
) -> None:
    """Delete old webhook idempotency records."""
    deleted = _services().webhooks.cleanup_old_events(days)
    console.print(f"[bold green]✓[/bold green] Removed {deleted} processed webhook events")


@app.command("dev-token")
def dev_token(
    user_id: Annotated[str, typer.Argument(help="Identity ID to put in the token")],
    email: Annotated[str | None, typer.Option("--email", "-e", help="E-mail claim")] = None,
) -> None:
    """Mint a session token signed with the local secret (development only)."""
    from superintern.settings import settings

    if settings.env == "production":
        console.print("[bold red]✗[/bold red] Refusing to mint tokens in production")
        raise typer.Exit(1)

    console.print(_services().tokens.create_access_token(user_id, email=email))


@app.command("serve")
def serve(
    host: Annotated[str, typer.Option("--host", help="Bind address")] = "127.0.0.1",
    port: Annotated[int, typer.Option("--port", "-p", help="Port")] = 8000,
    reload: Annotated[bool, typer.Option("--reload", help="Reload on code changes")] = False,
) -> None:
    """Run the API server."""
    import uvicorn

    console.print(f"[bold blue]Serving SuperIntern API on {host}:{port}[/bold blue]")
    uvicorn.run("superintern.api.main:app", host=host, port=port, reload=reload)


if __name__ == "__main__":
    app()
