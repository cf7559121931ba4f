"""Command-line interface for ideaengage.

This module provides a Typer-based CLI for running and inspecting the
engagement service.

Commands:
- init: Create the database schema
- serve: Run the HTTP API with uvicorn
- status: Show the claim status and interaction counts of an idea
- claims: List a user's claims
- interactions: List a user's interaction statuses

Example:
    $ ideaengage init
    $ ideaengage serve --port 8000
    $ ideaengage status idea-42
    $ ideaengage claims alice --all
"""

import sys
from typing import Optional

import typer
from loguru import logger
from rich.console import Console
from rich.table import Table

from ideaengage.claims import ClaimRegistry
from ideaengage.config import settings
from ideaengage.database import DatabaseManager
from ideaengage.errors import EngagementError
from ideaengage.interactions import InteractionStore
from ideaengage.utils import format_iso

# Initialize CLI app
app = typer.Typer(
    name="ideaengage",
    help="Idea claims and interaction status service",
    add_completion=False,
)
console = Console()


# =============================================================================
# Helper Functions
# =============================================================================


def setup_logging(verbose: bool = False) -> None:
    """Configure logging based on verbosity level.

    Args:
        verbose: If True, set DEBUG level; otherwise WARNING so command
            output stays readable
    """
    logger.remove()
    logger.add(
        sys.stderr,
        level="DEBUG" if verbose else "WARNING",
        colorize=True,
        format="<green>{time:HH:mm:ss}</green> | "
        "<level>{level: <8}</level> | "
        "<cyan>{name}</cyan>:<cyan>{function}</cyan> - "
        "{message}",
    )


def open_database() -> DatabaseManager:
    """Build and initialize a DatabaseManager from settings."""
    db = DatabaseManager()
    db.initialize()
    return db


VerboseOption = typer.Option(
    False,
    "--verbose",
    "-v",
    help="Enable verbose logging",
)


# =============================================================================
# CLI Commands
# =============================================================================


@app.command()
def init(
    force: bool = typer.Option(
        False,
        "--force",
        "-f",
        help="Drop and recreate all tables (destroys existing data)",
    ),
    verbose: bool = VerboseOption,
) -> None:
    """Create the database schema.

    Tables and the active-claim unique index are created if missing. With
    --force, every table is dropped first.

    Examples:
        $ ideaengage init
        $ ideaengage init --force
    """
    setup_logging(verbose)

    console.print("🗄️  [bold cyan]Initializing Database[/bold cyan]\n")
    console.print(f"📍 Database: [yellow]{settings.redacted_database_url()}[/yellow]\n")

    db: DatabaseManager | None = None
    try:
        db = open_database()
        if force:
            db.reset_schema()
            console.print("⚠️  [yellow]Existing tables dropped and recreated[/yellow]")
    except Exception as e:
        console.print(f"\n❌ [bold red]Initialization failed: {e}[/bold red]")
        raise typer.Exit(code=1)
    finally:
        if db is not None:
            db.close()

    console.print("✅ [bold green]Database ready![/bold green]")


@app.command()
def serve(
    host: Optional[str] = typer.Option(None, "--host", help="Bind address (defaults to API_HOST)"),
    port: Optional[int] = typer.Option(None, "--port", "-p", help="Bind port (defaults to API_PORT)"),
    reload: bool = typer.Option(False, "--reload", help="Reload on code changes (development)"),
) -> None:
    """Run the HTTP API.

    Examples:
        $ ideaengage serve
        $ ideaengage serve --host 0.0.0.0 --port 9000
    """
    import uvicorn

    host = host or settings.api_host
    port = port or settings.api_port

    console.print("🚀 [bold cyan]ideaengage API[/bold cyan]\n")
    console.print(f"📍 Database: [yellow]{settings.redacted_database_url()}[/yellow]")
    console.print(f"🌐 Listening: [yellow]http://{host}:{port}[/yellow]\n")

    uvicorn.run(
        "ideaengage.api:create_app",
        factory=True,
        host=host,
        port=port,
        reload=reload,
        log_level=settings.log_level.lower(),
    )


@app.command()
def status(
    idea_id: str = typer.Argument(..., help="Idea id"),
    verbose: bool = VerboseOption,
) -> None:
    """Show the claim status and interaction counts of an idea.

    Examples:
        $ ideaengage status idea-42
    """
    setup_logging(verbose)

    console.print(f"📊 [bold cyan]Idea {idea_id}[/bold cyan]\n")

    db = open_database()
    try:
        with db.session_scope() as session:
            claim_status = ClaimRegistry(session).get_claim_status(idea_id)
            counts = InteractionStore(session).tally(idea_id)
    except EngagementError as e:
        console.print(f"\n❌ [bold red]{e.message}[/bold red]")
        raise typer.Exit(code=1)
    finally:
        db.close()

    claim_table = Table(title="Claim", show_header=False)
    claim_table.add_column("Key", style="cyan")
    claim_table.add_column("Value", style="yellow")

    claim_table.add_row("Claimed", "yes" if claim_status.isClaimed else "no")
    if claim_status.isClaimed:
        claimer = claim_status.claimer
        name = " ".join(filter(None, [claimer.firstName, claimer.lastName])) if claimer else ""
        claim_table.add_row("Claimed By", f"{claim_status.claimedBy} {name}".strip())
        claim_table.add_row("Claimed At", format_iso(claim_status.claimedAt))
        claim_table.add_row("Progress", f"{claim_status.progress}%")
    claim_table.add_row("Total Claims", f"{claim_status.totalClaimCount:,}")

    console.print(claim_table)
    console.print()

    counts_table = Table(title="Interactions")
    counts_table.add_column("Status", style="cyan")
    counts_table.add_column("Users", justify="right", style="green")
    for name, count in counts.items():
        counts_table.add_row(name, f"{count:,}")

    console.print(counts_table)


@app.command()
def claims(
    user_id: str = typer.Argument(..., help="User id"),
    show_all: bool = typer.Option(False, "--all", "-a", help="Include released claims"),
    verbose: bool = VerboseOption,
) -> None:
    """List a user's claims, active first.

    Examples:
        $ ideaengage claims alice
        $ ideaengage claims alice --all
    """
    setup_logging(verbose)

    db = open_database()
    try:
        with db.session_scope() as session:
            rows = ClaimRegistry(session).list_user_claims(user_id, include_released=show_all)
    except EngagementError as e:
        console.print(f"\n❌ [bold red]{e.message}[/bold red]")
        raise typer.Exit(code=1)
    finally:
        db.close()

    if not rows:
        console.print(f"📭 No claims for [yellow]{user_id}[/yellow]")
        return

    table = Table(title=f"Claims of {user_id}")
    table.add_column("Idea", style="cyan")
    table.add_column("Claimed At")
    table.add_column("Progress", justify="right", style="green")
    table.add_column("Released At", style="dim")

    for claim in rows:
        table.add_row(
            claim.ideaId,
            format_iso(claim.claimedAt),
            f"{claim.progress}%",
            format_iso(claim.releasedAt) or "",
        )

    console.print(table)


@app.command()
def interactions(
    user_id: str = typer.Argument(..., help="User id"),
    status_filter: Optional[str] = typer.Option(
        None,
        "--status",
        "-s",
        help="Only show this status (interested, not_interested, saved, building)",
    ),
    verbose: bool = VerboseOption,
) -> None:
    """List a user's interaction statuses, most recent first.

    Examples:
        $ ideaengage interactions alice
        $ ideaengage interactions alice --status saved
    """
    setup_logging(verbose)

    db = open_database()
    try:
        with db.session_scope() as session:
            rows = InteractionStore(session).list_user_interactions(user_id, status=status_filter)
    except EngagementError as e:
        console.print(f"\n❌ [bold red]{e.message}[/bold red]")
        raise typer.Exit(code=1)
    finally:
        db.close()

    if not rows:
        console.print(f"📭 No interactions for [yellow]{user_id}[/yellow]")
        return

    table = Table(title=f"Interactions of {user_id}")
    table.add_column("Idea", style="cyan")
    table.add_column("Status", style="green")
    table.add_column("Updated At")

    for interaction in rows:
        table.add_row(
            interaction.ideaId,
            interaction.status.value,
            format_iso(interaction.updatedAt),
        )

    console.print(table)


def main() -> None:
    """Main entry point for CLI."""
    app()


if __name__ == "__main__":
    main()
