"""Command-line interface for RecipeShare.

This module provides a Typer-based CLI for administering a RecipeShare
database and exercising the engine operations by hand. Commands that act on
behalf of a user take the acting user ID with ``--as``.

Commands:
- init: Create the database
- status: Show configuration and row counts
- profile: Show (or lazily create) a user profile
- create / recipes / approve / admin: Author, list and publish recipes
- rate / favorite / follow / comment: Social actions
- notifications / read: Inspect and acknowledge notifications
- recompute: Rebuild a recipe's rating aggregate
- suggest: Ask the LLM for recipe ideas
- metrics: Print Prometheus metrics

Example:
    $ recipeshare init
    $ recipeshare create recipe.json --as alice --name Alice
    $ recipeshare rate 3f2a... 5 --as bob
    $ recipeshare notifications --as alice
"""

import asyncio
import json
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Optional

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.table import Table

from recipeshare.config import settings
from recipeshare.database import DatabaseManager
from recipeshare.engine import RecipeShareEngine
from recipeshare.exceptions import RecipeShareError
from recipeshare.identity import Identity
from recipeshare.logging import setup_logging
from recipeshare.metrics import generate_metrics_output
from recipeshare.schemas import ProfileUpdate, RecipeDraft
from recipeshare.telemetry import shutdown_telemetry
from recipeshare.utils import parse_datetime

# Initialize CLI app
app = typer.Typer(
    name="recipeshare",
    help="Social recipe-sharing backend: ratings, favorites, follows and notifications",
    add_completion=False,
)
console = Console()

ACTOR_HELP = "User ID to act as"


# =============================================================================
# Helper Functions
# =============================================================================


def configure_logging(verbose: bool = False) -> None:
    """Configure logging based on verbosity level."""
    setup_logging(
        level="DEBUG" if verbose else settings.log_level,
        json_logs=settings.log_json,
        colorize=not settings.log_json,
    )


def build_engine() -> RecipeShareEngine:
    """Create an engine on the configured database."""
    return RecipeShareEngine(db=DatabaseManager())


def identity_for(user_id: str, name: Optional[str] = None, email: Optional[str] = None) -> Identity:
    return Identity(user_id=user_id, name=name, email=email)


@contextmanager
def engine_session() -> Iterator[RecipeShareEngine]:
    """Yield an engine, report domain errors in red and exit with code 1."""
    engine = build_engine()
    try:
        yield engine
    except RecipeShareError as e:
        console.print(f"❌ [bold red]{type(e).__name__}: {e.message}[/bold red]")
        raise typer.Exit(code=1)
    except ValidationError as e:
        console.print(f"❌ [bold red]Invalid input: {e.errors()[0]['msg']}[/bold red]")
        raise typer.Exit(code=1)
    finally:
        engine.close()


def run_async(coro):
    """Run async coroutine in event loop."""
    return asyncio.run(coro)


# =============================================================================
# Database Commands
# =============================================================================


@app.command()
def init(
    force: bool = typer.Option(
        False,
        "--force",
        "-f",
        help="Delete and recreate an existing database",
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging"),
) -> None:
    """Initialize the database and create all tables.

    Examples:
        $ recipeshare init
        $ recipeshare init --force
    """
    configure_logging(verbose)

    console.print("🏗️  [bold cyan]RecipeShare Initialization[/bold cyan]\n")

    db_path = Path(str(settings.database_path))
    if not settings.uses_memory_database and db_path.exists():
        if not force:
            console.print(
                f"⚠️  Database already exists at {settings.database_path}\n"
                "Use --force to recreate it."
            )
            return
        db_path.unlink()

    db = DatabaseManager()
    db.initialize()
    db.close()

    console.print(f"✅ Database created at [yellow]{settings.database_path}[/yellow]")
    console.print("\n📋 Configuration:")
    console.print(f"  • Auto-approve recipes: {settings.auto_approve_recipes}")
    console.print(f"  • Notification limit: {settings.notification_limit}")
    console.print(f"  • LLM model: {settings.llm_model}")


@app.command()
def status(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging"),
) -> None:
    """Show configuration and row counts per table."""
    configure_logging(verbose)

    console.print("📊 [bold cyan]RecipeShare Status[/bold cyan]\n")

    config_table = Table(title="Configuration", show_header=False)
    config_table.add_column("Key", style="cyan")
    config_table.add_column("Value", style="yellow")

    config_table.add_row("Environment", settings.environment.value)
    config_table.add_row("Database Path", str(settings.database_path))
    config_table.add_row("Blob Directory", str(settings.blob_dir))
    config_table.add_row("LLM Model", settings.llm_model)
    config_table.add_row("LLM API Key", settings.redact_key())
    config_table.add_row("Auto-approve Recipes", str(settings.auto_approve_recipes))

    console.print(config_table)
    console.print()

    with engine_session() as engine:
        counts = engine.db.get_table_counts()

    stats_table = Table(title="Database Statistics")
    stats_table.add_column("Table", style="cyan")
    stats_table.add_column("Rows", justify="right", style="green")
    for label, count in counts.items():
        stats_table.add_row(label.replace("_", " ").title(), f"{count:,}")

    console.print(stats_table)


# =============================================================================
# Profile Commands
# =============================================================================


@app.command()
def profile(
    user_id: Optional[str] = typer.Argument(None, help="User to show (defaults to --as)"),
    actor: Optional[str] = typer.Option(None, "--as", help=ACTOR_HELP),
    name: Optional[str] = typer.Option(None, "--name", help="Display name of the acting user"),
    email: Optional[str] = typer.Option(None, "--email", help="Email of the acting user"),
    username: Optional[str] = typer.Option(None, "--username", help="Set a new username"),
    bio: Optional[str] = typer.Option(None, "--bio", help="Set a new bio"),
) -> None:
    """Show a user's profile, creating the acting user's profile on first use.

    Examples:
        $ recipeshare profile --as alice --name "Alice Doe"
        $ recipeshare profile --as alice --bio "Home cook"
        $ recipeshare profile alice
    """
    if user_id is None and actor is None:
        console.print("❌ [bold red]Give a user ID or --as[/bold red]")
        raise typer.Exit(code=1)

    with engine_session() as engine:
        if actor is not None:
            identity = identity_for(actor, name, email)
            engine.ensure_profile(identity)
            changes = {
                key: value
                for key, value in (("username", username), ("bio", bio))
                if value is not None
            }
            if changes:
                engine.update_profile(identity, ProfileUpdate(**changes))
                console.print("✅ [green]Profile updated[/green]")

        view = engine.get_user_profile(user_id or actor)  # type: ignore[arg-type]

    if view is None:
        console.print(f"⚠️  No user {user_id!r}")
        raise typer.Exit(code=1)

    table = Table(title=f"Profile of {view['user_id']}", show_header=False)
    table.add_column("Field", style="cyan")
    table.add_column("Value", style="green")
    table.add_row("Name", view["name"] or "N/A")
    if view["profile"]:
        table.add_row("Username", view["profile"]["username"])
        table.add_row("Bio", view["profile"]["bio"] or "N/A")
        table.add_row("Admin", str(view["profile"]["is_admin"]))
    table.add_row("Followers", str(view["follower_count"]))
    table.add_row("Following", str(view["following_count"]))
    table.add_row("Recipes", str(len(view["recipes"])))
    console.print(table)


@app.command()
def admin(
    user_id: str = typer.Argument(..., help="User whose admin rights change"),
    revoke: bool = typer.Option(False, "--revoke", help="Revoke instead of grant"),
) -> None:
    """Grant or revoke admin rights (operator command)."""
    with engine_session() as engine:
        engine.grant_admin(user_id, not revoke)
    console.print(f"✅ Admin rights for [yellow]{user_id}[/yellow] {'revoked' if revoke else 'granted'}")


# =============================================================================
# Recipe Commands
# =============================================================================


@app.command()
def create(
    draft_file: Path = typer.Argument(..., exists=True, dir_okay=False, help="Recipe JSON file"),
    actor: str = typer.Option(..., "--as", help=ACTOR_HELP),
    name: Optional[str] = typer.Option(None, "--name", help="Display name of the acting user"),
) -> None:
    """Create a recipe from a JSON file with the draft fields."""
    with engine_session() as engine:
        draft = RecipeDraft.model_validate(json.loads(draft_file.read_text(encoding="utf-8")))
        identity = identity_for(actor, name)
        engine.ensure_profile(identity)
        recipe_id = engine.create_recipe(identity, draft)
    console.print(f"✅ Recipe created: [yellow]{recipe_id}[/yellow]")


@app.command()
def recipes(
    cuisine: Optional[str] = typer.Option(None, "--cuisine", "-c", help="Filter by cuisine"),
    search: Optional[str] = typer.Option(None, "--search", "-s", help="Title contains"),
    limit: Optional[int] = typer.Option(None, "--limit", "-n", min=1, help="Maximum rows"),
) -> None:
    """List approved recipes, newest first."""
    with engine_session() as engine:
        views = engine.list_recipes(limit=limit, cuisine=cuisine, search=search)

    table = Table(title="Recipes")
    table.add_column("ID", style="dim")
    table.add_column("Title", style="cyan")
    table.add_column("Cuisine")
    table.add_column("Rating", justify="right", style="green")
    table.add_column("Author")
    for view in views:
        table.add_row(
            view["id"],
            view["title"],
            view["cuisine"],
            f"{view['average_rating']:.1f} ({view['total_ratings']})",
            view["author_username"] or view["author_id"],
        )
    console.print(table)


@app.command()
def approve(
    recipe_id: str = typer.Argument(..., help="Recipe to publish"),
    actor: str = typer.Option(..., "--as", help=ACTOR_HELP),
) -> None:
    """Approve a pending recipe (admins only)."""
    with engine_session() as engine:
        engine.approve_recipe(identity_for(actor), recipe_id)
    console.print(f"✅ Recipe [yellow]{recipe_id}[/yellow] approved")


@app.command()
def recompute(recipe_id: str = typer.Argument(..., help="Recipe to repair")) -> None:
    """Rebuild a recipe's rating aggregate from its ratings."""
    with engine_session() as engine:
        average, total = engine.recompute_rating_aggregate(recipe_id)
    console.print(f"✅ Average [green]{average:.2f}[/green] over [green]{total}[/green] rating(s)")


# =============================================================================
# Social Commands
# =============================================================================


@app.command()
def rate(
    recipe_id: str = typer.Argument(..., help="Recipe to rate"),
    stars: int = typer.Argument(..., help="Rating from 1 to 5"),
    actor: str = typer.Option(..., "--as", help=ACTOR_HELP),
) -> None:
    """Rate a recipe (overwrites an earlier rating)."""
    with engine_session() as engine:
        engine.submit_rating(identity_for(actor), recipe_id, stars)
        view = engine.get_recipe(recipe_id)
    if view is not None:
        console.print(
            f"⭐ Rated. Average now [green]{view['average_rating']:.2f}[/green] "
            f"over {view['total_ratings']} rating(s)"
        )


@app.command()
def favorite(
    recipe_id: str = typer.Argument(..., help="Recipe to favorite or unfavorite"),
    actor: str = typer.Option(..., "--as", help=ACTOR_HELP),
) -> None:
    """Toggle a favorite."""
    with engine_session() as engine:
        state = engine.toggle_favorite(identity_for(actor), recipe_id)
    console.print("❤️  Favorited" if state else "💔 Unfavorited")


@app.command()
def follow(
    user_id: str = typer.Argument(..., help="User to follow or unfollow"),
    actor: str = typer.Option(..., "--as", help=ACTOR_HELP),
) -> None:
    """Toggle following a user."""
    with engine_session() as engine:
        state = engine.toggle_follow(identity_for(actor), user_id)
    console.print(f"✅ Now following {user_id}" if state else f"✅ Unfollowed {user_id}")


@app.command()
def comment(
    recipe_id: str = typer.Argument(..., help="Recipe to comment on"),
    content: str = typer.Argument(..., help="Comment text"),
    actor: str = typer.Option(..., "--as", help=ACTOR_HELP),
    reply_to: Optional[str] = typer.Option(None, "--reply-to", help="Parent comment ID"),
) -> None:
    """Post a comment on a recipe."""
    with engine_session() as engine:
        comment_id = engine.add_comment(identity_for(actor), recipe_id, content, reply_to)
    console.print(f"💬 Comment posted: [yellow]{comment_id}[/yellow]")


# =============================================================================
# Notification Commands
# =============================================================================


@app.command()
def notifications(actor: str = typer.Option(..., "--as", help=ACTOR_HELP)) -> None:
    """List the newest notifications of a user."""
    with engine_session() as engine:
        identity = identity_for(actor)
        views = engine.list_notifications(identity)
        unread = engine.unread_count(identity)

    table = Table(title=f"Notifications ({unread} unread)")
    table.add_column("ID", style="dim")
    table.add_column("Type", style="cyan")
    table.add_column("Message")
    table.add_column("Received", style="dim")
    table.add_column("Read", justify="center")
    for view in views:
        received = parse_datetime(view["created_at"])
        table.add_row(
            view["id"],
            view["type"],
            view["message"],
            received.strftime("%Y-%m-%d %H:%M UTC") if received else "",
            "✓" if view["is_read"] else "",
        )
    console.print(table)


@app.command()
def read(
    notification_id: str = typer.Argument(..., help="Notification to mark read"),
    actor: str = typer.Option(..., "--as", help=ACTOR_HELP),
) -> None:
    """Mark a notification read."""
    with engine_session() as engine:
        engine.mark_read(identity_for(actor), notification_id)
    console.print("✅ Marked read")


# =============================================================================
# AI & Observability Commands
# =============================================================================


@app.command()
def suggest(
    ingredients: str = typer.Argument(..., help="Comma-separated ingredients"),
    actor: str = typer.Option(..., "--as", help=ACTOR_HELP),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging"),
) -> None:
    """Ask the LLM for recipe ideas built around some ingredients.

    Requires GEMINI_API_KEY to be configured.
    """
    configure_logging(verbose)

    async def _suggest():
        with engine_session() as engine:
            try:
                return await engine.generate_recipe_suggestions(identity_for(actor), ingredients)
            finally:
                await engine.aclose()

    suggestions = run_async(_suggest())

    for idea in suggestions:
        console.print(f"\n🍳 [bold cyan]{idea.title}[/bold cyan] ({idea.cuisine or 'any cuisine'})")
        if idea.description:
            console.print(f"   {idea.description}")
        console.print(f"   ⏱️  {idea.prep_time} min • 🍽️  serves {idea.servings}")
        for ingredient in idea.ingredients:
            console.print(f"   • {ingredient}")


@app.command()
def metrics() -> None:
    """Print Prometheus metrics in text exposition format."""
    console.print(generate_metrics_output().decode("utf-8"), markup=False, highlight=False)


def main() -> None:
    """Main entry point for CLI. Flushes pending spans on exit."""
    try:
        app()
    finally:
        shutdown_telemetry()


if __name__ == "__main__":
    main()
