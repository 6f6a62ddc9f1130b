"""Operator CLI for Reelcut billing using Typer."""

import asyncio
import logging
from pathlib import Path
from typing import Annotated

import typer
from dotenv import load_dotenv
from rich.console import Console
from rich.table import Table

# Load .env from project directory only
_env_path = Path(__file__).parent.parent / ".env"
load_dotenv(_env_path, override=False)

from reelcut.utils import setup_logging  # noqa: E402

# CLI styles
STYLE_HEADER = "bold blue"
STYLE_SUCCESS = "bold green"
STYLE_WARNING = "bold yellow"
STYLE_ERROR = "bold red"

logger = logging.getLogger(__name__)

app = typer.Typer(
    name="reelcut",
    help="Reelcut billing - seed plans, manage admins and inspect revenue.",
    add_completion=False,
)
console = Console()

VerboseOption = Annotated[bool, typer.Option("--verbose", "-v", help="Verbose output")]


async def _with_session(func, *args):
    """Run ``func(db, *args)`` in a fresh session and dispose the engine afterwards."""
    from reelcut.db.session import async_session_factory, engine

    try:
        async with async_session_factory() as db:
            return await func(db, *args)
    finally:
        await engine.dispose()


@app.command("seed-plans")
def seed_plans_cmd(verbose: VerboseOption = False):
    """Insert or refresh the standard plan catalogue."""
    from reelcut.config import get_settings
    from reelcut.services.catalog import default_plans, seed_plans

    setup_logging(verbose)
    plans = default_plans(get_settings())
    count = asyncio.run(_with_session(seed_plans, plans))

    table = Table(title="Subscription plans")
    table.add_column("ID")
    table.add_column("Name")
    table.add_column("Price", justify="right")
    table.add_column("Videos/month", justify="right")
    table.add_column("Stripe price")
    for plan in plans:
        limit = "unlimited" if plan["video_limit"] is None else str(plan["video_limit"])
        table.add_row(
            plan["id"], plan["name"], f"{plan['price']}/{plan['interval']}",
            limit, plan["stripe_price_id"] or "-",
        )
    console.print(table)
    console.print(f"[{STYLE_SUCCESS}]Seeded {count} plans.[/{STYLE_SUCCESS}]")

    missing = [p["id"] for p in plans if p["stripe_price_id"] is None and p["price"] > 0]
    if missing:
        console.print(
            f"[{STYLE_WARNING}]No Stripe price configured for: {', '.join(missing)}[/{STYLE_WARNING}]"
        )


@app.command("promote-admin")
def promote_admin_cmd(
    email: Annotated[str, typer.Argument(help="Email of an existing account")],
    verbose: VerboseOption = False,
):
    """Give an existing account the admin role."""
    from reelcut.services.catalog import promote_admin

    setup_logging(verbose)
    if asyncio.run(_with_session(promote_admin, email)):
        console.print(f"[{STYLE_SUCCESS}]{email} is now an admin.[/{STYLE_SUCCESS}]")
    else:
        console.print(f"[{STYLE_ERROR}]No account found for {email}.[/{STYLE_ERROR}]")
        raise typer.Exit(code=1)


@app.command("purge-reset-tokens")
def purge_reset_tokens_cmd(verbose: VerboseOption = False):
    """Delete expired and redeemed password reset tokens."""
    from reelcut.services.password_service import purge_reset_tokens

    setup_logging(verbose)
    removed = asyncio.run(_with_session(purge_reset_tokens))
    console.print(f"[{STYLE_SUCCESS}]Removed {removed} tokens.[/{STYLE_SUCCESS}]")


@app.command()
def stats(verbose: VerboseOption = False):
    """Show subscription counts and recurring revenue."""
    from reelcut.services.admin_service import subscription_stats

    setup_logging(verbose)
    result = asyncio.run(_with_session(subscription_stats))

    console.print(f"[{STYLE_HEADER}]Active subscriptions: {result.active_subscriptions}[/{STYLE_HEADER}]")
    table = Table(title="By status")
    table.add_column("Status")
    table.add_column("Count", justify="right")
    for row in result.subscriptions_by_status:
        table.add_row(row.status, str(row.count))
    console.print(table)

    console.print(f"MRR: {result.mrr:.2f}  ARR: {result.arr:.2f}")
    console.print(f"Revenue: {result.total_revenue:.2f} total, {result.monthly_revenue:.2f} this month")


if __name__ == "__main__":
    app()
