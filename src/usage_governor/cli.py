"""Typer CLI for Usage-Governor."""

import asyncio

import typer
from rich.console import Console
from rich.table import Table

app = typer.Typer(name="usage-governor", help="Usage-Governor: AI feature admission and credits")
console = Console()


async def _with_db(fn):
    from usage_governor.deps import get_db

    db = get_db()
    await db.init()
    await db.create_all()
    try:
        async with db.get_session() as session:
            return await fn(session)
    finally:
        await db.close()


@app.command()
def serve(
    host: str = typer.Option("0.0.0.0", help="Bind host"),
    port: int = typer.Option(8080, help="Bind port"),
):
    """Start the Usage-Governor API server."""
    import uvicorn
    from usage_governor.app import create_app

    console.print(f"[bold green]Starting Usage-Governor on {host}:{port}[/bold green]")
    uvicorn.run(create_app(), host=host, port=port)


@app.command()
def status(
    user_id: str = typer.Argument(..., help="User whose usage to show"),
):
    """Show a user's monthly usage, credits and rate windows."""
    from usage_governor.deps import get_usage_service

    svc = get_usage_service()
    data = asyncio.run(_with_db(lambda session: svc.get_usage_status(session, user_id)))

    console.print(
        f"[bold]{data['user_id']}[/bold] ({data['access_type']}), "
        f"credits: {data['credits']['available']}"
    )
    table = Table(title="Monthly usage")
    table.add_column("Feature")
    table.add_column("Used", justify="right")
    table.add_column("Limit", justify="right")
    table.add_column("Credit cost", justify="right")
    for feature, usage in data["usage"].items():
        limit = "unlimited" if usage["unlimited"] else str(usage["limit"])
        table.add_row(feature, str(usage["used"]), limit, str(usage["credit_cost"]))
    console.print(table)

    for scope, window in data["rate_limits"].items():
        console.print(
            f"  {scope}: {window['used']}/{window['limit']} "
            f"(resets {window['reset_at']:%Y-%m-%d %H:%M} UTC)"
        )


@app.command()
def grant(
    user_id: str = typer.Argument(..., help="User to credit"),
    amount: int = typer.Argument(..., help="Credits to add"),
    description: str = typer.Option("", help="Ledger description"),
    purchased: bool = typer.Option(False, help="Count towards lifetime purchases"),
):
    """Add credits to a user's balance."""
    from usage_governor.common.exceptions import InvalidCreditAmountError
    from usage_governor.deps import get_clock, get_credit_ledger

    ledger = get_credit_ledger()
    try:
        transaction = asyncio.run(_with_db(
            lambda session: ledger.grant(
                session, user_id, amount, get_clock()(),
                description=description, purchased=purchased,
            )
        ))
    except InvalidCreditAmountError as e:
        console.print(f"[bold red]{e.code}[/bold red]: {e.message}")
        raise typer.Exit(1)

    console.print(
        f"[bold green]Granted {amount} credits[/bold green] to {user_id}, "
        f"balance {transaction.balance_after}"
    )


@app.command()
def health(
    url: str = typer.Option("http://localhost:8080", help="Server URL"),
):
    """Check Usage-Governor server health."""
    import httpx

    try:
        resp = httpx.get(f"{url}/health", timeout=5)
        data = resp.json()
        console.print(f"[bold green]{data['status']}[/bold green]: v{data['version']}")
    except Exception as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


if __name__ == "__main__":
    app()
