"""
Operator commands for the faucet worker.
"""

import asyncio
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table
from sqlalchemy import func, select

from alembic import command
from alembic.config import Config

from faucet.chains.registry import AdapterRegistry
from faucet.core.config import FaucetConfig, settings
from faucet.core.database import (
    DatabaseManager,
    close_database,
    get_async_session,
    get_session_maker,
    init_database,
)
from faucet.core.logging import setup_logging
from faucet.models import Claim, FaucetBalance, WorkerHealth
from faucet.monitoring.balances import BalanceMonitor
from faucet.worker.main import run as run_worker

console = Console()
app = typer.Typer(help="Token faucet worker commands")

ALEMBIC_INI = Path(__file__).resolve().parent.parent / "alembic.ini"


def _alembic_config(config_path: Optional[Path] = None) -> Config:
    """Load alembic.ini: an explicit path, the source checkout, then the working directory."""
    if config_path is None:
        config_path = ALEMBIC_INI if ALEMBIC_INI.exists() else Path.cwd() / "alembic.ini"
    if not config_path.exists():
        console.print(f"❌ alembic.ini not found: {config_path}")
        raise typer.Exit(1)
    return Config(str(config_path))


@app.command()
def worker():
    """Run the claim processing loop."""
    run_worker()


@app.command("init-db")
def init_db():
    """Create all ledger tables directly (development)."""
    async def _init():
        setup_logging()
        await init_database()
        try:
            await DatabaseManager.create_tables()
        finally:
            await close_database()
        console.print("✅ Database initialized successfully!")

    asyncio.run(_init())


@app.command()
def upgrade(
    revision: str = "head",
    config: Optional[Path] = typer.Option(None, "--config", "-c", help="Path to alembic.ini"),
):
    """Apply migrations."""
    command.upgrade(_alembic_config(config), revision)
    console.print(f"✅ Database upgraded to: {revision}")


@app.command()
def status():
    """Show claim counts by chain and status."""
    async def _status():
        await init_database()
        try:
            async with get_async_session() as session:
                result = await session.execute(
                    select(Claim.blockchain, Claim.status, func.count(Claim.id))
                    .group_by(Claim.blockchain, Claim.status)
                    .order_by(Claim.blockchain, Claim.status)
                )
                rows = result.all()
        finally:
            await close_database()

        table = Table(title="Claims")
        table.add_column("Chain")
        table.add_column("Status")
        table.add_column("Count", justify="right")
        for chain, claim_status, count in rows:
            table.add_row(chain, claim_status.value, str(count))
        console.print(table)

    asyncio.run(_status())


@app.command()
def balances():
    """Check faucet balances now and store them."""
    async def _balances():
        setup_logging()
        await init_database()
        config = FaucetConfig.from_settings(settings)
        registry = AdapterRegistry.build(config)
        try:
            monitor = BalanceMonitor(get_session_maker(), registry, config.thresholds)
            await monitor.check_balances()

            async with get_async_session() as session:
                rows = (await session.execute(
                    select(FaucetBalance).order_by(FaucetBalance.blockchain)
                )).scalars().all()
        finally:
            await registry.close()
            await close_database()

        table = Table(title="Faucet balances")
        for column in ("Chain", "Wallet", "Native", "Token", "Low", "Checked"):
            table.add_column(column)
        for row in rows:
            table.add_row(
                row.blockchain,
                row.wallet_address or "-",
                f"{row.native_balance:.4f}",
                f"{row.token_balance:.2f}",
                "⚠️ LOW" if row.is_low else "✅ OK",
                row.last_checked.isoformat(),
            )
        console.print(table)

    asyncio.run(_balances())


@app.command()
def health():
    """Show worker heartbeats."""
    async def _health():
        await init_database()
        try:
            async with get_async_session() as session:
                rows = (await session.execute(select(WorkerHealth))).scalars().all()
        finally:
            await close_database()

        table = Table(title="Worker health")
        for column in ("Worker", "Status", "Last heartbeat", "Error"):
            table.add_column(column)
        for row in rows:
            table.add_row(
                row.worker_type,
                row.status.value,
                row.last_heartbeat.isoformat(),
                row.error_message or "",
            )
        console.print(table)

    asyncio.run(_health())


if __name__ == "__main__":
    app()
