#!/usr/bin/env python3
from __future__ import annotations

import asyncio

import click
import sqlalchemy as sa
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from SKMS.app_logger import logging_config, setup_logging
from SKMS.core.config import settings

console = Console()


def show_table(title: str, row: dict) -> None:
    t = Table(title=title, show_lines=False)
    for col in row:
        t.add_column(col)
    t.add_row(*(str(v) for v in row.values()))
    console.print(t)


# ------------------------------
# Root CLI
# ------------------------------
@click.group(help="SKMS operator CLI")
@click.option("--log-level", default=None, help="Override LOG_LEVEL")
def cli(log_level: str | None) -> None:
    """Top-level command group."""
    setup_logging(log_level or settings.LOG_LEVEL)


@cli.command("init-db", help="Create all tables directly (development only; use alembic elsewhere)")
def init_db() -> None:
    from SKMS.db.session import build_engine, create_all

    async def _run():
        engine = build_engine()
        try:
            await create_all(engine)
        finally:
            await engine.dispose()

    asyncio.run(_run())
    console.print("[green]Tables created[/]")


@cli.command("issue-token", help="Mint a bearer token for an existing user")
@click.argument("email")
@click.option("--minutes", type=int, default=None, help="Lifetime (defaults to JWT_EXPIRES_MINUTES)")
def issue_token(email: str, minutes: int | None) -> None:
    from SKMS.auth.tokens import create_access_token
    from SKMS.db.session import build_engine, build_sessionmaker
    from SKMS.models import User

    async def _run():
        engine = build_engine()
        try:
            async with build_sessionmaker(engine)() as db:
                return await db.scalar(sa.select(User).where(User.email == email.lower()))
        finally:
            await engine.dispose()

    user = asyncio.run(_run())
    if user is None:
        raise click.ClickException(f"No user with email {email}")
    token = create_access_token(user.id, expires_minutes=minutes)
    console.print(Panel(token, title=f"{user.email} ({user.role.value})", expand=False))


@cli.command("dispatch-once", help="Run one dispatcher pass: sweep, reminders, outbox")
def dispatch_once() -> None:
    from SKMS.db.session import build_engine, build_sessionmaker
    from SKMS.services.dispatcher import run_once
    from SKMS.services.mailer import SMTPMailer

    async def _run():
        engine = build_engine()
        try:
            return await run_once(build_sessionmaker(engine), SMTPMailer())
        finally:
            await engine.dispose()

    show_table("Dispatcher pass", asyncio.run(_run()))


@cli.command("worker", help="Run the dispatcher loop until interrupted")
@click.option("--poll", type=float, default=None, help="Seconds between passes")
def worker(poll: float | None) -> None:
    from SKMS.db.session import build_engine, build_sessionmaker
    from SKMS.services.dispatcher import run_forever
    from SKMS.services.mailer import SMTPMailer

    async def _run():
        engine = build_engine()
        try:
            await run_forever(build_sessionmaker(engine), SMTPMailer(), poll_seconds=poll)
        finally:
            await engine.dispose()

    console.print("[cyan]Dispatcher running, Ctrl-C to stop[/]")
    try:
        asyncio.run(_run())
    except KeyboardInterrupt:
        console.print("[yellow]Stopped[/]")


@cli.command("serve", help="Run the API with uvicorn")
@click.option("--host", default="0.0.0.0")
@click.option("--port", type=int, default=5000)
@click.option("--reload", is_flag=True, default=False)
def serve(host: str, port: int, reload: bool) -> None:
    import uvicorn

    uvicorn.run(
        "SKMS.main:create_app",
        factory=True,
        host=host,
        port=port,
        reload=reload,
        log_config=logging_config(settings.LOG_LEVEL),
    )


def main() -> None:
    cli(prog_name="skms")


if __name__ == "__main__":
    main()
