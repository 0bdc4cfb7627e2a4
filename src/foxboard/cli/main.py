"""Foxboard CLI: run the server, prepare the database, poke the API.

Usage:
    foxboard serve                      # Run the API with uvicorn
    foxboard init-db                    # Create tables and the bootstrap admin
    foxboard login admin                # Print a bearer token
    foxboard whoami                     # Show the user behind FOXBOARD_TOKEN
    foxboard projects                   # List visible projects
"""

from __future__ import annotations

import asyncio
import concurrent.futures
import os
import sys
from typing import Optional

import click
import httpx

from foxboard import __version__

# ---------------------------------------------------------------------------
# Config
# ---------------------------------------------------------------------------

DEFAULT_API_URL = "http://localhost:8080"


def _api_url() -> str:
    return os.environ.get("FOXBOARD_API_URL", DEFAULT_API_URL).rstrip("/")


def _client(token: Optional[str] = None) -> httpx.AsyncClient:
    """Build an async HTTP client pointed at the Foxboard backend."""
    headers = {"Authorization": f"Bearer {token}"} if token else {}
    return httpx.AsyncClient(base_url=_api_url(), headers=headers, timeout=30.0)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _run(coro):
    """Run an async coroutine from a synchronous Click handler.

    Inside an already running loop (CliRunner in async tests) the coroutine
    is offloaded to a thread with its own loop.
    """
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return asyncio.run(coro)
    else:
        with concurrent.futures.ThreadPoolExecutor(max_workers=1) as pool:
            return pool.submit(asyncio.run, coro).result()


def _token_from_ctx(token: Optional[str]) -> str:
    """Resolve the bearer token from the flag or FOXBOARD_TOKEN."""
    tok = token or os.environ.get("FOXBOARD_TOKEN")
    if not tok:
        click.secho(
            "Error: --token required (or set FOXBOARD_TOKEN env var)",
            fg="red",
            err=True,
        )
        sys.exit(1)
    return tok


def _check(r: httpx.Response) -> dict:
    """Exit with the API's error detail on a non-2xx response."""
    if r.is_error:
        try:
            detail = r.json().get("detail", r.text)
        except ValueError:
            detail = r.text
        click.secho(f"Error {r.status_code}: {detail}", fg="red", err=True)
        sys.exit(1)
    return r.json()


def _print_table(rows: list[dict], columns: list[tuple[str, str, int]]):
    """Print a simple ASCII table.

    columns: list of (header, dict_key, width)
    """
    header = "  ".join(h.ljust(w) for h, _, w in columns)
    click.secho(header, bold=True)
    click.echo("-" * len(header))
    for row in rows:
        line = "  ".join(str(row.get(k, "-"))[:w].ljust(w) for _, k, w in columns)
        click.echo(line)


# ---------------------------------------------------------------------------
# CLI group
# ---------------------------------------------------------------------------


@click.group()
@click.version_option(version=__version__, prog_name="foxboard")
def main():
    """Foxboard: kanban boards with per-project permissions."""


# ---------------------------------------------------------------------------
# Server side
# ---------------------------------------------------------------------------


@main.command()
@click.option("--host", default=None, help="Bind address (default: FOXB_HOST)")
@click.option("--port", default=None, type=int, help="Port (default: FOXB_PORT)")
@click.option("--reload", is_flag=True, help="Restart on code changes")
def serve(host: Optional[str], port: Optional[int], reload: bool):
    """Run the API server."""
    import uvicorn

    from foxboard.config import settings

    uvicorn.run(
        "foxboard.main:app",
        host=host or settings.host,
        port=port or settings.port,
        reload=reload,
        log_level=settings.log_level,
    )


@main.command("init-db")
def init_db():
    """Create missing tables and the bootstrap admin account."""
    from foxboard.main import bootstrap

    async def _init():
        from foxboard.db.engine import engine

        try:
            await bootstrap()
        finally:
            await engine.dispose()

    _run(_init())
    click.secho("Database ready.", fg="green")


# ---------------------------------------------------------------------------
# API client
# ---------------------------------------------------------------------------


@main.command()
@click.argument("username")
@click.password_option("--password", "-p", confirmation_prompt=False)
def login(username: str, password: str):
    """Log in and print a bearer token (export it as FOXBOARD_TOKEN)."""
    _run(_login_impl(username, password))


async def _login_impl(username: str, password: str):
    async with _client() as c:
        r = await c.post("/login", json={"username": username, "password": password})
        data = _check(r)
    click.echo(data["token"])


@main.command()
@click.option("--token", help="Bearer token (or set FOXBOARD_TOKEN)")
def whoami(token: Optional[str]):
    """Show the user the token belongs to."""
    _run(_whoami_impl(_token_from_ctx(token)))


async def _whoami_impl(token: str):
    async with _client(token) as c:
        user = _check(await c.get("/users"))
    role = click.style("admin", fg="yellow") if user["is_admin"] else "user"
    click.echo(f"{user['username']} ({role})  {user['id']}")


@main.command()
@click.option("--token", help="Bearer token (or set FOXBOARD_TOKEN)")
@click.option("--page", default=1, help="Page number")
@click.option("--count", "-n", default=50, help="Projects per page")
def projects(token: Optional[str], page: int, count: int):
    """List the projects you can see."""
    _run(_projects_impl(_token_from_ctx(token), page, count))


async def _projects_impl(token: str, page: int, count: int):
    async with _client(token) as c:
        data = _check(await c.get("/projects/list", params={"page": page, "count": count}))

    items = data["items"]
    if not items:
        click.echo("No projects.")
        return

    rows = [
        {
            "id": p["id"],
            "name": p["name"],
            "public": "yes" if p["public"] else "no",
            "owner": p["owner_id"],
        }
        for p in items
    ]
    _print_table(rows, [
        ("ID", "id", 36),
        ("NAME", "name", 30),
        ("PUBLIC", "public", 6),
        ("OWNER", "owner", 36),
    ])
    click.echo(f"\npage {data['page']} · {len(items)} of {data['total']}")


if __name__ == "__main__":
    main()
