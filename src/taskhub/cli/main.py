"""Taskhub CLI — run the server and poke it from a terminal.

Usage:
    taskhub serve                                   # Run the API + socket server
    taskhub token USER_ID                           # Mint a dev access token
    taskhub health                                  # Server, cache, hub, Redis status
    taskhub notify USER_ID "Title" "Body"           # Push a notification
    taskhub message PROJECT_ID "hello team"         # Post a chat message event
    taskhub update-project PROJECT_ID '{"status": "active"}'
    taskhub clear-cache [--pattern /projects/42]    # Drop cached entries
"""

from __future__ import annotations

import asyncio
import concurrent.futures
import json
import os
import sys
from typing import Optional

import click
import httpx

# ---------------------------------------------------------------------------
# Config
# ---------------------------------------------------------------------------

DEFAULT_API_URL = "http://localhost:8000"


def _api_url() -> str:
    return os.environ.get("TASKHUB_API_URL", DEFAULT_API_URL).rstrip("/")


def _client() -> httpx.AsyncClient:
    """Build an async HTTP client pointed at the taskhub backend."""
    headers = {}
    token = os.environ.get("TASKHUB_TOKEN")
    if token:
        headers["Authorization"] = f"Bearer {token}"
    return httpx.AsyncClient(base_url=_api_url(), headers=headers, timeout=30.0)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _run(coro):
    """Run an async coroutine from a synchronous Click handler.

    Handles nested event loops (e.g. when invoked via Click CliRunner
    inside an existing async context like tests) by offloading to a thread.
    """
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return asyncio.run(coro)
    else:
        with concurrent.futures.ThreadPoolExecutor(max_workers=1) as pool:
            return pool.submit(asyncio.run, coro).result()


def _pretty_json(data: dict | list) -> str:
    return json.dumps(data, indent=2, default=str)


def _check(r: httpx.Response) -> dict:
    """Exit with the server's error detail on non-2xx responses."""
    if r.is_error:
        try:
            detail = r.json().get("detail", r.text)
        except ValueError:
            detail = r.text
        click.secho(f"Error {r.status_code}: {detail}", fg="red", err=True)
        sys.exit(1)
    return r.json()


def _echo_emit(result: dict) -> None:
    color = "green" if result["delivered"] else "yellow"
    click.secho(
        f"{result['event']} → {result['room']} (delivered: {result['delivered']})",
        fg=color,
    )


# ---------------------------------------------------------------------------
# CLI group
# ---------------------------------------------------------------------------


@click.group()
@click.version_option(version="0.1.0", prog_name="taskhub")
def main():
    """Taskhub — realtime rooms, notifications and cache for the workspace."""


@main.command()
@click.option("--host", default=None, help="Bind address (default: TASKHUB_HOST)")
@click.option("--port", default=None, type=int, help="Port (default: TASKHUB_PORT)")
@click.option("--reload", is_flag=True, help="Auto-reload on code changes")
def serve(host: Optional[str], port: Optional[int], reload: bool):
    """Run the API and WebSocket server with uvicorn."""
    import uvicorn

    from taskhub.config import settings

    uvicorn.run(
        "taskhub.main:app",
        host=host or settings.host,
        port=port or settings.port,
        reload=reload,
    )


@main.command()
@click.argument("user_id")
@click.option("--company-id", "-c", help="Company (tenant) claim")
@click.option("--minutes", type=int, default=None, help="Lifetime in minutes")
def token(user_id: str, company_id: Optional[str], minutes: Optional[int]):
    """Mint an access token signed with TASKHUB_JWT_SECRET."""
    from taskhub.auth.jwt import create_access_token

    click.echo(create_access_token(user_id, company_id=company_id, expires_minutes=minutes))


@main.command()
def health():
    """Show server health."""
    _run(_health_impl())


async def _health_impl():
    async with _client() as c:
        r = await c.get("/api/v1/health")
        data = _check(r)

    color = "green" if data["status"] == "healthy" else "yellow"
    click.secho(f"Status: {data['status']}", fg=color, bold=True)
    click.echo(f"  Version:     {data['version']}")
    click.echo(f"  Connections: {data['connections']}")
    click.echo(f"  Cache:       {data['cache_entries']} entries")
    click.echo(f"  Redis:       {data['redis']}")


@main.command()
@click.argument("user_id")
@click.argument("title")
@click.argument("message")
@click.option(
    "--type", "kind",
    type=click.Choice(["info", "success", "warning", "error"]),
    default="info",
)
@click.option("--project-id", "-p", help="Related project")
def notify(user_id: str, title: str, message: str, kind: str, project_id: Optional[str]):
    """Push a notification to USER_ID's open sessions."""
    _run(_notify_impl(user_id, title, message, kind, project_id))


async def _notify_impl(user_id, title, message, kind, project_id):
    async with _client() as c:
        r = await c.post(f"/api/v1/users/{user_id}/notifications", json={
            "title": title,
            "message": message,
            "type": kind,
            "project_id": project_id,
        })
        _echo_emit(_check(r))


@main.command()
@click.argument("project_id")
@click.argument("content")
@click.option("--author", help="Author display name")
def message(project_id: str, content: str, author: Optional[str]):
    """Post a chat message event to PROJECT_ID's room."""
    _run(_message_impl(project_id, content, author))


async def _message_impl(project_id, content, author):
    async with _client() as c:
        r = await c.post(f"/api/v1/projects/{project_id}/messages", json={
            "content": content,
            "author_name": author,
        })
        _echo_emit(_check(r))


@main.command("update-project")
@click.argument("project_id")
@click.argument("data")
def update_project(project_id: str, data: str):
    """Broadcast a project-updated event. DATA is a JSON object."""
    try:
        body = json.loads(data)
    except json.JSONDecodeError as e:
        raise click.BadParameter(f"not valid JSON: {e}", param_hint="DATA")
    if not isinstance(body, dict):
        raise click.BadParameter("must be a JSON object", param_hint="DATA")
    _run(_update_project_impl(project_id, body))


async def _update_project_impl(project_id, body):
    async with _client() as c:
        r = await c.post(f"/api/v1/projects/{project_id}/updates", json=body)
        _echo_emit(_check(r))


@main.command("clear-cache")
@click.option("--pattern", help="Only drop keys containing this substring")
def clear_cache(pattern: Optional[str]):
    """Drop cached entries on the server."""
    _run(_clear_cache_impl(pattern))


async def _clear_cache_impl(pattern):
    params = {"pattern": pattern} if pattern else {}
    async with _client() as c:
        r = await c.delete("/api/v1/cache", params=params)
        data = _check(r)
    click.echo(_pretty_json(data))


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    main()
