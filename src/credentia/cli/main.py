"""Credentia CLI — drive the account lifecycle against a running server.

Usage:
    credentia register alice alice@example.com      # Create an account (prompts for password)
    credentia verify 3f9c...                         # Spend the code from the verification email
    credentia login alice                            # Get a session token
    credentia whoami --token eyJ...                  # Show the account behind a token
    credentia forgot-password alice@example.com      # Mail a reset link
    credentia reset-password 8e1a...                 # Set a new password with the reset token
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
    return os.environ.get("CREDENTIA_API_URL", DEFAULT_API_URL).rstrip("/")


def _client() -> httpx.AsyncClient:
    """Build an async HTTP client pointed at the Credentia backend."""
    return httpx.AsyncClient(base_url=_api_url(), timeout=30.0)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _run(coro):
    """Run an async coroutine from synchronous Click handler.

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


def _message(resp: httpx.Response) -> str:
    """Pull the human-readable message out of an API response."""
    try:
        data = resp.json()
    except ValueError:
        return resp.text or resp.reason_phrase
    if isinstance(data, dict):
        if "message" in data:
            return str(data["message"])
        if "detail" in data:
            detail = data["detail"]
            return detail if isinstance(detail, str) else _pretty_json(detail)
    return _pretty_json(data)


def _fail(resp: httpx.Response) -> None:
    click.secho(f"Error ({resp.status_code}): {_message(resp)}", fg="red", err=True)
    sys.exit(1)


def _ok(resp: httpx.Response) -> None:
    click.secho(_message(resp), fg="green")


# ---------------------------------------------------------------------------
# CLI group
# ---------------------------------------------------------------------------


@click.group()
@click.version_option(version="0.1.0", prog_name="credentia")
def main():
    """Credentia — register, verify, sign in and reset passwords."""


@main.command()
@click.argument("username")
@click.argument("email")
@click.option("--name", help="Display name")
@click.password_option(help="Account password (prompted if omitted)")
def register(username: str, email: str, name: Optional[str], password: str):
    """Create a new account. A verification link is emailed to EMAIL."""
    _run(_register_impl(username, email, name, password))


async def _register_impl(username, email, name, password):
    body = {"username": username, "email": email, "password": password}
    if name:
        body["name"] = name
    async with _client() as c:
        r = await c.post("/api/v1/users/register", json=body)
    if r.status_code != 201:
        _fail(r)
    _ok(r)


@main.command()
@click.argument("code")
def verify(code: str):
    """Verify an account with the CODE from the verification email."""
    _run(_verify_impl(code))


async def _verify_impl(code: str):
    async with _client() as c:
        r = await c.get(f"/api/v1/users/verify-now/{code}")
    if r.status_code != 200:
        click.secho(f"Error ({r.status_code}): verification failed", fg="red", err=True)
        sys.exit(1)
    click.secho("Account verified.", fg="green")


@main.command()
@click.argument("username")
@click.option("--password", prompt=True, hide_input=True)
@click.option("--json", "as_json", is_flag=True, help="Print the full response as JSON")
def login(username: str, password: str, as_json: bool):
    """Sign in and print a session token."""
    _run(_login_impl(username, password, as_json))


async def _login_impl(username: str, password: str, as_json: bool):
    async with _client() as c:
        r = await c.post(
            "/api/v1/users/authenticate",
            json={"username": username, "password": password},
        )
    if r.status_code != 200:
        _fail(r)
    data = r.json()
    if as_json:
        click.echo(_pretty_json(data))
        return
    user = data["user"]
    state = "verified" if user["verified"] else "pending verification"
    click.secho(f"Signed in as {user['username']} ({state})", fg="green", err=True)
    click.echo(data["token"])


@main.command()
@click.option("--token", envvar="CREDENTIA_TOKEN", required=True,
              help="Session token (or set CREDENTIA_TOKEN)")
def whoami(token: str):
    """Show the account a session token belongs to."""
    _run(_whoami_impl(token))


async def _whoami_impl(token: str):
    async with _client() as c:
        r = await c.get(
            "/api/v1/users/me", headers={"Authorization": f"Bearer {token}"}
        )
    if r.status_code != 200:
        _fail(r)
    click.echo(_pretty_json(r.json()))


@main.command("forgot-password")
@click.argument("email")
def forgot_password(email: str):
    """Email a password reset link to EMAIL."""
    _run(_forgot_impl(email))


async def _forgot_impl(email: str):
    async with _client() as c:
        r = await c.put("/api/v1/users/reset-password", json={"email": email})
    if r.status_code != 200:
        _fail(r)
    _ok(r)


@main.command("reset-password")
@click.argument("reset_token")
@click.password_option(help="New password (prompted if omitted)")
def reset_password(reset_token: str, password: str):
    """Set a new password using the RESET_TOKEN from the reset email."""
    _run(_reset_impl(reset_token, password))


async def _reset_impl(reset_token: str, password: str):
    async with _client() as c:
        r = await c.post(
            "/api/v1/users/reset-password-now",
            json={"reset_token": reset_token, "password": password},
        )
    if r.status_code != 200:
        _fail(r)
    _ok(r)


if __name__ == "__main__":
    main()
