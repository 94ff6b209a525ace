#!/usr/bin/env python3
"""
Credentia Quickstart — the whole account lifecycle in one script.

Register → login → /me → verify → reset password → login with the new one.
Run with: python examples/quickstart.py

Requires: pip install httpx
Backend must be running: http://localhost:8000 with CREDENTIA_MAIL_BACKEND=http
pointed at a mail API you can read (a local mail catcher works), since the
console backend redacts the token links it logs.
"""

import re
import sys
import uuid

import httpx

BASE = "http://localhost:8000/api/v1"


def _token_from(prompt: str) -> str:
    """Ask for a link (or bare token) copied from an email."""
    raw = input(prompt).strip()
    match = re.search(r"([0-9a-f]{40})$", raw)
    if not match:
        print("   That doesn't look like a verification or reset link.")
        sys.exit(1)
    return match.group(1)


def main():
    run_id = uuid.uuid4().hex[:6]
    username = f"demo-{run_id}"
    email = f"demo-{run_id}@example.com"
    client = httpx.Client(base_url=BASE, timeout=10)

    # ── Health check ──────────────────────────────────────────────
    print("Checking backend health...")
    try:
        resp = client.get("/health")
    except httpx.ConnectError:
        print(f"Backend not reachable at {BASE}")
        print("Start it with:  uvicorn credentia.main:app --reload --port 8000")
        sys.exit(1)
    health = resp.json()
    print(f"  Status:   {health['status']}")
    print(f"  Database: {health['database']}")

    # ── Register ──────────────────────────────────────────────────
    print(f"\n1. Registering {username}...")
    resp = client.post("/users/register", json={
        "username": username,
        "email": email,
        "name": "Demo User",
        "password": "Secret123!",
    })
    assert resp.status_code == 201, f"Failed: {resp.text}"
    print(f"   {resp.json()['message']}")

    # ── Login (works before verification) ─────────────────────────
    print("\n2. Logging in...")
    resp = client.post("/users/authenticate", json={
        "username": username, "password": "Secret123!",
    })
    assert resp.status_code == 200, f"Failed: {resp.text}"
    token = resp.json()["token"]
    print(f"   Session token: {token[:24]}...")

    resp = client.get("/users/me", headers={"Authorization": f"Bearer {token}"})
    me = resp.json()
    print(f"   /me → {me['username']} <{me['email']}> verified={me['verified']}")

    # ── Verify ────────────────────────────────────────────────────
    print("\n3. Verifying the account...")
    code = _token_from("   Paste the verify-now link from the verification email: ")
    resp = client.get(f"/users/verify-now/{code}")
    assert resp.status_code == 200, f"Failed ({resp.status_code})"
    print("   Account verified.")

    # ── Password reset ────────────────────────────────────────────
    print("\n4. Requesting a password reset...")
    resp = client.put("/users/reset-password", json={"email": email})
    assert resp.status_code == 200, f"Failed: {resp.text}"
    print(f"   {resp.json()['message']}")

    reset_token = _token_from("   Paste the reset-password-now link from the reset email: ")
    resp = client.post("/users/reset-password-now", json={
        "reset_token": reset_token, "password": "NewPass1!",
    })
    assert resp.status_code == 200, f"Failed: {resp.text}"
    print("   Password changed.")

    # ── Old password is gone ──────────────────────────────────────
    print("\n5. Logging in again...")
    old = client.post("/users/authenticate", json={"username": username, "password": "Secret123!"})
    new = client.post("/users/authenticate", json={"username": username, "password": "NewPass1!"})
    print(f"   Old password → {old.status_code}")
    print(f"   New password → {new.status_code}")

    print("\nDone.")


if __name__ == "__main__":
    main()
