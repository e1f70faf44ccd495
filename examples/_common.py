"""
Shared helpers for taskhub examples.

Handles the health check and authentication so each example can focus
on its specific flow.
"""

import os
import sys

import httpx

BASE = os.environ.get("TASKHUB_API_URL", "http://localhost:8000").rstrip("/") + "/api/v1"


def check_backend() -> dict:
    """Verify the backend is reachable and healthy."""
    try:
        resp = httpx.get(f"{BASE}/health", timeout=5)
    except httpx.ConnectError:
        print(f"ERROR: Backend not reachable at {BASE}")
        print("Start it with:  taskhub serve --reload")
        sys.exit(1)

    if resp.status_code != 200:
        print(f"ERROR: Health check returned {resp.status_code}")
        sys.exit(1)

    health = resp.json()
    print("Backend health:")
    print(f"  Status:      {health['status']}")
    print(f"  Connections: {health['connections']}")
    print(f"  Redis:       {health['redis']}")
    return health


def access_token(user_id: str = "demo-server") -> str:
    """Use TASKHUB_TOKEN if set, else mint one with the local JWT secret.

    Minting only works when the example shares TASKHUB_JWT_SECRET with
    the server (the default dev secret does).
    """
    token = os.environ.get("TASKHUB_TOKEN")
    if token:
        return token

    from taskhub.auth.jwt import create_access_token

    return create_access_token(user_id)


def create_client() -> httpx.Client:
    """Check backend, authenticate, and return an httpx Client with auth headers."""
    check_backend()
    token = access_token()
    print("  Auth:        ✓ (JWT)")
    return httpx.Client(
        base_url=BASE,
        timeout=10,
        headers={"Authorization": f"Bearer {token}"},
    )
