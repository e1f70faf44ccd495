#!/usr/bin/env python3
"""
Project broadcast — what the web app does after a chat post or an edit.

Sends a chat message and a project update to project:<id>, then a
personal notification to user:<id>. Open the web app (or any socket
client joined to those rooms) to watch them arrive.

Run with: python examples/project_broadcast.py [PROJECT_ID] [USER_ID]

Requires: pip install -e .
Backend must be running: taskhub serve
"""

import sys

from _common import create_client


def main():
    project_id = sys.argv[1] if len(sys.argv) > 1 else "1"
    user_id = sys.argv[2] if len(sys.argv) > 2 else "1"
    client = create_client()

    # ── Who is listening? ─────────────────────────────────────────
    presence = client.get(f"/projects/{project_id}/presence").json()
    print(f"\nproject:{project_id} has {presence['connections']} connection(s)")

    # ── Chat message ──────────────────────────────────────────────
    print("\n1. Posting chat message...")
    resp = client.post(f"/projects/{project_id}/messages", json={
        "content": "Rebar delivery confirmed for 8:00",
        "author_name": "Site office",
    })
    assert resp.status_code == 202, f"Failed: {resp.text}"
    print(f"   new-message delivered to {resp.json()['delivered']} socket(s)")

    # ── Project update ────────────────────────────────────────────
    print("\n2. Broadcasting project update...")
    resp = client.post(f"/projects/{project_id}/updates", json={
        "status": "in_progress",
        "progress": 35,
    })
    assert resp.status_code == 202, f"Failed: {resp.text}"
    print(f"   project-updated delivered to {resp.json()['delivered']} socket(s)")

    # ── Personal notification ─────────────────────────────────────
    print("\n3. Notifying user...")
    resp = client.post(f"/users/{user_id}/notifications", json={
        "title": "Approval requested",
        "message": "Estimate v2 is waiting for your sign-off",
        "type": "warning",
        "project_id": project_id,
        "action_type": "approval",
    })
    assert resp.status_code == 202, f"Failed: {resp.text}"
    print(f"   notification delivered to {resp.json()['delivered']} socket(s)")

    print("\nRoom stats:", client.get("/realtime/rooms").json())


if __name__ == "__main__":
    main()
