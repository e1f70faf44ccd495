"""Event name constants and room naming.

Learn: Centralizing event names as constants prevents typos and makes
it easy to discover the whole wire protocol in one place. The names
match what the web client already listens for.
"""

# ─── Client → server ─────────────────────────────────────

JOIN_PROJECT = "join-project"
LEAVE_PROJECT = "leave-project"
JOIN_USER = "join-user"
LEAVE_USER = "leave-user"
TYPING = "typing"
PING = "ping"

# ─── Server → client ─────────────────────────────────────

NEW_MESSAGE = "new-message"
PROJECT_UPDATED = "project-updated"
NOTIFICATION = "notification"
USER_TYPING = "user-typing"

# Protocol replies
JOINED = "joined"
LEFT = "left"
PONG = "pong"
ERROR = "error"


# ─── Rooms ───────────────────────────────────────────────

def project_room(project_id) -> str:
    return f"project:{project_id}"


def user_room(user_id) -> str:
    return f"user:{user_id}"


def frame(event: str, data=None) -> dict:
    """Build the {"event", "data"} envelope every socket frame uses."""
    return {"event": event, "data": data}
