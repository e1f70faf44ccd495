"""Real-time infrastructure — room hub + WebSocket (+ optional Redis relay).

Learn: Events flow through two channels:
1. Server code → Notifier → hub (or Redis PUBLISH when relaying)
2. Hub → per-connection outbox → WebSocket → frontend

Clients pick what they hear by joining rooms: project:<id> for project
chat and updates, user:<id> for personal notifications.
"""
