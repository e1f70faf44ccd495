"""Taskhub — realtime fan-out and caching for the project workspace.

The infrastructure layer behind projects, tasks, approvals and chat:
room-based WebSocket delivery of messages, project updates and
notifications, plus the in-process TTL cache request handlers share.
"""

__version__ = "0.1.0"
