"""In-process TTL cache shared by request handlers.

Learn: Not persisted and not shared between processes — a restart
starts cold. The application owns one TTLCache (app.state.cache) and a
CacheSweeper task that evicts expired entries in the background.
"""

from taskhub.cache.store import TTLCache, cache_key_for, get_cache
from taskhub.cache.sweeper import CacheSweeper

__all__ = ["CacheSweeper", "TTLCache", "cache_key_for", "get_cache"]
