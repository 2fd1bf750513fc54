"""
api/limiter.py -- Shared slowapi rate limiter for the config endpoints.

Writes to the config path may trigger an outbound GitHub lookup with the
server's own credential, so they are throttled per client address. The limit
string comes from Settings (CONFIG_WRITE_RATE_LIMIT) and is read on every
check, which lets tests raise it without re-importing the routes.

One shared Limiter instance: api/main.py mounts it as middleware and
api/routes/v1/config.py decorates routes with it. Separate instances would
keep separate counters and never trigger.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

from core.config import get_settings

limiter = Limiter(key_func=get_remote_address, storage_uri="memory://")


def config_write_limit() -> str:
    """Current limit for POST /auth/github/config, e.g. "30/minute"."""
    return get_settings().config_write_rate_limit
