"""
api/limiter.py -- The one slowapi Limiter for the whole app.

api/main.py registers it on app.state and mounts SlowAPIMiddleware; route
modules decorate handlers with @limiter.limit(...). Counters live in the
instance's storage, so a second Limiter would keep separate counts and the
per-route limits would not add up. Clients are keyed by remote address.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

limiter = Limiter(key_func=get_remote_address, storage_uri="memory://")
