"""
api/limiter.py -- Shared slowapi rate limiter instance.

Imported by api/main.py (mounted as middleware via app.state.limiter) and by
api/routes/auth.py (per-route limit on POST /auth/login).

One shared instance means every route counts against the same in-memory
store. Separate instances per module would each keep their own counters.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

limiter = Limiter(key_func=get_remote_address, storage_uri="memory://")
