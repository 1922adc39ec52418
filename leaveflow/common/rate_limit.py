"""Rate limiting for the workflow API using slowapi.

The limiter is attached to ``app.state`` in main.py; the per-client default
comes from ``RATE_LIMIT_PER_MINUTE``.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

from leaveflow.config import settings

limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[f"{settings.RATE_LIMIT_PER_MINUTE}/minute"],
)
