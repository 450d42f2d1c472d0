"""
Sweep trigger authentication.
"""

from .cron_auth import bearer_scheme, verify_cron_secret

__all__ = [
    "bearer_scheme",
    "verify_cron_secret",
]
