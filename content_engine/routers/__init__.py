"""HTTP routers."""

from . import cron, notifications, versions

__all__ = ["cron", "notifications", "versions"]
