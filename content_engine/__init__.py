"""
Content Versioning & Scheduled Publishing Engine.

Tracks every revision of a content item, keeps exactly one revision live,
and promotes scheduled drafts to published status on a periodic sweep.
"""

__version__ = "1.0.0"
