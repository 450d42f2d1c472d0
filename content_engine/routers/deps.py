"""
Request dependencies resolving the services built at startup.
"""

from fastapi import Request

from ..services import SchedulingService, VersioningService
from ..services.notifications import InAppNotificationHandler


def get_versioning(request: Request) -> VersioningService:
    return request.app.state.versioning


def get_scheduling(request: Request) -> SchedulingService:
    return request.app.state.scheduling


def get_in_app_notifications(request: Request) -> InAppNotificationHandler:
    return request.app.state.in_app_notifications
