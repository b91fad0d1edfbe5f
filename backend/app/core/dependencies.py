"""
Shared FastAPI dependencies.

Authentication is handled outside this service; acting user ids arrive in
request bodies. What remains here are the collaborators endpoints need.
"""

from backend.app.db.session import AsyncSessionLocal
from backend.app.services.notification_service import InAppNotificationDispatcher


def get_notifier() -> InAppNotificationDispatcher:
    """
    Notification collaborator for the sale workflow.

    Overridden in tests to inject failing or slow dispatchers.
    """
    return InAppNotificationDispatcher(AsyncSessionLocal)
