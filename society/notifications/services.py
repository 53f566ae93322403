import logging
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from society.notifications.models import Notification

logger = logging.getLogger(__name__)


def preview(text: Optional[str], length: int = 100) -> Optional[str]:
    if text is None:
        return None
    return text[:length]


def create_notification(
    db: AsyncSession,
    user_id: str,
    type: str,
    actor_id: Optional[str] = None,
    target_type: Optional[str] = None,
    target_id: Optional[str] = None,
    content: Optional[str] = None,
) -> Optional[Notification]:
    """
    Queue a notification on the caller's transaction. Nobody is notified
    about their own actions; returns None in that case.
    """
    if actor_id is not None and actor_id == user_id:
        return None

    notification = Notification(
        user_id=user_id,
        type=type,
        actor_id=actor_id,
        target_type=target_type,
        target_id=target_id,
        content=content,
    )
    db.add(notification)
    logger.debug(f"Notification {type} queued for user {user_id}")
    return notification
