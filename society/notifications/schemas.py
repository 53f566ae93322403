from typing import List, Optional

from society.core.schemas import ApiModel, CursorQuery


class NotificationsQuery(CursorQuery):
    unread: bool = False


class MarkReadRequest(ApiModel):
    ids: Optional[List[str]] = None
    all: bool = False


class DeleteNotificationsQuery(ApiModel):
    id: Optional[str] = None
    all: bool = False
