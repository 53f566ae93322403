from fastapi import APIRouter, Request
from sqlalchemy import delete, func, select, update

from society.core.errors import BadRequestError
from society.core.middleware import ApiContext, clamp_limit, parse_body, parse_query, with_auth
from society.core.pagination import apply_cursor, paginate
from society.core.response import success
from society.notifications.models import Notification
from society.notifications.schemas import DeleteNotificationsQuery, MarkReadRequest, NotificationsQuery
from society.users.services import author_summary, load_users

router = APIRouter(prefix="/notifications", tags=["notifications"])


def serialize_notification(notification: Notification, actor) -> dict:
    return {
        "id": notification.id,
        "type": notification.type,
        "actor": author_summary(actor) if actor else None,
        "targetType": notification.target_type,
        "targetId": notification.target_id,
        "content": notification.content,
        "isRead": bool(notification.is_read),
        "createdAt": notification.created_at,
    }


@router.get("")
@with_auth
async def list_notifications(request: Request, ctx: ApiContext, params: dict):
    query = parse_query(request, NotificationsQuery)
    limit = clamp_limit(query.limit, 50)

    stmt = select(Notification).where(Notification.user_id == ctx.user_id)
    if query.unread:
        stmt = stmt.where(Notification.is_read.is_(False))
    stmt = apply_cursor(stmt, Notification.created_at, query.cursor, limit)
    rows = (await ctx.db.execute(stmt)).scalars().all()
    notifications, meta = paginate(rows, limit, key=lambda n: n.created_at)

    actors = await load_users(ctx.db, {n.actor_id for n in notifications if n.actor_id})
    meta["total"] = await ctx.db.scalar(
        select(func.count(Notification.id)).where(
            Notification.user_id == ctx.user_id, Notification.is_read.is_(False)
        )
    )
    return success([serialize_notification(n, actors.get(n.actor_id)) for n in notifications], meta=meta)


@router.put("")
@with_auth
async def mark_read(request: Request, ctx: ApiContext, params: dict):
    data = await parse_body(request, MarkReadRequest)
    stmt = update(Notification).where(Notification.user_id == ctx.user_id).values(is_read=True)
    if not data.all:
        if not data.ids:
            raise BadRequestError("Provide notification ids or all=true")
        stmt = stmt.where(Notification.id.in_(data.ids))

    result = await ctx.db.execute(stmt.execution_options(synchronize_session=False))
    await ctx.db.commit()
    return success({"message": "Notifications marked as read", "updated": result.rowcount})


@router.delete("")
@with_auth
async def delete_notifications(request: Request, ctx: ApiContext, params: dict):
    query = parse_query(request, DeleteNotificationsQuery)
    stmt = delete(Notification).where(Notification.user_id == ctx.user_id)
    if query.id:
        stmt = stmt.where(Notification.id == query.id)
    elif not query.all:
        raise BadRequestError("Provide a notification id or all=true")

    result = await ctx.db.execute(stmt.execution_options(synchronize_session=False))
    await ctx.db.commit()
    return success({"message": "Notifications deleted", "deleted": result.rowcount})
