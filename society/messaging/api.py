import logging

from fastapi import APIRouter, Request
from sqlalchemy import func, select

from society.auth.models import User
from society.core.errors import BadRequestError, NotFoundError
from society.core.middleware import ApiContext, clamp_limit, parse_body, parse_query, with_auth
from society.core.pagination import apply_cursor, paginate
from society.core.response import success, validation_error
from society.core.schemas import CursorQuery
from society.messaging import services
from society.messaging.models import Conversation, ConversationParticipant, Message
from society.messaging.schemas import CreateConversationRequest, MessagesQuery, SendMessageRequest
from society.notifications.services import create_notification, preview
from society.users.services import load_users
from society.utils.dates import utcnow

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/conversations", tags=["messages"])


@router.get("")
@with_auth
async def list_conversations(request: Request, ctx: ApiContext, params: dict):
    query = parse_query(request, CursorQuery)
    limit = clamp_limit(query.limit, 100)

    mine = select(ConversationParticipant.conversation_id).where(ConversationParticipant.user_id == ctx.user_id)
    stmt = apply_cursor(select(Conversation).where(Conversation.id.in_(mine)), Conversation.created_at, query.cursor, limit)
    rows = (await ctx.db.execute(stmt)).scalars().all()
    conversations, meta = paginate(rows, limit, key=lambda c: c.created_at)

    return success(await services.summarize_conversations(ctx.db, conversations, ctx.user_id), meta=meta)


@router.post("")
@with_auth
async def create_conversation(request: Request, ctx: ApiContext, params: dict):
    """Start a conversation; a direct conversation with the same person is reused."""
    data = await parse_body(request, CreateConversationRequest)

    others = []
    for user_id in data.participant_ids:
        if user_id != ctx.user_id and user_id not in others:
            others.append(user_id)
    if not others:
        raise BadRequestError("At least one other participant is required")

    found = await ctx.db.scalar(select(func.count(User.id)).where(User.id.in_(others)))
    if found != len(others):
        raise NotFoundError("One or more participants")

    is_group = data.is_group or len(others) > 1
    if not is_group:
        existing = await services.find_direct_conversation(ctx.db, ctx.user_id, others[0])
        if existing:
            return success({"conversationId": existing, "existing": True})

    conversation = Conversation(type="group" if is_group else "direct", name=data.name if is_group else None)
    ctx.db.add(conversation)
    await ctx.db.flush()
    now = utcnow()
    for user_id in [ctx.user_id] + others:
        ctx.db.add(ConversationParticipant(
            conversation_id=conversation.id,
            user_id=user_id,
            last_read_at=now if user_id == ctx.user_id else None,
        ))
    await ctx.db.commit()

    logger.info(f"Conversation {conversation.id} created by {ctx.user_id} with {len(others)} participants")
    return success({"conversationId": conversation.id, "existing": False}, status=201)


@router.get("/{conversation_id}/messages")
@with_auth
async def list_messages(request: Request, ctx: ApiContext, params: dict):
    """Newest page first; items come back oldest-to-newest, cursor points at the oldest."""
    conversation_id = params["conversation_id"]
    participant = await services.require_participant(ctx.db, conversation_id, ctx.user_id)
    query = parse_query(request, MessagesQuery)
    limit = clamp_limit(query.limit, 100)

    stmt = apply_cursor(
        select(Message).where(Message.conversation_id == conversation_id),
        Message.created_at, query.cursor, limit,
    )
    rows = (await ctx.db.execute(stmt)).scalars().all()
    messages, meta = paginate(rows, limit, key=lambda m: m.created_at)

    if not query.cursor:
        participant.last_read_at = utcnow()
        await ctx.db.commit()

    senders = await load_users(ctx.db, {m.sender_id for m in messages})
    items = [services.serialize_message(m, senders.get(m.sender_id), ctx.user_id) for m in reversed(messages)]
    return success(items, meta=meta)


@router.post("/{conversation_id}/messages")
@with_auth
async def send_message(request: Request, ctx: ApiContext, params: dict):
    conversation_id = params["conversation_id"]
    participant = await services.require_participant(ctx.db, conversation_id, ctx.user_id)
    data = await parse_body(request, SendMessageRequest)
    if not (data.content and data.content.strip()) and not data.media_url:
        return validation_error(
            "Message must have content or media",
            [{"field": "content", "message": "Message must have content or media", "type": "value_error"}],
        )

    message = Message(
        conversation_id=conversation_id,
        sender_id=ctx.user_id,
        content=data.content,
        media_url=data.media_url,
    )
    ctx.db.add(message)
    await ctx.db.flush()

    participant.last_read_at = message.created_at
    conversation = await ctx.db.get(Conversation, conversation_id)
    conversation.updated_at = message.created_at
    for user_id in await services.participant_ids(ctx.db, conversation_id):
        create_notification(
            ctx.db, user_id, "message",
            actor_id=ctx.user_id, target_type="conversation", target_id=conversation_id,
            content=preview(data.content),
        )
    await ctx.db.commit()

    sender = await ctx.db.get(User, ctx.user_id)
    return success(services.serialize_message(message, sender, ctx.user_id), status=201)
