from typing import Dict, List, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from society.auth.models import User
from society.core.errors import ForbiddenError
from society.messaging.models import Conversation, ConversationParticipant, Message
from society.users.services import author_summary, load_users


async def participant_ids(db: AsyncSession, conversation_id: str) -> List[str]:
    result = await db.execute(
        select(ConversationParticipant.user_id).where(ConversationParticipant.conversation_id == conversation_id)
    )
    return list(result.scalars().all())


async def require_participant(db: AsyncSession, conversation_id: str, user_id: str) -> ConversationParticipant:
    participant = await db.get(ConversationParticipant, (conversation_id, user_id))
    if not participant:
        raise ForbiddenError("You are not a participant in this conversation")
    return participant


async def find_direct_conversation(db: AsyncSession, a: str, b: str) -> Optional[str]:
    mine = select(ConversationParticipant.conversation_id).where(ConversationParticipant.user_id == a)
    theirs = select(ConversationParticipant.conversation_id).where(ConversationParticipant.user_id == b)
    result = await db.execute(
        select(Conversation.id).where(
            Conversation.type == "direct",
            Conversation.id.in_(mine),
            Conversation.id.in_(theirs),
        )
    )
    return result.scalars().first()


def serialize_message(message: Message, sender: Optional[User], viewer_id: str) -> dict:
    return {
        "id": message.id,
        "conversationId": message.conversation_id,
        "content": message.content,
        "mediaUrl": message.media_url,
        "isRead": bool(message.is_read),
        "createdAt": message.created_at,
        "sender": author_summary(sender) if sender else None,
        "isOwn": message.sender_id == viewer_id,
    }


async def summarize_conversations(db: AsyncSession, conversations: List[Conversation], viewer_id: str) -> List[dict]:
    """Other participants, last message and unread count for each conversation."""
    if not conversations:
        return []
    ids = [c.id for c in conversations]

    result = await db.execute(
        select(ConversationParticipant).where(ConversationParticipant.conversation_id.in_(ids))
    )
    participants: Dict[str, List[ConversationParticipant]] = {}
    for participant in result.scalars().all():
        participants.setdefault(participant.conversation_id, []).append(participant)
    users = await load_users(db, {p.user_id for group in participants.values() for p in group})

    items = []
    for conversation in conversations:
        members = participants.get(conversation.id, [])
        me = next((p for p in members if p.user_id == viewer_id), None)

        last = (await db.execute(
            select(Message)
            .where(Message.conversation_id == conversation.id)
            .order_by(Message.created_at.desc())
            .limit(1)
        )).scalars().first()

        unread_stmt = select(func.count(Message.id)).where(
            Message.conversation_id == conversation.id, Message.sender_id != viewer_id
        )
        if me is not None and me.last_read_at is not None:
            unread_stmt = unread_stmt.where(Message.created_at > me.last_read_at)

        items.append({
            "id": conversation.id,
            "type": conversation.type,
            "name": conversation.name,
            "isGroup": conversation.type == "group",
            "participants": [
                author_summary(users[p.user_id]) for p in members
                if p.user_id != viewer_id and p.user_id in users
            ],
            "lastMessage": {
                "id": last.id,
                "content": last.content,
                "mediaUrl": last.media_url,
                "senderId": last.sender_id,
                "createdAt": last.created_at,
            } if last else None,
            "unreadCount": await db.scalar(unread_stmt) or 0,
            "createdAt": conversation.created_at,
        })
    return items
