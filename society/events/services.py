import logging
from enum import Enum
from typing import Dict, List, Optional

from sqlalchemy import delete, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from society.auth.models import User
from society.core.errors import BadRequestError, ForbiddenError, NotFoundError
from society.core.response import ErrorCodes
from society.events.models import AttendeeStatus, Event, EventAttendee
from society.events.schemas import CreateEventRequest
from society.notifications.services import create_notification
from society.users.services import author_summary, load_users
from society.utils.dates import utcnow

logger = logging.getLogger(__name__)


class EventFullError(BadRequestError):
    code = ErrorCodes.LIMIT_EXCEEDED
    message = "This event is full"


class EventService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_event_or_404(self, event_id: str) -> Event:
        event = await self.db.get(Event, event_id)
        if not event:
            raise NotFoundError("Event")
        return event

    async def get_visible_event(self, event_id: str, viewer_id: Optional[str]) -> Event:
        event = await self.get_event_or_404(event_id)
        if not event.is_public and event.creator_id != viewer_id:
            if not viewer_id or await self.attendance(event.id, viewer_id) is None:
                raise ForbiddenError("This event is private")
        return event

    def visible_clause(self, viewer_id: Optional[str]):
        if viewer_id:
            return or_(Event.is_public.is_(True), Event.creator_id == viewer_id)
        return Event.is_public.is_(True)

    async def create_event(self, data: CreateEventRequest, creator_id: str) -> Event:
        if data.start_date <= utcnow():
            raise BadRequestError("Start date must be in the future")
        if data.end_date is not None and data.end_date < data.start_date:
            raise BadRequestError("End date must be after start date")

        try:
            event = Event(
                creator_id=creator_id,
                title=data.title,
                description=data.description,
                cover_image_url=data.cover_image_url,
                location=data.location,
                location_type=data.location_type.value,
                event_url=data.event_url,
                start_date=data.start_date,
                end_date=data.end_date,
                is_public=data.is_public,
                max_attendees=data.max_attendees,
            )
            self.db.add(event)
            await self.db.flush()
            self.db.add(EventAttendee(event_id=event.id, user_id=creator_id, status=AttendeeStatus.GOING.value))
            await self.db.commit()
            logger.info(f"Event created: id={event.id}, title={event.title}, by user {creator_id}")
            return event
        except Exception as e:
            await self.db.rollback()
            logger.error(f"Error creating event: {e}")
            raise

    async def update_event(self, event: Event, changes: dict) -> Event:
        start = changes.get("start_date", event.start_date)
        end = changes.get("end_date", event.end_date)
        if end is not None and end < start:
            raise BadRequestError("End date must be after start date")

        for field, value in changes.items():
            setattr(event, field, value.value if isinstance(value, Enum) else value)
        await self.db.commit()
        return event

    async def delete_event(self, event: Event) -> None:
        await self.db.execute(delete(EventAttendee).where(EventAttendee.event_id == event.id))
        await self.db.delete(event)
        await self.db.commit()
        logger.info(f"Event deleted: id={event.id}")

    async def attendance(self, event_id: str, user_id: str) -> Optional[EventAttendee]:
        result = await self.db.execute(
            select(EventAttendee).where(EventAttendee.event_id == event_id, EventAttendee.user_id == user_id)
        )
        return result.scalars().first()

    async def attendee_counts(self, event_ids: List[str]) -> Dict[str, dict]:
        counts = {event_id: {"going": 0, "interested": 0} for event_id in event_ids}
        if not event_ids:
            return counts
        result = await self.db.execute(
            select(EventAttendee.event_id, EventAttendee.status, func.count(EventAttendee.id))
            .where(EventAttendee.event_id.in_(event_ids))
            .group_by(EventAttendee.event_id, EventAttendee.status)
        )
        for event_id, status, count in result.all():
            if status in ("going", "interested"):
                counts[event_id][status] = count
        return counts

    async def set_attendance(self, event: Event, user_id: str, status: AttendeeStatus) -> Optional[str]:
        """Record the user's answer; ``not_going`` removes the attendance. Returns the stored status."""
        current = await self.attendance(event.id, user_id)

        if status == AttendeeStatus.NOT_GOING:
            if current is not None:
                await self.db.delete(current)
            await self.db.commit()
            return None

        if status == AttendeeStatus.GOING and event.max_attendees is not None:
            already_going = current is not None and current.status == AttendeeStatus.GOING.value
            if not already_going:
                going = (await self.attendee_counts([event.id]))[event.id]["going"]
                if going >= event.max_attendees:
                    raise EventFullError()

        if current is None:
            self.db.add(EventAttendee(event_id=event.id, user_id=user_id, status=status.value))
            create_notification(
                self.db, event.creator_id, "event",
                actor_id=user_id, target_type="event", target_id=event.id,
                content=f"{status.value}: {event.title}"[:100],
            )
        else:
            current.status = status.value
        await self.db.commit()
        return status.value

    async def user_statuses(self, event_ids: List[str], user_id: Optional[str]) -> Dict[str, str]:
        if not user_id or not event_ids:
            return {}
        result = await self.db.execute(
            select(EventAttendee.event_id, EventAttendee.status).where(
                EventAttendee.user_id == user_id, EventAttendee.event_id.in_(event_ids)
            )
        )
        return dict(result.all())

    async def recent_attendees(self, event_id: str, limit: int = 10) -> List[dict]:
        result = await self.db.execute(
            select(EventAttendee, User)
            .join(User, User.id == EventAttendee.user_id)
            .where(EventAttendee.event_id == event_id, EventAttendee.status == AttendeeStatus.GOING.value)
            .order_by(EventAttendee.created_at.asc())
            .limit(limit)
        )
        return [author_summary(row.User) for row in result.all()]

    async def serialize_events(self, events: List[Event], viewer_id: Optional[str]) -> List[dict]:
        ids = [event.id for event in events]
        creators = await load_users(self.db, {event.creator_id for event in events})
        counts = await self.attendee_counts(ids)
        statuses = await self.user_statuses(ids, viewer_id)
        return [
            {
                "id": event.id,
                "title": event.title,
                "description": event.description,
                "coverImageUrl": event.cover_image_url,
                "location": event.location,
                "locationType": event.location_type,
                "eventUrl": event.event_url,
                "startDate": event.start_date,
                "endDate": event.end_date,
                "isPublic": bool(event.is_public),
                "maxAttendees": event.max_attendees,
                "createdAt": event.created_at,
                "creator": author_summary(creators[event.creator_id]) if event.creator_id in creators else None,
                "attendeeCounts": counts[event.id],
                "userStatus": statuses.get(event.id),
                "isCreator": viewer_id is not None and event.creator_id == viewer_id,
            }
            for event in events
        ]
