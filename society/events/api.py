import logging

from fastapi import APIRouter, Request
from sqlalchemy import select

from society.core.middleware import ApiContext, clamp_limit, parse_body, parse_query, with_auth, with_optional_auth
from society.core.pagination import apply_cursor, paginate
from society.core.response import forbidden, success, unauthorized
from society.events.models import AttendeeStatus, Event, EventAttendee
from society.events.schemas import AttendRequest, CreateEventRequest, EventFilter, EventsQuery, UpdateEventRequest
from society.events.services import EventService
from society.utils.dates import utcnow

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/events", tags=["events"])


@router.get("")
@with_optional_auth
async def list_events(request: Request, ctx: ApiContext, params: dict):
    """
    ``upcoming`` runs soonest-first with a ``>`` cursor on the start date;
    ``past``, ``my`` and ``attending`` run latest-first with ``<``.
    """
    query = parse_query(request, EventsQuery)
    limit = clamp_limit(query.limit, 50)
    service = EventService(ctx.db)
    now = utcnow()

    if query.filter in (EventFilter.MY, EventFilter.ATTENDING) and not ctx.is_authenticated:
        return unauthorized()

    stmt = select(Event)
    ascending = False
    if query.filter == EventFilter.UPCOMING:
        stmt = stmt.where(Event.start_date >= now, service.visible_clause(ctx.user_id))
        ascending = True
    elif query.filter == EventFilter.PAST:
        stmt = stmt.where(Event.start_date < now, service.visible_clause(ctx.user_id))
    elif query.filter == EventFilter.MY:
        stmt = stmt.where(Event.creator_id == ctx.user_id)
    else:
        attending = select(EventAttendee.event_id).where(
            EventAttendee.user_id == ctx.user_id,
            EventAttendee.status.in_([AttendeeStatus.GOING.value, AttendeeStatus.INTERESTED.value]),
        )
        stmt = stmt.where(Event.id.in_(attending))

    stmt = apply_cursor(stmt, Event.start_date, query.cursor, limit, ascending=ascending)
    rows = (await ctx.db.execute(stmt)).scalars().all()
    events, meta = paginate(rows, limit, key=lambda e: e.start_date)
    return success(await service.serialize_events(events, ctx.user_id), meta=meta)


@router.post("")
@with_auth
async def create_event(request: Request, ctx: ApiContext, params: dict):
    data = await parse_body(request, CreateEventRequest)
    service = EventService(ctx.db)
    event = await service.create_event(data, ctx.user_id)
    items = await service.serialize_events([event], ctx.user_id)
    return success(items[0], status=201)


@router.get("/{event_id}")
@with_optional_auth
async def get_event(request: Request, ctx: ApiContext, params: dict):
    service = EventService(ctx.db)
    event = await service.get_visible_event(params["event_id"], ctx.user_id)
    item = (await service.serialize_events([event], ctx.user_id))[0]
    item["attendees"] = await service.recent_attendees(event.id)
    return success(item)


@router.put("/{event_id}")
@with_auth
async def update_event(request: Request, ctx: ApiContext, params: dict):
    service = EventService(ctx.db)
    event = await service.get_event_or_404(params["event_id"])
    if event.creator_id != ctx.user_id:
        return forbidden("Only the creator can edit this event")

    data = await parse_body(request, UpdateEventRequest)
    event = await service.update_event(event, data.model_dump(exclude_unset=True, exclude_none=True))
    items = await service.serialize_events([event], ctx.user_id)
    return success(items[0])


@router.delete("/{event_id}")
@with_auth
async def delete_event(request: Request, ctx: ApiContext, params: dict):
    service = EventService(ctx.db)
    event = await service.get_event_or_404(params["event_id"])
    if event.creator_id != ctx.user_id:
        return forbidden("Only the creator can delete this event")

    await service.delete_event(event)
    return success({"message": "Event deleted successfully"})


@router.post("/{event_id}/attend")
@with_auth
async def attend_event(request: Request, ctx: ApiContext, params: dict):
    service = EventService(ctx.db)
    event = await service.get_visible_event(params["event_id"], ctx.user_id)
    data = await parse_body(request, AttendRequest)

    status = await service.set_attendance(event, ctx.user_id, data.status)
    counts = await service.attendee_counts([event.id])
    return success({"status": status or AttendeeStatus.NOT_GOING.value, "attendeeCounts": counts[event.id]})
