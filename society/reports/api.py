import logging

from fastapi import APIRouter, Request
from sqlalchemy import select

from society.auth.models import User
from society.core.errors import BadRequestError, NotFoundError
from society.core.middleware import ApiContext, log_info, parse_body, with_auth
from society.core.response import conflict, success
from society.events.models import Event
from society.messaging.models import Message
from society.posts.models import Comment, Post
from society.reports.models import Report
from society.reports.schemas import CreateReportRequest, ReportTarget

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/reports", tags=["reports"])

# Model and owner column per reportable target
TARGETS = {
    ReportTarget.USER: (User, "id"),
    ReportTarget.POST: (Post, "user_id"),
    ReportTarget.COMMENT: (Comment, "user_id"),
    ReportTarget.MESSAGE: (Message, "sender_id"),
    ReportTarget.EVENT: (Event, "creator_id"),
}


@router.post("")
@with_auth
async def create_report(request: Request, ctx: ApiContext, params: dict):
    data = await parse_body(request, CreateReportRequest)

    model, owner_column = TARGETS[data.target_type]
    target = await ctx.db.get(model, data.target_id)
    if not target:
        raise NotFoundError(data.target_type.value.capitalize())
    if getattr(target, owner_column) == ctx.user_id:
        raise BadRequestError("You cannot report your own content")

    existing = await ctx.db.execute(
        select(Report.id).where(
            Report.reporter_id == ctx.user_id,
            Report.target_type == data.target_type.value,
            Report.target_id == data.target_id,
            Report.status == "pending",
        )
    )
    if existing.first():
        return conflict("You have already reported this content")

    report = Report(
        reporter_id=ctx.user_id,
        target_type=data.target_type.value,
        target_id=data.target_id,
        reason=data.reason.value,
        description=data.description,
    )
    ctx.db.add(report)
    await ctx.db.commit()

    log_info(ctx.request_id, "create_report", reportId=report.id, targetType=report.target_type)
    return success({"id": report.id, "message": "Report submitted successfully"}, status=201)
