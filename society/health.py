from fastapi import APIRouter, Request
from sqlalchemy import text

from society.core.middleware import ApiContext, with_optional_auth
from society.core.response import success

router = APIRouter(tags=["health"])


@router.get("/health")
@with_optional_auth
async def health(request: Request, ctx: ApiContext, params: dict):
    await ctx.db.execute(text("SELECT 1"))
    return success({"status": "ok", "database": "ok"})
