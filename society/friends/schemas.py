from enum import Enum
from typing import Optional

from pydantic import Field

from society.core.schemas import ApiModel, CursorQuery, OffsetQuery


class FriendsQuery(CursorQuery):
    status: str = "accepted"


class FollowType(str, Enum):
    FOLLOWING = "following"
    FOLLOWERS = "followers"


class FollowsQuery(OffsetQuery):
    type: FollowType = FollowType.FOLLOWING
    user_id: Optional[str] = None


class BlocksQuery(OffsetQuery):
    limit: int = Field(default=50, ge=1)


class TargetUserRequest(ApiModel):
    user_id: Optional[str] = None


class TargetUserQuery(ApiModel):
    user_id: Optional[str] = None
