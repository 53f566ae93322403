from enum import Enum

from pydantic import Field

from society.core.schemas import ApiModel, OffsetQuery


class SearchType(str, Enum):
    ALL = "all"
    USERS = "users"
    POSTS = "posts"
    HASHTAGS = "hashtags"


class SearchQuery(OffsetQuery):
    q: str = Field(default="", max_length=100)
    type: SearchType = SearchType.ALL


class TrendingType(str, Enum):
    ALL = "all"
    POSTS = "posts"
    HASHTAGS = "hashtags"


class Period(str, Enum):
    DAY = "day"
    WEEK = "week"
    MONTH = "month"


class TrendingQuery(ApiModel):
    type: TrendingType = TrendingType.ALL
    period: Period = Period.DAY
    limit: int = Field(default=20, ge=1)
