from enum import Enum
from typing import List, Optional

from pydantic import Field, field_validator

from society.core.schemas import ApiModel, CursorQuery, check_url


class Visibility(str, Enum):
    PUBLIC = "public"
    FRIENDS = "friends"
    PRIVATE = "private"


class CreatePostRequest(ApiModel):
    content: Optional[str] = Field(default=None, max_length=5000)
    media_urls: List[str] = Field(default_factory=list, max_length=10)
    visibility: Visibility = Visibility.PUBLIC

    @field_validator("media_urls")
    @classmethod
    def valid_urls(cls, value: List[str]) -> List[str]:
        return [check_url(url) for url in value]


class UpdatePostRequest(ApiModel):
    content: Optional[str] = Field(default=None, max_length=5000)
    visibility: Optional[Visibility] = None


class FeedQuery(CursorQuery):
    user_id: Optional[str] = None


class CreateCommentRequest(ApiModel):
    content: str = Field(min_length=1, max_length=2000)
    parent_id: Optional[str] = None


class ShareRequest(ApiModel):
    comment: Optional[str] = Field(default=None, max_length=500)


class SavePostRequest(ApiModel):
    post_id: Optional[str] = None


class PostIdQuery(ApiModel):
    post_id: Optional[str] = None
