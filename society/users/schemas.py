from typing import Optional

from pydantic import Field, field_validator

from society.core.schemas import ApiModel, PageQuery, check_url


class UpdateProfileRequest(ApiModel):
    display_name: Optional[str] = Field(default=None, min_length=1, max_length=50)
    bio: Optional[str] = Field(default=None, max_length=500)
    avatar_url: Optional[str] = None
    cover_url: Optional[str] = None
    is_private: Optional[bool] = None

    @field_validator("avatar_url", "cover_url")
    @classmethod
    def valid_url(cls, value: Optional[str]) -> Optional[str]:
        return check_url(value)


class UserSearchQuery(PageQuery):
    q: str = Field(default="", max_length=100)


class MentionQuery(ApiModel):
    q: str = Field(default="", max_length=50)


class SuggestionQuery(ApiModel):
    limit: int = Field(default=10, ge=1)
