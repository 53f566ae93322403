from typing import List, Optional

from pydantic import Field, field_validator

from society.core.schemas import ApiModel, CursorQuery, check_url


class CreateConversationRequest(ApiModel):
    participant_ids: List[str] = Field(min_length=1)
    name: Optional[str] = Field(default=None, max_length=100)
    is_group: bool = False


class SendMessageRequest(ApiModel):
    content: Optional[str] = Field(default=None, max_length=5000)
    media_url: Optional[str] = None

    @field_validator("media_url")
    @classmethod
    def valid_url(cls, value: Optional[str]) -> Optional[str]:
        return check_url(value)


class MessagesQuery(CursorQuery):
    limit: int = Field(default=50, ge=1)
