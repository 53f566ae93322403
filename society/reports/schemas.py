from enum import Enum
from typing import Optional

from pydantic import Field

from society.core.schemas import ApiModel


class ReportTarget(str, Enum):
    USER = "user"
    POST = "post"
    COMMENT = "comment"
    MESSAGE = "message"
    EVENT = "event"


class ReportReason(str, Enum):
    SPAM = "spam"
    HARASSMENT = "harassment"
    HATE_SPEECH = "hate_speech"
    VIOLENCE = "violence"
    NUDITY = "nudity"
    FALSE_INFORMATION = "false_information"
    OTHER = "other"


class CreateReportRequest(ApiModel):
    target_type: ReportTarget
    target_id: str = Field(min_length=1)
    reason: ReportReason
    description: Optional[str] = Field(default=None, max_length=1000)
