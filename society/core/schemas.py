from typing import Optional

from pydantic import AnyHttpUrl, BaseModel, ConfigDict, Field, TypeAdapter, ValidationError
from pydantic.alias_generators import to_camel


class ApiModel(BaseModel):
    """Request schema that reads camelCase keys from the wire."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CursorQuery(ApiModel):
    cursor: Optional[str] = None
    limit: int = Field(default=20, ge=1)


class PageQuery(ApiModel):
    page: int = Field(default=1, ge=1)
    limit: int = Field(default=20, ge=1)


class OffsetQuery(ApiModel):
    limit: int = Field(default=20, ge=1)
    offset: int = Field(default=0, ge=0)


_http_url = TypeAdapter(AnyHttpUrl)


def check_url(value: Optional[str]) -> Optional[str]:
    """Accept absolute http(s) URLs and media paths such as ``/media/posts/...``."""
    if value is None or value.startswith("/"):
        return value
    try:
        _http_url.validate_python(value)
    except ValidationError:
        raise ValueError("Invalid URL")
    return value
