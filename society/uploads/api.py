import logging
import uuid

from fastapi import APIRouter, Request
from starlette.datastructures import UploadFile
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.formparsers import MultiPartException

from society.core.middleware import ApiContext, log_info, with_auth
from society.core.response import ErrorCodes, error, success
from society.utils.dates import epoch_ms

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/upload", tags=["upload"])

IMAGE_TYPES = {
    "image/jpeg": "jpg",
    "image/png": "png",
    "image/gif": "gif",
    "image/webp": "webp",
}
VIDEO_TYPES = {
    "video/mp4": "mp4",
    "video/webm": "webm",
}
MAX_IMAGE_SIZE = 5 * 1024 * 1024  # 5MB
MAX_VIDEO_SIZE = 50 * 1024 * 1024  # 50MB

UPLOAD_FOLDERS = {
    "avatar": "profiles",
    "cover": "profiles",
    "post": "posts",
    "message": "messages",
}
IMAGE_ONLY = {"avatar", "cover"}


def object_key(folder: str, user_id: str, extension: str) -> str:
    return f"{folder}/{user_id}/{epoch_ms()}-{uuid.uuid4().hex[:8]}.{extension}"


@router.post("")
@with_auth
async def upload(request: Request, ctx: ApiContext, params: dict):
    """Multipart ``file`` + ``type``; checks type and size before anything is stored."""
    try:
        form = await request.form()
    except (StarletteHTTPException, MultiPartException) as exc:
        logger.info(f"Rejected malformed upload body: {exc}")
        return error(ErrorCodes.INVALID_REQUEST, "Invalid multipart data", 400)
    file = form.get("file")
    upload_type = form.get("type")

    if not isinstance(file, UploadFile):
        return error(ErrorCodes.INVALID_REQUEST, "No file provided", 400)
    if upload_type not in UPLOAD_FOLDERS:
        return error(ErrorCodes.INVALID_REQUEST, "Upload type is required (avatar, cover, post, or message)", 400)

    content_type = (file.content_type or "").lower()
    is_image = content_type in IMAGE_TYPES
    is_video = content_type in VIDEO_TYPES
    if not is_image and not (is_video and upload_type not in IMAGE_ONLY):
        allowed = "JPEG, PNG, GIF, WebP images" if upload_type in IMAGE_ONLY else \
            "JPEG, PNG, GIF, WebP images and MP4, WebM videos"
        return error(ErrorCodes.INVALID_FILE_TYPE, f"File type not allowed. Allowed: {allowed}", 400)

    max_size = MAX_IMAGE_SIZE if is_image else MAX_VIDEO_SIZE
    data = await file.read(max_size + 1)
    if len(data) > max_size:
        return error(ErrorCodes.FILE_TOO_LARGE, f"File size exceeds {max_size // (1024 * 1024)}MB limit", 400)

    extension = IMAGE_TYPES.get(content_type) or VIDEO_TYPES[content_type]
    key = object_key(UPLOAD_FOLDERS[upload_type], ctx.user_id, extension)
    url = await ctx.storage.put(key, data, content_type)

    log_info(ctx.request_id, "upload", key=key, size=len(data))
    return success({"url": url, "key": key, "contentType": content_type, "size": len(data)})
