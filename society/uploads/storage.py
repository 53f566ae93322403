import logging
from pathlib import Path

import aiofiles

logger = logging.getLogger(__name__)


class LocalObjectStore:
    """Blob store on the local filesystem, served under ``public_url``."""

    def __init__(self, root: str, public_url: str):
        self.root = Path(root)
        self.public_url = public_url.rstrip("/")
        self.root.mkdir(parents=True, exist_ok=True)

    def url_for(self, key: str) -> str:
        return f"{self.public_url}/{key}"

    async def put(self, key: str, data: bytes, content_type: str) -> str:
        path = self.root / key
        path.parent.mkdir(parents=True, exist_ok=True)
        async with aiofiles.open(path, "wb") as out_file:
            await out_file.write(data)
        logger.info(f"Stored {key} ({content_type}, {len(data)} bytes)")
        return self.url_for(key)

    async def delete(self, key: str) -> None:
        path = self.root / key
        if path.exists():
            path.unlink()
            logger.info(f"Deleted {key}")
