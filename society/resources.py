"""Process-wide handles, built once at startup and handed to every request."""
import logging
from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncEngine
from sqlalchemy.orm import sessionmaker

from society.config import Settings
from society.db.mongo import MongoCache, create_cache
from society.db.session import create_engine, create_sessionmaker
from society.uploads.storage import LocalObjectStore
from society.utils.email import Mailer

logger = logging.getLogger(__name__)


@dataclass
class Resources:
    settings: Settings
    engine: AsyncEngine
    sessionmaker: sessionmaker
    cache: MongoCache
    storage: LocalObjectStore
    mailer: Mailer

    async def close(self) -> None:
        close_cache = getattr(self.cache, "close", None)
        if close_cache is not None:
            close_cache()
        await self.engine.dispose()
        logger.info("Resources released")


def build_resources(settings: Settings) -> Resources:
    engine = create_engine(settings)
    return Resources(
        settings=settings,
        engine=engine,
        sessionmaker=create_sessionmaker(engine),
        cache=create_cache(settings),
        storage=LocalObjectStore(settings.MEDIA_ROOT, settings.MEDIA_PUBLIC_URL),
        mailer=Mailer(settings),
    )
