import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from society import health
from society.auth.api import router as auth_router
from society.config import Settings, get_settings
from society.core.errors import register_error_handlers
from society.core.headers import register_security_headers
from society.db.mongo import CacheError
from society.events.api import router as events_router
from society.friends.apifriends import router as friends_router
from society.friends.blocks import router as blocks_router
from society.friends.follows import router as follows_router
from society.messaging.api import router as messaging_router
from society.notifications.api import router as notifications_router
from society.posts.api import router as posts_router
from society.posts.saved import router as saved_router
from society.reports.api import router as reports_router
from society.resources import Resources, build_resources
from society.search.api import router as search_router
from society.uploads.api import router as uploads_router
from society.users.api import router as users_router

logger = logging.getLogger(__name__)

API_PREFIX = "/api/v1"

ROUTERS = [
    health.router,
    auth_router,
    users_router,
    posts_router,
    saved_router,
    friends_router,
    follows_router,
    blocks_router,
    messaging_router,
    notifications_router,
    events_router,
    reports_router,
    search_router,
    uploads_router,
]


def create_app(settings: Optional[Settings] = None, resources: Optional[Resources] = None) -> FastAPI:
    """
    Build the API. With ``resources`` given (tests) they are used as-is;
    otherwise database, cache and storage handles are created at startup and
    released at shutdown.
    """
    settings = settings or (resources.settings if resources else get_settings())
    logging.basicConfig(level=settings.LOG_LEVEL)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if app.state.resources is not None:
            yield
            return

        app.state.resources = build_resources(settings)
        try:
            await app.state.resources.cache.ensure_indexes()
        except CacheError as e:
            logger.warning(f"Cache indexes not created, cache unavailable: {e}")
        logger.info("Resources ready")
        yield
        await app.state.resources.close()
        app.state.resources = None

    app = FastAPI(title="society", lifespan=lifespan)
    app.state.resources = resources

    register_error_handlers(app)
    register_security_headers(app)

    for router in ROUTERS:
        app.include_router(router, prefix=API_PREFIX)

    media_root = resources.storage.root if resources else settings.MEDIA_ROOT
    if settings.MEDIA_PUBLIC_URL.startswith("/"):
        app.mount(settings.MEDIA_PUBLIC_URL, StaticFiles(directory=media_root, check_dir=False), name="media")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    return app


app = create_app()
