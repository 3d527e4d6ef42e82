import logging

import socketio

from fastapi import FastAPI
from contextlib import asynccontextmanager
from . import db
from . import router
from .core import config
from .core.errors import register_exception_handlers
from .core.logging_config import setup_logging
from .db import mongodb
from .socket_events import sio

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    await db.create_tables()
    logger.info("SkillSwap API started")
    yield
    mongodb.close_mongoDB()
    if db.engine is not None:
        await db.close_session()


def build_api(settings=None) -> FastAPI:
    """The plain FastAPI application, without the socket.io wrapper."""
    if not settings:
        settings = config.get_settings()
    setup_logging(settings.LOG_LEVEL)

    app = FastAPI(title="SkillSwap API", lifespan=lifespan)
    register_exception_handlers(app)

    db.init_db(settings)
    mongodb.init_mongoDB(settings)

    router.init_router_root(app)
    app.include_router(router.get_router(), prefix="/api")
    return app


def create_app(settings=None):
    app = build_api(settings)
    app_socket = socketio.ASGIApp(sio, app)
    return app_socket
