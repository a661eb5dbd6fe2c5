from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.admin.router import router as admin_router
from app.auth.router import router as auth_router
from app.checkout.router import router as checkout_router
from app.community.router import router as community_router
from app.core.config import get_config
from app.core.database import create_indexes, db_manager
from app.core.logging import setup_logging
from app.courses.router import router as course_router
from app.landing.router import router as landing_router
from app.support.router import router as support_router
from app.system.health_router import router as health_router

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    db_manager.connect()
    await create_indexes(db_manager.get_database())
    logger.info("app_started", version=get_config().VERSION)
    yield
    db_manager.disconnect()


def create_app() -> FastAPI:
    config = get_config()
    app = FastAPI(title="Seven-Day App Academy", lifespan=lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[config.APP_ORIGIN],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ==================== ROUTER REGISTRATION ====================
    app.include_router(health_router)
    app.include_router(landing_router)
    app.include_router(auth_router)
    app.include_router(course_router)
    app.include_router(checkout_router)
    app.include_router(community_router)
    app.include_router(admin_router)
    app.include_router(support_router)

    return app


app = create_app()
