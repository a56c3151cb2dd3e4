import logging
import os

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from kirakira.api.routes import auth, characters, chat, conversations, upload, usage
from kirakira.core.config import Settings
from kirakira.db.database import init_db

# Register every model with the metadata before tables are created
from kirakira.models import character, conversation, usage as usage_model, user  # noqa: F401

logger = logging.getLogger(__name__)


def create_app(settings: Settings = None) -> FastAPI:
    """Build the API. All configuration, OAuth included, comes from ``settings``."""
    settings = settings or Settings()

    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    app = FastAPI(
        title="Kirakira API",
        description="API for creating AI characters and chatting with them",
        version="0.1.0"
    )
    app.state.settings = settings

    # Create database tables if they don't exist
    app.state.engine, app.state.session_factory = init_db(settings)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.frontend_url],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Include routers
    app.include_router(auth.router)
    app.include_router(characters.router)
    app.include_router(chat.router)
    app.include_router(conversations.router)
    app.include_router(usage.router)
    app.include_router(upload.router)

    os.makedirs(settings.upload_dir, exist_ok=True)
    app.mount("/uploads", StaticFiles(directory=settings.upload_dir), name="uploads")

    @app.get("/health")
    def health_check():
        return {"status": "ok"}

    if settings.oauth_enabled:
        logger.info("Google OAuth enabled")
    else:
        logger.info("Google OAuth disabled (no credentials provided)")

    return app


app = create_app()
