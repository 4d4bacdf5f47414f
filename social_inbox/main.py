"""FastAPI application — main entry point."""

import structlog
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from social_inbox.config import get_settings
from social_inbox.infrastructure.database import engine, Base
from social_inbox.core.logging import configure_logging
from social_inbox.core.middleware import setup_middleware
from social_inbox.core.exceptions import (
    AppError,
    app_error_handler,
    global_exception_handler,
    request_validation_handler,
)

# Import all models so SQLAlchemy knows about them
from social_inbox.domain.models.connection import Connection
from social_inbox.domain.models.contact import Contact
from social_inbox.domain.models.conversation import Conversation
from social_inbox.domain.models.message import Message
from social_inbox.domain.models.oauth_state import OAuthState
from social_inbox.domain.models.template import Template
from social_inbox.domain.models.webhook_event import WebhookEvent

# Import routers
from social_inbox.interfaces.api.conversations import router as conversations_router
from social_inbox.interfaces.api.meta_oauth import router as meta_oauth_router
from social_inbox.interfaces.api.social_messages import router as social_messages_router
from social_inbox.interfaces.api.templates import router as templates_router
from social_inbox.interfaces.webhooks.social import router as social_webhook_router

settings = get_settings()

# Configure logging immediately
configure_logging()
logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan — startup and shutdown events."""
    logger.info("Starting Social Inbox...", env=settings.ENVIRONMENT)

    # Create DB tables (dev only, production uses migrations)
    Base.metadata.create_all(bind=engine)
    logger.info("Database tables created/verified")

    if settings.SCHEDULER_ENABLED:
        from social_inbox.scheduler.jobs import start_scheduler
        start_scheduler()

    yield

    if settings.SCHEDULER_ENABLED:
        from social_inbox.scheduler.jobs import stop_scheduler
        stop_scheduler()
    logger.info("Social Inbox stopped")


app = FastAPI(
    title="Social Inbox",
    description="WhatsApp, Messenger and Instagram messaging integration API",
    version="1.0.0",
    lifespan=lifespan,
)

# Setup Middleware (Correlation ID, Logging)
setup_middleware(app)

# Exception Handling
app.add_exception_handler(AppError, app_error_handler)
app.add_exception_handler(RequestValidationError, request_validation_handler)
app.add_exception_handler(Exception, global_exception_handler)

# Added last so it runs first on the request
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(social_webhook_router)
app.include_router(social_messages_router)
app.include_router(meta_oauth_router)
app.include_router(templates_router)
app.include_router(conversations_router)


@app.get("/")
def root():
    return {
        "name": "Social Inbox",
        "version": "1.0.0",
        "status": "running",
        "docs": "/docs",
    }


@app.get("/health")
def health():
    return {"status": "healthy"}
