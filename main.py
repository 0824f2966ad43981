"""
Event Sign-up Service - FastAPI Backend
Main application entry point
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
import uvicorn

from app.core.config import settings
from app.core.db import engine, Base
from app.core.exceptions import DomainError
from app.api import routes_public, routes_reservations, ws
from app.services.outbox_dispatcher import OutboxDispatcher
from app.utils.responses import domain_error_response

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

dispatcher = OutboxDispatcher(ws.websocket_manager)

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan management"""
    # Create database tables
    Base.metadata.create_all(bind=engine)
    logger.info("Database tables created")
    dispatcher.start()
    yield
    await dispatcher.stop()
    logger.info("Application shutdown")

# Create FastAPI application
app = FastAPI(
    title="Event Sign-up Service",
    description="Reservations with capacity limits, waiting lists and scheduled notifications",
    version="1.0.0",
    lifespan=lifespan
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOW_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

@app.exception_handler(DomainError)
async def domain_error_handler(request: Request, exc: DomainError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return domain_error_response(exc)

# Include routers
app.include_router(routes_public.router, tags=["public"])
app.include_router(routes_reservations.router, prefix="/reservations", tags=["reservations"])
app.include_router(ws.router, prefix="/ws", tags=["websocket"])

if __name__ == "__main__":
    uvicorn.run(
        "main:app",
        host="127.0.0.1",
        port=8000,
        reload=True
    )
