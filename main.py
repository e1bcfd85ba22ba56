"""
Hooked - event-based dating backend
Main application entry point
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from pydantic import ValidationError
import uvicorn

from hooked.core.config import settings
from hooked.core.db import engine, Base
from hooked.core.exceptions import HookedError
from hooked.api import routes_admin, routes_attendee, routes_public, ws
from hooked.services.repositories import use_firestore
from hooked.utils.responses import hooked_error_handler, validation_error_handler

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan management"""
    if use_firestore():
        logger.info("Using Firestore record store")
    else:
        Base.metadata.create_all(bind=engine)
        logger.info("Database tables created")
    yield
    logger.info("Application shutdown")

# Create FastAPI application
app = FastAPI(
    title="Hooked",
    description="Likes, matches, notifications and chat for event attendees",
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

# Domain errors raised by services
app.add_exception_handler(HookedError, hooked_error_handler)
app.add_exception_handler(ValidationError, validation_error_handler)

# Include routers
app.include_router(routes_public.router, tags=["public"])
app.include_router(routes_attendee.router, prefix="/attendee", tags=["attendee"])
app.include_router(routes_admin.router, prefix="/admin", tags=["admin"])
app.include_router(ws.router, prefix="/ws", tags=["websocket"])

# Note: Run this ASGI app directly with Uvicorn or Hypercorn. For Gunicorn,
# use `uvicorn.workers.UvicornWorker` instead of wrapping the app.

if __name__ == "__main__":
    uvicorn.run(
        "main:app",
        host="127.0.0.1",
        port=8000,
        reload=True
    )
