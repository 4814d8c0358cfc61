"""Dependency injection utilities for FastAPI"""

import logging

from fastapi import HTTPException, Request

from modlink.core.context import AppContext

logger = logging.getLogger(__name__)


def get_context(request: Request) -> AppContext:
    """The application context built in the lifespan (or passed to create_app)"""
    context: AppContext | None = getattr(request.app.state, "context", None)
    if context is None:
        logger.error("Request arrived before the application context was ready")
        raise HTTPException(status_code=503, detail="Service not ready")
    return context
