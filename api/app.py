"""FastAPI application for FormAgent."""

import asyncio
import contextlib
import logging
from typing import Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from config.settings import Settings
from memory.errors import FormNotFound, SubmissionValidationError
from orchestrator import FormAgentOrchestrator, FormRejected, AIServiceUnavailable
from .routes import ai, conversations, forms, health
from . import websocket

logger = logging.getLogger(__name__)


async def _cleanup_loop(orchestrator: FormAgentOrchestrator, interval_seconds: float):
    """Evict idle cached conversations every interval."""
    while True:
        await asyncio.sleep(interval_seconds)
        try:
            evicted = orchestrator.cleanup()
            if evicted:
                logger.info(f"Cache cleanup evicted {evicted} conversations")
        except Exception as e:
            logger.error(f"Cache cleanup failed: {e}")


def create_app(
    orchestrator: Optional[FormAgentOrchestrator] = None,
    settings: Optional[Settings] = None
) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        orchestrator: Services to serve (built from settings when omitted)
        settings: Application settings

    Returns:
        Configured FastAPI app
    """
    orchestrator = orchestrator or FormAgentOrchestrator(settings)
    settings = orchestrator.settings

    app = FastAPI(
        title="FormAgent AI",
        description="Conversational form builder with guardrails and conversation memory",
        version="1.0.0",
    )
    app.state.orchestrator = orchestrator
    app.state.cleanup_task = None

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.frontend_url],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(health.router)
    app.include_router(ai.router)
    app.include_router(conversations.router)
    app.include_router(forms.router)
    app.include_router(websocket.router)

    @app.on_event("startup")
    async def startup_event():
        """Start the periodic cache cleanup"""
        interval = settings.cleanup_interval_minutes * 60
        app.state.cleanup_task = asyncio.create_task(_cleanup_loop(orchestrator, interval))
        logger.info(
            f"FormAgent started: provider={settings.ai_provider}, "
            f"cleanup every {settings.cleanup_interval_minutes} minutes"
        )

    @app.on_event("shutdown")
    async def shutdown_event():
        """Stop the cleanup task"""
        task = app.state.cleanup_task
        if task:
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
        logger.info("FormAgent stopped")

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        return JSONResponse(status_code=exc.status_code, content={"success": False, "error": exc.detail})

    @app.exception_handler(FormRejected)
    async def form_rejected_handler(request: Request, exc: FormRejected):
        logger.warning(f"Form rejected by guardrails: {[i.type for i in exc.issues]}")
        return JSONResponse(
            status_code=400,
            content={
                "success": False,
                "error": str(exc),
                "issues": [i.model_dump() for i in exc.issues],
            },
        )

    @app.exception_handler(SubmissionValidationError)
    async def submission_error_handler(request: Request, exc: SubmissionValidationError):
        return JSONResponse(
            status_code=400,
            content={"success": False, "error": str(exc), "errors": exc.errors},
        )

    @app.exception_handler(FormNotFound)
    async def form_not_found_handler(request: Request, exc: FormNotFound):
        return JSONResponse(status_code=404, content={"success": False, "error": "Form not found"})

    @app.exception_handler(AIServiceUnavailable)
    async def ai_unavailable_handler(request: Request, exc: AIServiceUnavailable):
        return JSONResponse(status_code=503, content={"success": False, "error": str(exc)})

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        """General exception handler for unhandled errors"""
        logger.exception(f"Unhandled exception: {exc}")
        return JSONResponse(status_code=500, content={"success": False, "error": str(exc)})

    return app
