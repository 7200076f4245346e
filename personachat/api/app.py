"""
personachat HTTP application.

Architecture:
    Browser
        ↓ REST (CRUD) / SSE (GET /api/sse?channel=dm:<id>)
    FastAPI app
        ↓
    ChatRuntime (MessageService, BroadcastHub, ConversationListenerManager)
        ↓
    ChatRepository + text-generation backend

Run:
    personachat                      # CLI entry point (uvicorn)
    uvicorn --factory personachat.api.app:create_app
"""

from __future__ import annotations

from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from personachat import __version__
from personachat.api.routes import router
from personachat.core.exceptions import NotFoundError, PersonaChatError, ValidationError
from personachat.runtime import ChatRuntime, get_runtime

logger = logging.getLogger(__name__)


def create_app(runtime: ChatRuntime | None = None) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        runtime: Pre-built runtime (tests, embedding). Defaults to the
            process-wide runtime, created from configuration on startup.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Start listeners on startup; detach them and close the backend on shutdown."""
        logger.info("Initializing personachat...")

        active: ChatRuntime | None = None
        try:
            active = runtime or get_runtime()
            app.state.runtime = active
            await active.start()

            logger.info("personachat ready")
            logger.info("   LLM: %s/%s", active.config.llm_provider, active.config.llm_model)
            logger.info("   Listeners: %s", active.listeners.get_status())

            yield

        except Exception as e:
            logger.error("Failed to initialize personachat: %s", e, exc_info=True)
            raise

        finally:
            if active is not None:
                logger.info("Shutting down personachat...")
                try:
                    await active.close()
                    logger.info("Shutdown complete")
                except Exception as e:
                    logger.error("Error during shutdown: %s", e, exc_info=True)

    app = FastAPI(title="personachat", version=__version__, lifespan=lifespan)
    if runtime is not None:
        app.state.runtime = runtime

    app.include_router(router)
    register_exception_handlers(app)
    return app


def register_exception_handlers(app: FastAPI) -> None:
    """Map domain errors to HTTP status codes."""

    @app.exception_handler(ValidationError)
    async def handle_validation_error(request: Request, exc: ValidationError) -> JSONResponse:
        return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"error": str(exc)})

    @app.exception_handler(NotFoundError)
    async def handle_not_found(request: Request, exc: NotFoundError) -> JSONResponse:
        return JSONResponse(status_code=status.HTTP_404_NOT_FOUND, content={"error": str(exc)})

    @app.exception_handler(PersonaChatError)
    async def handle_error(request: Request, exc: PersonaChatError) -> JSONResponse:
        logger.error("Unhandled %s on %s: %s", type(exc).__name__, request.url.path, exc)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": str(exc)},
        )


__all__ = ["create_app", "register_exception_handlers"]
