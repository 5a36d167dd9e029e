"""Narrative Memory FastAPI application.

Serves the game websocket and the memory REST endpoints over one shared
memory runtime.
"""

# Configure Logfire and logging
import os
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import logfire
import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from narrative_memory.api import api_router, dependencies, root_router
from narrative_memory.core.config import settings
from narrative_memory.core.handlers import register_error_handlers
from narrative_memory.core.logging import get_logger, setup_logging
from narrative_memory.services.runtime import create_runtime

logfire.configure(
    service_name="narrative-memory",
    token=os.getenv("LOGFIRE_TOKEN"),
    send_to_logfire="if-token-present",
)
setup_logging()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None]:
    """Build the shared memory runtime for the application lifetime."""
    logger.info("Starting Narrative Memory", backend=settings.vector_backend, collection=settings.collection_name)

    runtime = None
    try:
        runtime = await create_runtime(settings)
        dependencies.runtime = runtime
        logger.info("Narrative Memory started")

        yield  # Application is running

    except Exception as e:
        logger.error(f"Failed to start Narrative Memory: {e}", exc_info=True)
        raise

    finally:
        logger.info("Shutting down Narrative Memory...")
        dependencies.runtime = None
        if runtime is not None:
            await runtime.close()
        logger.info("Narrative Memory shutdown complete")


def create_app(use_lifespan: bool = True) -> FastAPI:
    """Assemble the application. Tests pass ``use_lifespan=False`` and inject a runtime."""
    application = FastAPI(
        title="Narrative Memory API",
        description="Long-term memory for AI-narrated games",
        version="0.1.0",
        lifespan=lifespan if use_lifespan else None,
    )

    application.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # Configure appropriately for production
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_error_handlers(application)
    application.include_router(api_router, prefix="/api/v1")
    application.include_router(root_router)
    return application


app = create_app()

# Enable FastAPI instrumentation for request tracing
logfire.instrument_fastapi(app)


def run() -> None:
    """Development server entry point."""
    logger.info("Starting Narrative Memory development server...")
    uvicorn.run(
        "narrative_memory.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug,
        log_level="info",
        access_log=True,
    )


if __name__ == "__main__":
    run()
