"""FastAPI Application Entry Point.

Configures the app, lifespan, CORS, and includes all route modules.
"""

from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

# Ensure node types are registered at import time
import promptflow.nodes  # noqa: F401
from promptflow import config as engine_config
from promptflow.logging_config import get_api_logger

from promptflow_server.config import API_HOST, API_PORT, CORS_ORIGINS
from promptflow_server.database import close_db, init_db

logger = get_api_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage database lifecycle."""
    await init_db()

    if not engine_config.SCRAPER_SERVICE_URL:
        logger.warning(
            "SCRAPER_SERVICE_URL not set; Scraper nodes will record an error payload "
            "instead of scraping."
        )

    yield
    await close_db()


app = FastAPI(title="promptflow API", version="0.1.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
from promptflow_server.routes.workflows import router as workflows_router  # noqa: E402
from promptflow_server.routes.execution import router as execution_router  # noqa: E402

app.include_router(workflows_router)
app.include_router(execution_router)


@app.get("/health")
async def health_check():
    """Health check endpoint for container orchestration."""
    return {"status": "ok"}


def run() -> None:
    import uvicorn

    uvicorn.run("promptflow_server.main:app", host=API_HOST, port=API_PORT)
