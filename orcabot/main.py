"""
FastAPI application bootstrap with: \n
- Lifespan-managed initialization (database tables + chat model client) \n
- CORS configured for the frontend \n
- The quote/proposal API router \n

Environment contract (from `settings`): \n
- INIT_MODE: if 'runtime', create missing tables and build the chat model during app startup. \n
- FRONTEND_URL: allowed CORS origin. \n
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from orcabot.api.fast_api import router
from orcabot.api.llm_gateway import build_chat_model
from orcabot.database.config.config import settings
from orcabot.database.config.connection_engine import connection_engine, declarativeBase

logger = logging.getLogger("uvicorn")
"""Logger instance for capturing and emitting Uvicorn server logs."""


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    App lifespan manager.

    Notes
    ------------
    - On startup (before yielding):
        * If INIT_MODE == 'runtime':
            - Create the tables that do not exist yet.
            - Build the chat model client and attach it to `app.state`.
    - On shutdown (after yielding):
        * Pending background saves of streamed replies are left to finish on their own.
        * Dispose the engine's connection pool.
    """
    if settings.INIT_MODE == "runtime":
        declarativeBase.metadata.create_all(connection_engine)
        app.state.chat_model = build_chat_model()
        logger.info(f"✅ Tables ready, chat model '{settings.LLM_MODEL}' loaded.")
    else:
        logger.info(f"⏭️  Skipping runtime init (INIT_MODE={settings.INIT_MODE}).")

    try:
        yield
    finally:
        connection_engine.dispose()
        logger.info("🛑 App shutting down.")


# Instantiate the FastAPI app with lifespan handler
app = FastAPI(lifespan=lifespan, title="Orçamento Chat")
"""Instatiates a FastAPI application object
    The lifespan=lifespan argument registers a custom startup/shutdown lifecycle manager that:\n
        - On startup: creates tables and the chat model if INIT_MODE == 'runtime'.\n
        - On shutdown: releases pooled database connections. \n
"""

# -----------------------
# CORS configuration
# -----------------------
url = settings.FRONTEND_URL
"""The allowed frontend origin (URL) used for CORS configuration."""

app.add_middleware(
    CORSMiddleware,
    allow_origins=[url],      # Frontend origin
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# -----------------------
# API routes
# -----------------------
app.include_router(router)
