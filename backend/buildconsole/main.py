"""
Construction business console – FastAPI application entry point.

Run with:
    uvicorn buildconsole.main:app --reload --host 0.0.0.0 --port 8000
"""
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger

from buildconsole.api.catalog_routes import catalog_router
from buildconsole.api.customer_routes import customer_router, followup_router
from buildconsole.api.estimate_routes import estimate_router
from buildconsole.api.routes import router
from buildconsole.core.config import settings
from buildconsole.core.database import create_db_and_tables
from buildconsole.core.logging import setup_logging
from buildconsole.etl.watcher import start_watcher, stop_watcher
from buildconsole.services.console import start_console, stop_console


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application startup and shutdown hooks."""
    setup_logging()
    logger.info("Starting business console backend …")
    create_db_and_tables()
    logger.info("Database tables ready")
    start_console()
    if settings.WATCHER_ENABLED:
        start_watcher()
    yield
    if settings.WATCHER_ENABLED:
        stop_watcher()
    stop_console()
    logger.info("Business console backend shut down")


app = FastAPI(
    title="Business Console API",
    description="Estimates, customers, catalog and follow-ups for a construction business",
    version="1.0.0",
    lifespan=lifespan,
)

# CORS – allow frontend dev server
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(router)
app.include_router(estimate_router)
app.include_router(catalog_router)
app.include_router(customer_router)
app.include_router(followup_router)


@app.get("/")
def root():
    return {"message": "Business Console API", "docs": "/docs"}
