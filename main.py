"""
FastAPI application entry point with async lifespan.
"""
import uvicorn
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from agromrv.core.config import get_settings
from agromrv.core.database import init_db, close_db
from agromrv.core.logging import configure_logging
from agromrv.routes import health, plots, estimates, credits, mrv, exports

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Async lifespan manager for startup and shutdown."""
    # Startup
    configure_logging(settings.log_level)
    await init_db()
    yield
    # Shutdown
    await close_db()


# Create FastAPI app
app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="Agroforestry biomass, carbon credit and MRV package engine",
    lifespan=lifespan
)

# CORS middleware (for the web client)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # In production, specify exact origins
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Register routes
app.include_router(health.router)
app.include_router(plots.router)
app.include_router(estimates.router)
app.include_router(credits.router)
app.include_router(mrv.router)
app.include_router(exports.router)


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "service": settings.app_name,
        "version": settings.app_version,
        "docs": "/docs",
        "health": "/health"
    }


if __name__ == "__main__":
    uvicorn.run(
        app,
        host='0.0.0.0',
        port=settings.port,
        log_level=settings.log_level.lower()
    )
