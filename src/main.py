"""
CellSight FastAPI Application
Main entry point for the battery SoH / RUL analytics service
"""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .api import batteries, health
from .config import get_settings

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager"""
    settings = get_settings()
    logger.info(f"Starting {settings.app_name} in {settings.app_env} mode")
    yield
    logger.info("Application shutdown complete")


def create_app() -> FastAPI:
    """Create and configure FastAPI application"""
    settings = get_settings()

    app = FastAPI(
        title=settings.app_name,
        description="Battery State of Health & Remaining Useful Life Analytics",
        version=health.VERSION,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan
    )

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # Configure for production
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Include routers
    app.include_router(health.router, tags=["Health"])
    app.include_router(batteries.router, prefix=settings.api_prefix, tags=["Batteries"])

    @app.get("/")
    async def root():
        return {
            "name": "CellSight API",
            "version": health.VERSION,
            "description": "Battery SoH, RUL, anomaly and forecast analytics",
            "docs": "/docs",
            "health": "/live",
            "endpoints": {
                "analyze": f"{settings.api_prefix}/batteries/{{battery_id}}/analyze",
                "report": f"{settings.api_prefix}/batteries/{{battery_id}}/report",
                "forecast": f"{settings.api_prefix}/batteries/{{battery_id}}/forecast",
            }
        }

    return app


# Create app instance
app = create_app()


if __name__ == "__main__":
    import uvicorn
    settings = get_settings()
    uvicorn.run(
        "src.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.debug
    )
