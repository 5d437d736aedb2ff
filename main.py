"""
FastAPI Application for the Clinical Scheduling Service.

Exposes appointment booking, lifecycle, recurring series and schedule
queries over HTTP.
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from config import settings
from scheduling.api import router as scheduling_router
from scheduling.collaborators import (
    InMemoryBillingLedger,
    InMemorySessionLog,
    LocalInsuranceEligibility,
    LoggingReminderDispatcher,
)
from scheduling.data import InMemoryAppointmentRepository, InMemoryScheduleRepository
from scheduling.service import SchedulingService

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper()),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

# Reduce Azure SDK logging verbosity
logging.getLogger("azure.cosmos").setLevel(logging.WARNING)
logging.getLogger("azure.core").setLevel(logging.WARNING)
logging.getLogger("azure.identity").setLevel(logging.WARNING)


def build_service() -> SchedulingService:
    """Wire the scheduling service from settings."""
    if settings.repository_backend == "cosmos":
        from scheduling.data.cosmos_repository import (
            CosmosAppointmentRepository,
            CosmosScheduleRepository,
        )
        from shared.cosmos_config import COSMOS_ENDPOINT

        appointments = CosmosAppointmentRepository()
        schedules = CosmosScheduleRepository()
        logger.info(f"Using Cosmos DB repositories: {COSMOS_ENDPOINT}")
    elif settings.repository_backend == "memory":
        appointments = InMemoryAppointmentRepository()
        schedules = InMemoryScheduleRepository()
        logger.info("Using in-memory repositories")
    else:
        raise ValueError(f"Unknown REPOSITORY_BACKEND: {settings.repository_backend}")

    return SchedulingService(
        appointments=appointments,
        schedules=schedules,
        insurance=LocalInsuranceEligibility(
            allow_unregistered=settings.insurance_allow_unregistered
        ),
        billing=InMemoryBillingLedger(),
        session_logger=InMemorySessionLog(),
        dispatcher=LoggingReminderDispatcher(),
        settings=settings,
    )


def create_app(service: Optional[SchedulingService] = None) -> FastAPI:
    """Create the application, optionally around an already built service."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan manager - handles startup and shutdown."""
        logger.info("Starting Clinical Scheduling Service...")
        if getattr(app.state, "scheduling_service", None) is None:
            app.state.scheduling_service = build_service()
        logger.info("Scheduling service ready")

        yield

        logger.info("Shutting down...")
        app.state.scheduling_service.shutdown()

    app = FastAPI(
        title="Clinical Scheduling Service",
        description="Appointment scheduling coupled to insurance and billing eligibility",
        version="1.0.0",
        lifespan=lifespan,
        docs_url="/api/docs",
        redoc_url="/api/redoc"
    )
    app.state.scheduling_service = service

    # CORS middleware for local development
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # Restrict in production
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(scheduling_router)

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        return {
            "status": "healthy",
            "version": "1.0.0",
            "repository_backend": settings.repository_backend,
        }

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "main:app",
        host=settings.app_host,
        port=settings.app_port,
        reload=False,
        log_level=settings.log_level.lower()
    )
