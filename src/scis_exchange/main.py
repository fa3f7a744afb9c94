"""
SCIS Exchange - consent-gated clinical data sharing
Controller/Service/Repository Pattern
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .core.config import get_config
from .core.logging_config import configure_logging
from .core.database import DatabaseManager
from .core.cache import CacheManager
from .providers import FhirEndpointProvider, FhirProviderConfig, SentimentProviderConfig, create_sentiment_provider

# Import domain controllers
from .domains.hospital.controllers.hospital_controller import router as hospital_router, user_router, dashboard_router
from .domains.patient.controllers.patient_controller import router as patient_router
from .domains.consent.controllers.consent_controller import router as consent_router
from .domains.endpoint.controllers.endpoint_controller import router as endpoint_router
from .domains.data_request.controllers.data_request_controller import router as data_request_router
from .domains.feedback.controllers.feedback_controller import router as feedback_router
from .domains.monitoring.controllers.monitoring_controller import router as monitoring_router


logger = logging.getLogger(__name__)

config = get_config()


class SCISServiceContext:
    """Centralized service context for dependency injection"""

    def __init__(self, app_config=None):
        self.config = app_config or config
        self.db_manager = DatabaseManager(self.config.database)
        self.cache_manager = CacheManager(self.config.redis)
        self.fhir_provider = FhirEndpointProvider(FhirProviderConfig.from_http_config(self.config.http))
        self.sentiment_provider = create_sentiment_provider(
            self.config.scoring.sentiment_provider,
            SentimentProviderConfig(model_path=self.config.scoring.sentiment_model_path)
        )
        self.start_time = datetime.utcnow()
        self._initialized = False

    async def initialize(self):
        """Initialize all connections and providers"""
        if self._initialized:
            return

        logger.info("Initializing SCIS service context...")

        await self.db_manager.initialize()
        await self.cache_manager.initialize()
        await self.fhir_provider.initialize()
        await self.sentiment_provider.initialize()

        self._initialized = True
        logger.info("SCIS service context initialized successfully")

    async def cleanup(self):
        """Cleanup all connections"""
        logger.info("Cleaning up SCIS service context...")

        await self.fhir_provider.cleanup()
        await self.sentiment_provider.cleanup()
        await self.cache_manager.cleanup()
        await self.db_manager.cleanup()

        self._initialized = False
        logger.info("Cleanup complete")


# FastAPI application with lifecycle management
@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage service lifecycle"""
    configure_logging(config.logging)

    logger.info(f"Starting {config.app_name} ({config.environment})...")
    logger.debug(f"Effective configuration: {config.to_dict()}")
    app.state.scis_service = SCISServiceContext()
    await app.state.scis_service.initialize()
    logger.info(f"{config.app_name} started successfully")

    yield

    logger.info(f"Shutting down {config.app_name}...")
    await app.state.scis_service.cleanup()
    logger.info(f"{config.app_name} shutdown complete")


app = FastAPI(
    title=config.app_name,
    version=config.app_version,
    description="Consent-gated clinical data exchange between hospitals",
    debug=config.debug,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.security.cors_origins,
    allow_credentials=config.security.cors_allow_credentials,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include domain routers
app.include_router(hospital_router)
app.include_router(user_router)
app.include_router(dashboard_router)
app.include_router(patient_router)
app.include_router(consent_router)
app.include_router(endpoint_router)
app.include_router(data_request_router)
app.include_router(feedback_router)
app.include_router(monitoring_router)


@app.get("/health")
async def health_check():
    """Basic health check endpoint"""
    return {
        "status": "healthy",
        "version": config.app_version,
        "environment": config.environment,
        "timestamp": datetime.utcnow()
    }


@app.get("/")
async def root():
    """Root endpoint with service information"""
    return {
        "service": config.app_name,
        "version": config.app_version,
        "pattern": "Controller/Service/Repository",
        "documentation": "/docs",
        "health": "/health"
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "scis_exchange.main:app",
        host=config.host,
        port=config.port,
        workers=config.workers,
        loop="uvloop",
        log_level=config.logging.level.lower(),
        access_log=False,
        reload=False
    )
