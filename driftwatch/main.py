import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from driftwatch.api.routes import audit as audit_router
from driftwatch.core.config import settings
from driftwatch.core.database import create_db_and_tables
from driftwatch.core.observability import initialize_metrics

# Configure logging
logging.basicConfig(
    level=logging.INFO if settings.DEBUG else logging.WARNING,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[logging.StreamHandler()]
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    await create_db_and_tables()
    logger.info("Application started - audit history ready")
    yield


# Create FastAPI app
app = FastAPI(
    title=settings.PROJECT_NAME,
    description="DriftWatch configuration drift audit API",
    version=settings.VERSION,
    docs_url="/api/docs",
    redoc_url="/api/redoc",
    lifespan=lifespan,
)

# Set up observability
initialize_metrics(app)

# Include routers
app.include_router(audit_router.router, prefix=settings.API_V1_STR)


@app.get("/")
async def root():
    return {"name": settings.PROJECT_NAME, "version": settings.VERSION}
