import os
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.openapi.utils import get_openapi

from core.config import settings
from core.db import Base, engine, db_session
from core.exceptions import register_exception_handlers
from core.logging import configure_logging
from core.middleware import setup_middleware
import models  # noqa: F401
from routes.admin import router as admin_router
from routes.auth import router as auth_router
from routes.owners import router as owners_router
from routes.profile import router as profile_router
from routes.ratings import router as ratings_router
from routes.stores import router as stores_router
from services.users import ensure_admin

configure_logging()
logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting store ratings service", env=settings.ENVIRONMENT, version=settings.APP_VERSION)

    # Ensure tables exist (for dev/test; in prod use Alembic)
    Base.metadata.create_all(bind=engine)

    if settings.SEED_ADMIN:
        with db_session() as db:
            ensure_admin(db, settings.ADMIN_NAME, settings.ADMIN_EMAIL, settings.ADMIN_PASSWORD)
    yield
    logger.info("Shutting down store ratings service")


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    lifespan=lifespan,
)


# Add OpenAPI security schemes for Bearer token authentication on docs/redoc
def custom_openapi():
    if app.openapi_schema:
        return app.openapi_schema
    openapi_schema = get_openapi(
        title=app.title,
        version=app.version,
        description=app.description,
        routes=app.routes,
    )
    openapi_schema.setdefault("components", {})["securitySchemes"] = {
        "BearerAuth": {
            "type": "http",
            "scheme": "bearer",
            "bearerFormat": "JWT",
        }
    }
    openapi_schema["security"] = [{"BearerAuth": []}]
    app.openapi_schema = openapi_schema
    return app.openapi_schema


app.openapi = custom_openapi

setup_middleware(app)
register_exception_handlers(app)

for router in (auth_router, profile_router, stores_router, ratings_router, owners_router, admin_router):
    app.include_router(router, prefix=settings.API_PREFIX)


@app.get("/health")
async def health_check():
    """Health check endpoint"""
    return {
        "status": "healthy",
        "service": settings.APP_NAME,
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=int(os.getenv("PORT", 8000)),
        reload=settings.DEBUG,
    )
