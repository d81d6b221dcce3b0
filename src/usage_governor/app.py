"""FastAPI application factory for Usage-Governor."""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from usage_governor.common.config import get_settings
from usage_governor.common.logging import setup_logging
from usage_governor.common.schemas import HealthResponse


def create_app() -> FastAPI:
    settings = get_settings()
    setup_logging(settings.log_level)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Startup
        from usage_governor.deps import get_db
        db = get_db()
        await db.init()
        await db.create_all()
        yield
        # Shutdown
        await db.close()

    app = FastAPI(
        title=settings.api_title,
        version=settings.api_version,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["Retry-After"],
    )

    @app.get("/health", response_model=HealthResponse)
    async def health():
        return HealthResponse(version=settings.api_version)

    # Mount routers
    from usage_governor.admission.router import router as admission_router
    from usage_governor.usage.router import router as usage_router
    from usage_governor.credits.router import router as credits_router
    from usage_governor.audit.router import router as audit_router

    prefix = settings.api_prefix
    app.include_router(admission_router, prefix=prefix, tags=["admission"])
    app.include_router(usage_router, prefix=prefix, tags=["usage"])
    app.include_router(credits_router, prefix=prefix, tags=["credits"])
    app.include_router(audit_router, prefix=prefix, tags=["audit"])

    return app
