"""FastAPI application entry point."""
import logging
from contextlib import asynccontextmanager
from uuid import uuid4
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from app.catalog import get_catalog, get_cause_catalog
from app.config import get_settings
from app.errors import DiagnosticError
from app.routers import (
    health_router,
    assessments_router,
    causes_router,
    actions_router,
    snapshots_router,
)

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown."""
    # Startup
    logger.info("Starting Full Diagnostic API...")
    settings = get_settings()
    logger.info(f"Environment: {'DEBUG' if settings.debug else 'PRODUCTION'}")
    catalog = get_catalog()
    cause_catalog = get_cause_catalog()
    logger.info(
        f"Catalogs loaded: {len(catalog.processes)} processes, "
        f"{len(catalog.actions)} actions, {len(cause_catalog.gaps)} gaps"
    )
    yield
    # Shutdown
    logger.info("Shutting down Full Diagnostic API...")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title=settings.app_name,
        description="""
        ## Full Diagnostic API

        Process maturity diagnostic for small and mid-sized companies

        ### Features:
        - Questionnaire intake and deterministic process scoring (LOW/MEDIUM/HIGH)
        - Root-cause classification of LOW-band gaps
        - Six-pack findings (3 leaks + 3 levers) with answer traceability
        - Action suggestions and a 3-action plan per cycle
        - Write-once evidence, cycle close and versioned snapshots
        """,
        version=settings.app_version,
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json"
    )

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # Configure appropriately for production
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(health_router)
    app.include_router(assessments_router)
    app.include_router(causes_router)
    app.include_router(actions_router)
    app.include_router(snapshots_router)

    @app.exception_handler(DiagnosticError)
    async def diagnostic_error_handler(request: Request, exc: DiagnosticError):
        if exc.status_code >= 500:
            logger.error(f"{exc.code} on {request.method} {request.url.path}: {exc.extra}")
        return JSONResponse(status_code=exc.status_code, content=exc.to_body())

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        fields = [
            ".".join(str(p) for p in err.get("loc", ()) if p != "body")
            for err in exc.errors()
        ]
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={
                "code": "VALIDATION_ERROR",
                "message_user": "Dados inválidos. Verifique os campos e tente novamente.",
                "error": "VALIDATION_ERROR",
                "fields": [f for f in fields if f],
            },
        )

    # Global exception handler
    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        correlation_id = str(uuid4())
        route = request.scope.get("route")
        step = getattr(route, "name", None) or request.url.path
        logger.error(
            f"Unhandled exception in {step} "
            f"(assessment_id={request.path_params.get('assessment_id')}, "
            f"company_id={request.path_params.get('company_id')}, "
            f"correlation_id={correlation_id}): {exc}",
            exc_info=True,
        )
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "code": "INTERNAL_ERROR",
                "message_user": "Erro inesperado. Tente novamente.",
                "error": "INTERNAL_ERROR",
                "correlation_id": correlation_id,
            },
        )

    return app


# Create app instance
app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("app.main:app", host="0.0.0.0", port=8000, reload=True)
