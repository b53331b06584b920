import logging
from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from config import Settings, get_settings
from container import Services, build_services
from create_tables import create_tables
from logging_config import configure_logging
from modules.auth.controllers.auth_controller import router as auth_router
from modules.certificates.controllers.certificate_controller import router as certificate_router
from modules.documents.controllers.document_controller import router as document_router
from modules.documents.job import start_retention_job
from modules.receipts.controllers.receipt_controller import router as receipt_router
from modules.submissions.controllers.form_controller import router as form_router
from modules.submissions.controllers.renewal_controller import router as renewal_router
from modules.verification.controllers.verification_controller import router as verification_router

logger = logging.getLogger(__name__)


def _seed_admin(services: Services):
    settings = services.settings
    if not settings.admin_email or not settings.admin_password:
        logger.warning("No admin credentials configured, admin endpoints are unreachable")
        return
    with services.session_factory() as session:
        created = services.auth.seed_admin(
            session, settings.admin_email, settings.admin_password.get_secret_value()
        )
    if created:
        logger.info("Admin account created: %s", settings.admin_email)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings: Settings = app.state.settings
    if app.state.services is None:
        app.state.services = build_services(settings)
    services: Services = app.state.services

    logger.info("Starting %s", settings.app_name)
    create_tables(services.session_factory)
    _seed_admin(services)

    scheduler = None
    if settings.retention_job_enabled:
        scheduler = start_retention_job(services, settings.retention_job_interval_hours)
        logger.info("Retention job scheduled every %d hours", settings.retention_job_interval_hours)

    yield

    if scheduler is not None:
        scheduler.shutdown(wait=False)
    logger.info("Application stopped")


def create_app(settings: Optional[Settings] = None, services: Optional[Services] = None) -> FastAPI:
    settings = settings or get_settings()
    configure_logging(settings.log_level)

    app = FastAPI(
        title="Membership Documents",
        description="Membership forms with electronic signature, double opt-in and archival",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.services = services

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Accept", "Content-Type", "Authorization", "X-Requested-With", "Origin"],
        expose_headers=["Content-Disposition", "X-Document-Hash", "X-Integrity-Valid"],
        max_age=86400,
    )

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=400,
            content={
                "success": False,
                "error": "validation failed",
                "details": jsonable_encoder(exc.errors()),
            },
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        return JSONResponse(
            status_code=exc.status_code,
            content={"success": False, "error": exc.detail},
            headers=getattr(exc, "headers", None),
        )

    @app.get("/health", tags=["health"])
    def health():
        return {"status": "ok"}

    app.include_router(auth_router)
    app.include_router(form_router)
    app.include_router(renewal_router)
    app.include_router(document_router)
    app.include_router(verification_router)
    app.include_router(certificate_router)
    app.include_router(receipt_router)
    return app


app = create_app()

if __name__ == "__main__":
    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=True)
