# gram_panchayat/main.py
import logging
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from gram_panchayat.config import settings
from gram_panchayat.db.session import SessionLocal, init_db
from gram_panchayat.exceptions import (
    AuthenticationError, AuthorizationError, ConflictError, DuplicateApplicationError,
    EmailAlreadyRegisteredError, InvalidTransitionError, NotFoundError, PanchayatError, ValidationError,
)
from gram_panchayat.logging_config import setup_logging
from gram_panchayat.services.accounts import AccountService
from gram_panchayat.services.catalog import ServiceCatalog
from gram_panchayat.services.identity import IdentityProvider
from gram_panchayat.services.roles import RoleResolver
from gram_panchayat.api.endpoints import admin, applications, auth, catalog, staff, users

logger = logging.getLogger(__name__)

# most specific first; the first isinstance match wins
ERROR_STATUS = (
    (AuthenticationError, 401),
    (AuthorizationError, 403),
    (NotFoundError, 404),
    (ConflictError, 409),
    (InvalidTransitionError, 409),
    (EmailAlreadyRegisteredError, 409),
    (DuplicateApplicationError, 400),
    (ValidationError, 400),
)


def status_for(exc: PanchayatError) -> int:
    for exc_type, code in ERROR_STATUS:
        if isinstance(exc, exc_type):
            return code
    return 500


async def panchayat_error_handler(request: Request, exc: PanchayatError):
    code = status_for(exc)
    if code == 500:
        logger.error("Unmapped service error: %s", exc, exc_info=exc)
        return JSONResponse(status_code=500, content={"detail": "Internal server error"})
    headers = {"WWW-Authenticate": "Bearer"} if code == 401 else None
    return JSONResponse(status_code=code, content={"detail": exc.message, **exc.to_dict()}, headers=headers)


async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = [
        {"loc": list(e.get("loc", ())), "msg": e.get("msg", "")}
        for e in exc.errors()
    ]
    return JSONResponse(status_code=400, content={"detail": "Validation failed", "code": "VALIDATION_ERROR", "errors": errors})


async def unhandled_error_handler(request: Request, exc: Exception):
    logger.error("Unhandled exception on %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


def bootstrap() -> None:
    db = SessionLocal()
    try:
        identity = IdentityProvider(db)
        roles = RoleResolver(db, identity)
        if settings.SEED_DEFAULT_SERVICES:
            ServiceCatalog(db, roles).seed_defaults()
        if settings.ADMIN_EMAIL and settings.ADMIN_PASSWORD:
            AccountService(db, identity, roles).ensure_administrator(settings.ADMIN_EMAIL, settings.ADMIN_PASSWORD)
    finally:
        db.close()


def create_app() -> FastAPI:
    setup_logging()
    app = FastAPI(title=settings.APP_NAME, version="1.0")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_methods=["*"],
        allow_headers=["*"],
        allow_credentials=True,
    )

    app.add_exception_handler(PanchayatError, panchayat_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)

    # Routers (versioned)
    app.include_router(auth.router, prefix=settings.API_V1_STR)
    app.include_router(catalog.router, prefix=settings.API_V1_STR)
    app.include_router(applications.router, prefix=settings.API_V1_STR)
    app.include_router(staff.router, prefix=settings.API_V1_STR)
    app.include_router(admin.router, prefix=settings.API_V1_STR)
    app.include_router(users.router, prefix=settings.API_V1_STR)

    @app.get("/health", tags=["health"])
    def health():
        return {"status": "OK", "message": f"{settings.APP_NAME} is running", "version": "1.0"}

    @app.on_event("startup")
    def on_startup():
        init_db()
        bootstrap()
        logger.info("Started", extra={"environment": settings.ENVIRONMENT})

    return app

app = create_app()
