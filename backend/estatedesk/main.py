"""
EstateDesk API application
"""
from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from estatedesk.core.config import settings
from estatedesk.core.database import SessionLocal, init_db
from estatedesk.core.exceptions import EstateDeskError
from estatedesk.core.rate_limit import RateLimitMiddleware
from estatedesk.api.v1 import (
    auth, customers, documents, emis, properties, reports, roles, sell_properties, transactions, users
)
from estatedesk.services.user_service import seed_super_admin

logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s %(levelname)-7s %(name)s: %(message)s"
)
logger = logging.getLogger("estatedesk")

API_ROUTERS = (
    auth.router,
    users.router,
    roles.router,
    customers.router,
    properties.router,
    sell_properties.router,
    transactions.router,
    emis.router,
    documents.router,
    reports.router,
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    db = SessionLocal()
    try:
        seed_super_admin(db)
    finally:
        db.close()
    logger.info(f"{settings.APP_NAME} {settings.APP_VERSION} started ({settings.ENVIRONMENT})")
    yield
    logger.info("Shutting down")


def _failure(status_code: int, message, headers=None) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"status": False, "message": message}, headers=headers)


def register_exception_handlers(app: FastAPI):
    @app.exception_handler(EstateDeskError)
    async def domain_error(request: Request, exc: EstateDeskError):
        logger.warning(f"{request.method} {request.url.path} -> {exc.status_code}: {exc.message}")
        return _failure(exc.status_code, exc.message)

    @app.exception_handler(StarletteHTTPException)
    async def http_error(request: Request, exc: StarletteHTTPException):
        return _failure(exc.status_code, exc.detail, getattr(exc, "headers", None))

    @app.exception_handler(Exception)
    async def unexpected_error(request: Request, exc: Exception):
        # get_db closes the session without committing, so nothing partial is kept
        logger.error(f"{request.method} {request.url.path} failed: {exc}", exc_info=True)
        return _failure(500, str(exc) or "An unexpected error occurred")


def create_app() -> FastAPI:
    application = FastAPI(title=settings.APP_NAME, version=settings.APP_VERSION, lifespan=lifespan)

    application.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    application.add_middleware(RateLimitMiddleware)
    register_exception_handlers(application)

    for router in API_ROUTERS:
        application.include_router(router, prefix="/api/v1")

    @application.get("/health", tags=["Health"])
    async def health():
        return {"status": "healthy", "version": settings.APP_VERSION}

    return application


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("estatedesk.main:app", host="0.0.0.0", port=8000, reload=settings.DEBUG)
