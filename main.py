#main.py
import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.errors import PayoutError
from middleware import RequestContextMiddleware
from routes.admin_payouts import router as admin_payouts_router
from routes.admin_wallet import router as admin_wallet_router
from routes.health import router as health_router
from routes.metrics import router as metrics_router
from routes.payouts import router as payouts_router
from routes.wallet import router as wallet_router
from services.db_errors import http_status_for
from services.observability import LOG_FORMAT, RequestIdFilter, get_request_id
from settings import settings, validate_env_settings

logger = logging.getLogger("affiliatehub")

DEV_CORS_ORIGINS = ["http://localhost:3000", "http://localhost:5173", "http://127.0.0.1:3000"]


def _configure_logging() -> None:
    root = logging.getLogger("affiliatehub")
    root.setLevel((settings.LOG_LEVEL or "INFO").upper())
    if not logging.getLogger().handlers:
        handler = logging.StreamHandler()
        handler.addFilter(RequestIdFilter())
        logging.basicConfig(format=LOG_FORMAT, handlers=[handler])


def create_app() -> FastAPI:
    validate_env_settings()
    _configure_logging()

    app = FastAPI(title="AffiliateHub Payouts API", version="1.0.0")

    # -----------------------------
    # MIDDLEWARE
    # -----------------------------
    app.add_middleware(RequestContextMiddleware)
    if (settings.ENV or "dev").strip().lower() in {"dev", "local", "test"}:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=DEV_CORS_ORIGINS,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    # -----------------------------
    # ROUTERS
    # -----------------------------
    app.include_router(health_router)
    app.include_router(metrics_router)
    app.include_router(payouts_router)
    app.include_router(wallet_router)
    app.include_router(admin_payouts_router)
    app.include_router(admin_wallet_router)

    @app.exception_handler(PayoutError)
    async def payout_error_handler(request: Request, exc: PayoutError):
        status = http_status_for(exc)
        if status >= 500:
            logger.warning("store unavailable path=%s code=%s", request.url.path, exc.code)
        return JSONResponse(status_code=status, content=exc.as_dict())

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception(
            "unhandled error method=%s path=%s request_id=%s",
            request.method,
            request.url.path,
            get_request_id(),
        )
        return JSONResponse(
            status_code=500,
            content={"detail": "Internal server error"},
        )

    return app


app = create_app()
