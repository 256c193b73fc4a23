import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from payrelay.config import missing_required, settings
from payrelay.errors import ConfigError, RelayError
from payrelay.log import configure_logging
from payrelay.routes.checkout import router as checkout_router
from payrelay.routes.health import router as health_router
from payrelay.routes.profile import router as profile_router
from payrelay.routes.webhooks import router as webhooks_router

logger = structlog.get_logger(__name__)

CORS_HEADERS = ["authorization", "x-client-info", "apikey", "content-type"]

async def relay_error_handler(request: Request, exc: RelayError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("request_failed", path=request.url.path, error=exc.message, status=exc.status_code)
    else:
        logger.info("request_rejected", path=request.url.path, error=exc.message, status=exc.status_code)
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})

def check_config() -> None:
    missing = missing_required(settings)
    if not missing:
        return
    if settings.app_env == "prod":
        raise ConfigError(f"missing required configuration: {', '.join(missing)}", missing=missing)
    logger.warning("config_incomplete", missing=missing)

def create_app() -> FastAPI:
    configure_logging(settings.log_level, settings.log_json)
    check_config()

    app = FastAPI(title="payrelay-api", version="0.1.0")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=CORS_HEADERS,
    )
    app.add_exception_handler(RelayError, relay_error_handler)

    app.include_router(health_router)
    app.include_router(profile_router)
    app.include_router(checkout_router)
    app.include_router(webhooks_router)
    return app

app = create_app()
