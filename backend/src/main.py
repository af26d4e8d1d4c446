import asyncio
import logging
from collections.abc import AsyncGenerator, Awaitable, Callable
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request, Response, status
from fastapi.responses import JSONResponse
from nodebootstrap.api import bootstrap as bootstrap_api
from nodebootstrap.api.schemas import ErrorResponse
from nodebootstrap.ca.keystore import KeyStore
from nodebootstrap.identity import IdentityResolver, new_identity_resolver
from nodebootstrap.metrics import bootstrap_metrics
from nodebootstrap.services.bootstrap import BootstrapService
from opentelemetry.instrumentation.botocore import BotocoreInstrumentor
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.logging import LoggingInstrumentor
from shared.config import settings
from shared.logging import setup_logging
from shared.metrics import setup_metrics
from shared.tls import TLSConfig
from shared.tracing import setup_tracing

logger = logging.getLogger(__name__)


def build_bootstrap_service() -> BootstrapService:
    """Load the keystore and identity resolver from settings.

    Keystore errors propagate: the service must not start with an incomplete
    trust store.
    """
    keystore = KeyStore.load(settings.KEYSTORE_PATH, settings.ca_names)

    resolver: IdentityResolver | None = None
    if settings.CLOUD_PROVIDER:
        resolver = new_identity_resolver(settings.CLOUD_PROVIDER, settings.AWS_REGION)
    else:
        logger.warning("identity_resolver_disabled", extra={"reason": "no_cloud_provider"})

    return BootstrapService(keystore, resolver)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    # Startup
    logger_provider = setup_logging()
    tracer_provider = setup_tracing(settings.APP_NAME, settings.APP_ENV)
    meter_provider = setup_metrics(settings.APP_NAME, settings.APP_ENV)

    LoggingInstrumentor().instrument(set_logging_format=True)
    BotocoreInstrumentor().instrument()

    # Keystore reads and instance metadata region discovery block
    bootstrap_api.set_bootstrap_service(await asyncio.to_thread(build_bootstrap_service))

    yield
    # Shutdown: flush buffered telemetry
    tracer_provider.shutdown()
    meter_provider.shutdown()
    logger_provider.shutdown()


app = FastAPI(title=settings.APP_NAME, lifespan=lifespan)


@app.middleware("http")
async def recovery(
    request: Request, call_next: Callable[[Request], Awaitable[Response]]
) -> Response:
    """Keep one failing request from taking down the server.

    Any exception escaping a handler is logged with its traceback and turned
    into a 500 for that request only.
    """
    try:
        return await call_next(request)
    except Exception:
        logger.exception(
            "failed to handle request: threw exception",
            extra={"path": request.url.path, "method": request.method},
        )
        bootstrap_metrics.record_bootstrap_request("error")
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=ErrorResponse(error="internal server error", code="INTERNAL").model_dump(),
        )


# Instrument FastAPI
FastAPIInstrumentor.instrument_app(app)

# Include routers
app.include_router(bootstrap_api.router)


@app.get("/health")
async def health_check() -> dict[str, str]:
    return {"status": "ok", "service": settings.APP_NAME}


def run() -> None:
    """Serve the app over TLS on SERVER_LISTEN."""
    if not settings.SERVER_CERTIFICATE_PATH or not settings.SERVER_KEY_PATH:
        raise RuntimeError("SERVER_CERTIFICATE_PATH and SERVER_KEY_PATH must be set")

    host, port = settings.listen_address
    config = TLSConfig(
        app,
        host=host,
        port=port,
        ssl_certfile=settings.SERVER_CERTIFICATE_PATH,
        ssl_keyfile=settings.SERVER_KEY_PATH,
        log_level=settings.LOG_LEVEL.lower(),
    )
    uvicorn.Server(config).run()


if __name__ == "__main__":
    run()
