"""
FastAPI server fronting a WhatsApp Web session.

Tracks the session's connection state, relays inbound messages to an external
processing endpoint and exposes send/bulk-send/logout/info endpoints.
"""

from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, ORJSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from constants import ENDPOINTS
from core.container import container
from core.logging import configure_logging, get_logger
from routers import connection, messages
from routers.connection import utc_timestamp
from services.connection_state import ConnectionState
from services.exceptions import WhatsAppError

# Initialize settings and logging
settings = container.settings()
configure_logging(settings)
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan management."""
    # Startup
    logger.info("Starting WhatsApp relay server", host=settings.host, port=settings.port)
    for method, path, description in ENDPOINTS:
        logger.info("Endpoint", method=method, path=path, description=description)
    if not settings.relay_enabled:
        logger.warning("RELAY_URL is not set; inbound messages will not be forwarded")

    session = container.session_client()
    session.set_event_handler(container.session_event_handler().handle)
    await session.start()

    yield

    # Shutdown
    logger.info("Shutting down gracefully...")
    try:
        await session.destroy()
    except Exception as e:
        logger.error("Session teardown failed", error=f"{type(e).__name__}: {e}")
    logger.info("Shutdown complete")


# Create FastAPI app
app = FastAPI(
    title="WhatsApp Relay Server",
    version="1.0.0",
    description="HTTP facade for a WhatsApp Web session with inbound message relay",
    lifespan=lifespan,
    default_response_class=ORJSONResponse
)


@app.exception_handler(WhatsAppError)
async def whatsapp_error_handler(request: Request, exc: WhatsAppError):
    if exc.status_code >= 500:
        logger.error("Request failed", path=request.url.path, error=str(exc))
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "error": str(exc)}
    )


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={
            "success": False,
            "error": "Invalid request body",
            "detail": jsonable_errors(exc)
        }
    )


def jsonable_errors(exc: RequestValidationError) -> list:
    return [
        {"loc": list(err.get("loc", ())), "msg": err.get("msg", "")}
        for err in exc.errors()
    ]


class CatchAllExceptionsMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        try:
            return await call_next(request)
        except Exception as e:
            logger.error(f"Unhandled exception: {type(e).__name__}: {str(e)}", exc_info=True)
            return JSONResponse(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                content={
                    "success": False,
                    "error": "Internal server error",
                    "message": str(e)
                }
            )


app.add_middleware(CatchAllExceptionsMiddleware)

# Add CORS middleware (must be AFTER exception middleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(connection.router)
app.include_router(messages.router)


@app.get("/health")
async def health_check(
    state: ConnectionState = Depends(lambda: container.connection_state())
):
    """Liveness plus WhatsApp readiness."""
    return {
        "status": "ok",
        "whatsapp": state.is_ready(),
        "timestamp": utc_timestamp()
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        reload_dirs=["."] if settings.debug else None,
        reload_excludes=["*.pyc", "__pycache__", "*.log"] if settings.debug else None,
        workers=settings.workers
    )
