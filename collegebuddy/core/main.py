"""
College Buddy - Main FastAPI application.

Campus marketplace and study-notes backend with live direct messaging.
"""
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
import logging

from collegebuddy.core.config import settings
from collegebuddy.core.memory.db import init_db
from collegebuddy.core.api import health, auth, users, messages
from collegebuddy.core.websocket.handler import gateway
from collegebuddy.core.websocket.routes import websocket_endpoint

logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Handle application startup and shutdown."""
    logger.info("Initializing database...")
    init_db()
    logger.info("Database initialized")
    logger.info("College Buddy binding on %s:%s", settings.api_host, settings.api_port)

    yield

    # Let pushes already scheduled finish; the registry dies with the process
    await gateway.drain()
    logger.info("College Buddy shutting down")


app = FastAPI(
    title="College Buddy",
    description="Campus marketplace, study notes and live messaging",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log all HTTP requests. Health checks at DEBUG to reduce log spam."""
    path = request.url.path
    level = logger.debug if path == "/health" else logger.info
    level("%s %s", request.method, path)
    response = await call_next(request)
    level("%s %s - %s", request.method, path, response.status_code)
    return response


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Handle validation errors."""
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content=jsonable_encoder({"detail": exc.errors()}),
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """Handle general exceptions."""
    logger.error("Unhandled exception: %s", exc, exc_info=True)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "detail": "Internal server error",
            "error": str(exc) if settings.debug else None,
        },
    )


# Live direct messages
app.add_api_websocket_route("/ws", websocket_endpoint)

app.include_router(health.router)
app.include_router(auth.router)
app.include_router(users.router)
app.include_router(messages.router)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "collegebuddy.core.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.debug,
    )
