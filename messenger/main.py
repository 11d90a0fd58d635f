"""
Main application module: REST API and Socket.IO served from one ASGI app.
"""

import logging
from contextlib import asynccontextmanager
from typing import cast

import socketio
import uvicorn
from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from starlette.types import ExceptionHandler

from .chat import chat_router, message_router
from .core.config import get_settings
from .core.limiter import limiter
from .realtime import SocketServer
from .shared.db import mongo
from .shared.db.exceptions import DatabaseUnavailable
from .shared.logging_config import setup_logging
from .shared.utils.retry import CircuitBreaker, with_retry
from .users import router as auth_router

# Load environment variables
load_dotenv()

settings = get_settings()
setup_logging(settings.LOG_LEVEL)
logger = logging.getLogger(__name__)

socket_server = SocketServer(settings)

mongo_circuit_breaker = CircuitBreaker(
    name="mongo-connection",
    failure_threshold=3,
    reset_timeout=5,
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager to handle startup and shutdown events
    """
    logger.info("Starting messenger backend...")
    try:
        await with_retry(
            mongo.init_mongo,
            max_attempts=5,
            initial_delay=1,
            max_delay=10,
            circuit_breaker=mongo_circuit_breaker,
        )
        logger.info("MongoDB connection established")
    except Exception as e:
        logger.error(f"Error during startup: {e}")
        # Live relay keeps working without the database
        logger.warning("Messenger started with degraded functionality")

    yield  # FastAPI serves requests during this period

    logger.info("Shutting down messenger backend...")
    await socket_server.shutdown()
    await mongo.close_mongo_connection()
    logger.info("Messenger shutdown complete")


fastapi_app = FastAPI(
    title=f"{settings.PROJECT_NAME} API",
    description="Authentication, chats and messages for the messenger",
    version=settings.VERSION,
    lifespan=lifespan,
)

fastapi_app.state.limiter = limiter
fastapi_app.state.socket_server = socket_server
fastapi_app.add_exception_handler(
    RateLimitExceeded, cast(ExceptionHandler, _rate_limit_exceeded_handler)
)
fastapi_app.add_middleware(SlowAPIMiddleware)
fastapi_app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

fastapi_app.include_router(auth_router)
fastapi_app.include_router(chat_router)
fastapi_app.include_router(message_router)


@fastapi_app.exception_handler(DatabaseUnavailable)
async def database_unavailable_handler(request: Request, exc: DatabaseUnavailable):
    logger.error(f"{request.method} {request.url.path} without a database: {exc}")
    return JSONResponse(
        status_code=503, content={"detail": "Database unavailable"}
    )


@fastapi_app.get("/")
async def root():
    """Root endpoint that returns a welcome message."""
    return {"message": "Chat App API is running"}


@fastapi_app.get("/health")
async def health_check():
    """Health check endpoint for the service."""
    mongo_state = "open" if mongo_circuit_breaker.is_open() else "closed"
    connected = mongo.db is not None
    return {
        "status": "healthy" if connected else "degraded",
        "database": "connected" if connected else "unavailable",
        "circuit_breakers": {"mongo": mongo_state},
        "online_users": len(socket_server.presence),
    }


app = socketio.ASGIApp(
    socket_server.sio,
    other_asgi_app=fastapi_app,
    socketio_path=settings.SOCKET_IO_PATH,
)


if __name__ == "__main__":
    uvicorn.run(
        "messenger.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
    )
