"""FastAPI application entry point for the Persona Rooms chat API."""
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.engine import Engine

from app.api.routes.chat import router as chat_router
from app.api.routes.users import router as users_router
from app.config import settings
from app.database import create_db_engine, init_db
from app.errors import IdentityNotFound, RoomNotFound, StorageFailure, UniqueViolation
from app.services.chat_service import ChatService

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="[%(asctime)s] %(levelname)s %(name)s - %(message)s",
)
logger = logging.getLogger(__name__)


def create_app(
    engine: Optional[Engine] = None,
    chat_service: Optional[ChatService] = None,
) -> FastAPI:
    """
    Build the application.

    Args:
        engine: Storage engine to use; created from DATABASE_URL when None
        chat_service: Service graph to use; default services when None
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Own the engine: migrate once on startup, dispose on shutdown."""
        owned = engine is None
        app.state.engine = engine if engine is not None else create_db_engine()
        app.state.chat_service = chat_service or ChatService()

        init_db(app.state.engine)
        logger.info("Database initialized")

        yield

        if owned:
            app.state.engine.dispose()
            logger.info("Database engine disposed")

    app = FastAPI(
        title="Persona Rooms API",
        description="Multi-room chat where each room has an assistant persona prompt",
        version="1.0.0",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/health")
    def health_check():
        """Health check endpoint."""
        return {"status": "ok"}

    app.include_router(users_router)
    app.include_router(chat_router)

    @app.exception_handler(IdentityNotFound)
    async def identity_not_found_handler(request: Request, exc: IdentityNotFound):
        return JSONResponse(status_code=401, content={"detail": str(exc)})

    @app.exception_handler(RoomNotFound)
    async def room_not_found_handler(request: Request, exc: RoomNotFound):
        logger.warning("Room lookup failed: %s", exc)
        return JSONResponse(status_code=404, content={"detail": "Room unavailable"})

    @app.exception_handler(UniqueViolation)
    async def unique_violation_handler(request: Request, exc: UniqueViolation):
        return JSONResponse(status_code=409, content={"detail": "Already exists"})

    @app.exception_handler(StorageFailure)
    async def storage_failure_handler(request: Request, exc: StorageFailure):
        logger.error("Storage failure: %s", exc)
        return JSONResponse(
            status_code=503,
            content={"detail": "Chat service temporarily unavailable"},
        )

    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception):
        """Hide internal error details from clients."""
        logger.exception("Unhandled exception: %s", exc)
        return JSONResponse(
            status_code=500,
            content={"detail": "Internal server error"},
        )

    return app


app = create_app()
