import logging
from typing import Optional

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from prokiii.api.endpoints import auth as auth_endpoints
from prokiii.api.endpoints import events as event_endpoints
from prokiii.api.endpoints import users as user_endpoints
from prokiii.core.config import settings
from prokiii.core.exceptions import StoreError
from prokiii.core.logging_config import setup_logging
from prokiii.services.event_service import EventService
from prokiii.services.roster_service import RosterService
from prokiii.services.user_service import UserService
from prokiii.store import DocumentStore, build_store

logger = logging.getLogger(__name__)

def create_app(store: Optional[DocumentStore] = None) -> FastAPI:
    """Builds the API around ``store``, or around the store configured by DATA_DIR."""
    setup_logging(settings.LOG_LEVEL)

    app = FastAPI(title=settings.PROJECT_NAME)

    if store is None:
        store = build_store(settings.DATA_DIR)
    app.state.store = store
    app.state.roster_service = RosterService(store, timeout=settings.STORE_TIMEOUT_SECONDS)
    app.state.event_service = EventService(store)
    app.state.user_service = UserService(store)

    @app.exception_handler(StoreError)
    async def store_error_handler(request: Request, exc: StoreError):
        logger.warning("Store failure on %s %s: %s", request.method, request.url.path, exc)
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"detail": "The service is temporarily unavailable, please try again."},
        )

    app.include_router(auth_endpoints.router, prefix="/auth", tags=["Authentication"])
    app.include_router(user_endpoints.router, prefix="/users", tags=["Users"])
    app.include_router(event_endpoints.router, prefix="/events", tags=["Events"])

    @app.get("/")
    async def root():
        return {"message": settings.PROJECT_NAME}

    return app
