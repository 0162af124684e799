# main.py
import logging
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Callable, Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from fastapi.staticfiles import StaticFiles

from campusvote import __version__
from campusvote.config import ALLOWED_ORIGINS, LOG_LEVEL, UPLOAD_DIR, UPLOAD_URL_PREFIX
from campusvote.date_utils import utcnow
from campusvote.exceptions import CampusVoteError, Unavailable
from campusvote.routes.candidate_routes import router as candidate_router
from campusvote.routes.dashboard_routes import router as dashboard_router
from campusvote.routes.election_routes import router as election_router
from campusvote.routes.feed_routes import router as feed_router
from campusvote.routes.vote_routes import vote_router
from campusvote.services.feed import ActivityFeed
from campusvote.storage_mongo import MongoStorage

logging.basicConfig(
    level=getattr(logging, LOG_LEVEL, logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Connect to MongoDB unless a storage was injected."""
    owns_storage = app.state.storage is None
    if owns_storage:
        app.state.storage = MongoStorage.connect()
        app.state.feed = ActivityFeed(app.state.storage)
    yield
    if owns_storage:
        app.state.storage.close()


async def campusvote_error_handler(request: Request, exc: CampusVoteError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc}")
    else:
        logger.info(f"{request.method} {request.url.path} rejected: {exc}")

    headers = {"Retry-After": "1"} if isinstance(exc, Unavailable) else None
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "error": exc.code, "retryable": exc.is_retryable},
        headers=headers,
    )


def create_app(
    storage: Optional[MongoStorage] = None,
    clock: Callable[[], datetime] = utcnow,
) -> FastAPI:
    app = FastAPI(title="Campus Elections API", version=__version__, lifespan=lifespan)

    app.state.storage = storage
    app.state.feed = ActivityFeed(storage) if storage is not None else None
    app.state.clock = clock

    app.add_middleware(
        CORSMiddleware,
        allow_origins=ALLOWED_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(CampusVoteError, campusvote_error_handler)

    app.include_router(election_router)
    app.include_router(candidate_router)
    app.include_router(vote_router)
    app.include_router(feed_router)
    app.include_router(dashboard_router)

    app.mount(UPLOAD_URL_PREFIX, StaticFiles(directory=UPLOAD_DIR, check_dir=False), name="uploads")

    @app.get("/health", tags=["Root"])
    def health_check():
        if app.state.storage is None:
            raise Unavailable("Database not initialized", operation="health")
        app.state.storage.ping()
        return {"status": "healthy", "database": "MongoDB"}

    @app.get("/", tags=["Root"])
    def read_root():
        return {"message": "Welcome to the Campus Elections API"}

    @app.get("/favicon.ico", include_in_schema=False)
    async def favicon():
        return Response(status_code=204)

    return app


app = create_app()
