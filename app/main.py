import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from app.cache.layer import CacheLayer
from app.core.config import get_settings
from app.core.exceptions import ConflictError, DuplicateEmailError, NotFoundError
from app.database import create_db_and_tables, ping_database
from app.routers import boards, comments, history, tasks, users

settings = get_settings()

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    if settings.create_tables_on_startup:
        await create_db_and_tables()
    app.state.cache = CacheLayer(settings)
    await app.state.cache.init_cache()
    yield
    await app.state.cache.close()


app = FastAPI(
    title="Task Board API",
    description="Boards, tasks, comments and task history with PostgreSQL and a Redis read-through cache",
    swagger_ui_parameters={"displayRequestDuration": True},
    version="1.0.0",
    lifespan=lifespan,
)

# Include routers
app.include_router(users.router)
app.include_router(boards.router)
app.include_router(tasks.router)
app.include_router(comments.router)
app.include_router(history.router)


@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError):
    return JSONResponse(
        status_code=status.HTTP_404_NOT_FOUND, content={"detail": exc.message}
    )


@app.exception_handler(ConflictError)
async def conflict_handler(request: Request, exc: ConflictError):
    return JSONResponse(
        status_code=status.HTTP_409_CONFLICT,
        content={
            "detail": exc.message,
            "dependent_count": exc.dependent_count,
            "dependent_type": exc.dependent_type,
        },
    )


@app.exception_handler(DuplicateEmailError)
async def duplicate_email_handler(request: Request, exc: DuplicateEmailError):
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST, content={"detail": exc.message}
    )


@app.exception_handler(SQLAlchemyError)
async def store_error_handler(request: Request, exc: SQLAlchemyError):
    logger.error(f"Primary store error on {request.method} {request.url.path}: {exc}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal storage error"},
    )


@app.get("/")
async def root():
    return {
        "message": "Welcome to Task Board API",
        "docs": "/docs",
        "version": "1.0.0",
    }


@app.get("/health")
async def health_check(request: Request):
    try:
        database = await ping_database()
    except (SQLAlchemyError, OSError) as e:
        logger.error(f"Database health check failed: {e}")
        database = False
    cache = await request.app.state.cache.ping()
    return {
        "status": "healthy" if database else "degraded",
        "database": database,
        "cache": cache,
        "cache_stats": request.app.state.cache.get_stats(),
    }
