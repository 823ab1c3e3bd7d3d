import logging
import time

from fastapi import Depends, FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from . import config
from .database import DatabaseHealth, create_tables, get_db_health, get_session, require_database
from .errors import ConfigurationError, StoreError
from .logging_setup import setup_logging
from .routers import auth, tasks
from .seed import create_sample_data

setup_logging(config.LOG_LEVEL)
logger = logging.getLogger(__name__)

# Create FastAPI app
app = FastAPI(
    title="Personal Task Manager API",
    description="Per-user task management with token-based authentication",
    version="1.0.0",
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials="*" not in config.CORS_ORIGINS,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    started = time.perf_counter()
    response = await call_next(request)
    elapsed_ms = (time.perf_counter() - started) * 1000
    logger.info("%s %s -> %s (%.1f ms)", request.method, request.url.path, response.status_code, elapsed_ms)
    return response


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.detail},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(status_code=400, content={"errors": jsonable_encoder(exc.errors())})


@app.exception_handler(ConfigurationError)
async def configuration_error_handler(request: Request, exc: ConfigurationError):
    logger.error("Server misconfiguration on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=500, content={"error": "Internal server error"})


@app.exception_handler(StoreError)
async def store_error_handler(request: Request, exc: StoreError):
    cause = exc.__cause__ or exc
    logger.error("%s on %s %s: %s", exc, request.method, request.url.path, cause, exc_info=cause)
    return JSONResponse(status_code=500, content={"error": str(exc)})


@app.exception_handler(SQLAlchemyError)
async def database_error_handler(request: Request, exc: SQLAlchemyError):
    logger.error("Database error on %s %s: %s", request.method, request.url.path, exc, exc_info=exc)
    return JSONResponse(status_code=500, content={"error": "Internal server error"})


# Include routers; both are refused with 503 while the database is down
app.include_router(
    auth.router, prefix="/api/auth", tags=["auth"], dependencies=[Depends(require_database)]
)
app.include_router(
    tasks.router, prefix="/api/tasks", tags=["tasks"], dependencies=[Depends(require_database)]
)


# Create tables on startup
@app.on_event("startup")
def on_startup():
    create_tables()
    if config.SEED_SAMPLE_DATA:
        try:
            with get_session() as session:
                create_sample_data(session)
        except SQLAlchemyError:
            logger.exception("Could not create sample data")


@app.get("/")
def read_root():
    return {"message": "Personal Task Manager API"}


@app.get("/api/health")
def health_check(health: DatabaseHealth = Depends(get_db_health)):
    return {
        "status": "ok",
        "db": "connected" if health.is_connected() else "disconnected",
        "env": config.APP_ENV,
    }
