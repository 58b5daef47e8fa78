import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from backend.api import realtime, scheduled_rides
from backend.config import config
from backend.db import database
from backend.event_relay import RedisEventRelay
from backend.exceptions import RideTrackingError
from backend.websocket import broadcaster, manager

logging.basicConfig(
    level=getattr(logging, config.LOG_LEVEL, logging.INFO),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    if database.init_engine() is not None:
        database.create_tables()

    relay = None
    if config.REDIS_RELAY_ENABLED:
        relay = RedisEventRelay(broadcaster)
        if await relay.start():
            app.state.event_publisher = relay
        else:
            await relay.stop()
            relay = None

    yield

    if relay is not None:
        app.state.event_publisher = None
        await relay.stop()


app = FastAPI(title="Ride Tracking API", version="1.0.0", lifespan=lifespan)

# Enable CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(RideTrackingError)
async def ride_tracking_error_handler(request: Request, exc: RideTrackingError):
    return JSONResponse(status_code=exc.status_code, content={"success": False, "message": exc.message})


@app.exception_handler(RequestValidationError)
async def request_validation_error_handler(request: Request, exc: RequestValidationError):
    errors = [
        {"field": ".".join(str(item) for item in err.get("loc", ()) if item != "body"), "message": err.get("msg")}
        for err in exc.errors()
    ]
    message = "; ".join(f"{e['field']}: {e['message']}" if e["field"] else str(e["message"]) for e in errors)
    return JSONResponse(status_code=400, content={"success": False, "message": message, "errors": errors})


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(status_code=exc.status_code, content={"success": False, "message": str(exc.detail)})


@app.exception_handler(SQLAlchemyError)
async def database_error_handler(request: Request, exc: SQLAlchemyError):
    logger.error(f"Database error on {request.method} {request.url.path}: {exc}")
    return JSONResponse(status_code=500, content={"success": False, "message": "Server error"})


app.include_router(scheduled_rides.router)
if config.WEBSOCKET_ENABLED:
    app.include_router(realtime.router)


@app.get("/")
def read_root():
    return {
        "message": "Ride Tracking API",
        "version": app.version,
        "endpoints": {
            "scheduled_rides": "/api/scheduled-rides",
            "realtime": "/ws/rides",
        },
    }


@app.get("/health")
def health():
    return {
        "status": "ok",
        "database": database.is_database_available(),
        "websocket_connections": manager.get_connection_count(),
        "redis_relay": getattr(app.state, "event_publisher", None) is not None,
    }


@app.get("/api/config")
def read_config():
    return config.get_config_dict()
