# barbershop/main.py

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from barbershop.config import CORS_ORIGINS, LOG_LEVEL, validate_runtime_config
from barbershop.core import MalformedTimeError
from barbershop.db import create_db_and_tables
from barbershop.routers import (
    appointments_routes,
    auth_routes,
    availability_routes,
    barbers_routes,
    payments_routes,
    services_routes,
    settings_routes,
    stats_routes,
    users_routes,
)

logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")
logger = logging.getLogger(__name__)

app = FastAPI(title="Barbershop Booking API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.on_event("startup")
def initialize_database() -> None:
    validate_runtime_config()
    try:
        create_db_and_tables()
    except SQLAlchemyError:
        logger.exception("Database initialization failed. Check DATABASE_URL.")


def _envelope(status_code: int, message: str, headers=None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"status": status_code, "message": message},
        headers=headers,
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return _envelope(exc.status_code, str(exc.detail), getattr(exc, "headers", None))


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    if errors:
        first = errors[0]
        field = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        message = f"{field}: {first.get('msg')}" if field else first.get("msg")
    else:
        message = "Invalid request"
    return _envelope(422, message)


@app.exception_handler(MalformedTimeError)
async def malformed_time_handler(request: Request, exc: MalformedTimeError):
    # stored rows with bad HH:mm surface here
    logger.error("Malformed time on %s: %s", request.url.path, exc)
    return _envelope(422, str(exc))


@app.get("/health")
def health_check():
    return {"status": "ok"}


app.include_router(auth_routes.router)
app.include_router(users_routes.router)
app.include_router(services_routes.router)
app.include_router(barbers_routes.router)
app.include_router(appointments_routes.router)
app.include_router(availability_routes.router)
app.include_router(settings_routes.router)
app.include_router(payments_routes.router)
app.include_router(stats_routes.router)
