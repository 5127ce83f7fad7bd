# src/SKMS/main.py
from __future__ import annotations

import asyncio
import logging.config
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.routing import APIRoute
from sqlalchemy.exc import IntegrityError
from starlette.responses import JSONResponse

from SKMS.api.routers.auth import router as auth_router
from SKMS.api.routers.faculty import router as faculty_router
from SKMS.api.routers.health import router as health_router
from SKMS.api.routers.student import router as student_router
from SKMS.api.routers.team import router as team_router
from SKMS.app_logger import get_logger, logging_config
from SKMS.core.config import settings
from SKMS.db.session import build_engine, build_sessionmaker
from SKMS.exceptions import SKMSError

logging.config.dictConfig(logging_config(settings.LOG_LEVEL))
log = get_logger("main")


def generate_unique_id(route: APIRoute) -> str:
    tag = route.tags[0] if route.tags else "default"
    return f"{tag}-{route.name}"


def _register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(SKMSError)
    async def skms_error_handler(request: Request, exc: SKMSError):
        level = logging.WARNING if exc.status_code >= 500 else logging.INFO
        log.log(level, "%s %s -> %s %s: %s",
                request.method, request.url.path, exc.status_code, exc.error_code, exc.message)
        return JSONResponse(status_code=exc.status_code, content=exc.to_response())

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=422,
            content={
                "status": "fail",
                "errorCode": "validation_error",
                "message": "Invalid request",
                "errors": jsonable_encoder(exc.errors()),
            },
        )

    @app.exception_handler(IntegrityError)
    async def integrity_error_handler(request: Request, exc: IntegrityError):
        """
        Map DB integrity errors that slipped past the workflows to 4xx.
        - Unique constraint -> 409 Conflict
        - Not-null / FK / Check -> 422
        """
        low = str(getattr(exc, "orig", None) or exc).lower()
        status_code, reason = 400, "Integrity error"
        if "unique constraint" in low or "duplicate key" in low:
            status_code, reason = 409, "Resource already exists"
        elif "foreign key" in low:
            status_code, reason = 422, "Referenced resource does not exist"
        elif "not null" in low or "null value in column" in low:
            status_code, reason = 422, "Missing required field"
        elif "check constraint" in low:
            status_code, reason = 422, "Value out of range"

        log.warning("IntegrityError on %s %s -> %s: %s", request.method, request.url.path, status_code, low)
        return JSONResponse(
            status_code=status_code,
            content={"status": "fail", "errorCode": "integrity_error", "message": reason},
        )

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        log.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(status_code=500, content={"status": "error", "message": "Something went wrong!"})


def create_app(*, engine=None, mailer=None, start_dispatcher: bool | None = None) -> FastAPI:
    """
    Build the API.

    ``engine`` overrides the engine built from DATABASE_URL (tests pass an
    in-memory one). The outbox dispatcher runs inside the app when
    OUTBOX_ENABLED is set, unless ``start_dispatcher`` says otherwise.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # ---------------- STARTUP ----------------
        own_engine = engine is None
        app.state.db_engine = engine or build_engine()
        app.state.async_sessionmaker = build_sessionmaker(app.state.db_engine)

        run_dispatcher = settings.OUTBOX_ENABLED if start_dispatcher is None else start_dispatcher
        stop = asyncio.Event()
        task = None
        if run_dispatcher:
            from SKMS.services.dispatcher import run_forever
            from SKMS.services.mailer import SMTPMailer

            task = asyncio.create_task(
                run_forever(app.state.async_sessionmaker, mailer or SMTPMailer(), stop=stop),
                name="skms-dispatcher",
            )
        log.info("startup: %s %s (dispatcher=%s)", settings.APP_NAME, settings.APP_VERSION, bool(task))
        try:
            yield
        finally:
            # ---------------- SHUTDOWN ----------------
            if task is not None:
                stop.set()
                await task
            if own_engine:
                await app.state.db_engine.dispose()
            log.info("shutdown complete")

    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        generate_unique_id_function=generate_unique_id,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[str(o).rstrip("/") for o in settings.cors_origins],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    _register_exception_handlers(app)

    app.include_router(health_router)
    app.include_router(auth_router)
    app.include_router(faculty_router)
    app.include_router(student_router)
    app.include_router(team_router)

    return app
