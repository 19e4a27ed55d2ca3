from __future__ import annotations

import logging

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from klevr.api.routes import (
    ai,
    ai_tasks,
    applications,
    auth,
    documents,
    events,
    files,
    jobs,
    notes,
    notifications,
    profile,
    resume,
    saved_searches,
    settings as settings_routes,
)
from klevr.config import get_settings
from klevr.db.init import init_database
from klevr.logging_config import configure_logging

logger = logging.getLogger(__name__)

ROUTERS = (
    ai.router,
    ai_tasks.router,
    applications.router,
    auth.router,
    documents.router,
    events.router,
    files.router,
    jobs.router,
    notes.router,
    notifications.router,
    profile.router,
    resume.router,
    saved_searches.router,
    settings_routes.router,
)


def _validation_message(exc: RequestValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "Invalid request"
    first = errors[0]
    location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    return f"{location}: {first.get('msg')}" if location else str(first.get("msg"))


def create_app() -> FastAPI:
    settings = get_settings()

    app = FastAPI(title=settings.app_name)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origin_list or ["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(HTTPException)
    async def _http_error(_request: Request, exc: HTTPException) -> JSONResponse:
        return JSONResponse({"error": exc.detail}, status_code=exc.status_code, headers=exc.headers)

    @app.exception_handler(RequestValidationError)
    async def _validation_error(_request: Request, exc: RequestValidationError) -> JSONResponse:
        return JSONResponse({"error": _validation_message(exc)}, status_code=400)

    @app.exception_handler(Exception)
    async def _unhandled_error(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse({"error": "Internal server error"}, status_code=500)

    @app.on_event("startup")
    def _startup() -> None:
        configure_logging()
        init_database()

    @app.get("/health")
    def health() -> JSONResponse:
        return JSONResponse({"status": "ok"})

    for router in ROUTERS:
        app.include_router(router)
    return app

