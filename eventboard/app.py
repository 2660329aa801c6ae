"""
FastAPI application entry point for the event board.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.middleware.sessions import SessionMiddleware

from eventboard.config import DEFAULT_SESSION_SECRET, get_settings
from eventboard.errors import EventBoardError
from eventboard.routes import auth_router, router

logger = logging.getLogger(__name__)


async def handle_event_board_error(request: Request, exc: EventBoardError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


def create_app() -> FastAPI:
    settings = get_settings()
    logging.basicConfig(level=settings.log_level.upper())
    if settings.session_secret == DEFAULT_SESSION_SECRET:
        logger.warning("SESSION_SECRET not set; session cookies use the built-in default key")

    app = FastAPI(title="Event Board Backend (FastAPI)", version="0.1.0")
    app.add_middleware(
        SessionMiddleware,
        secret_key=settings.session_secret,
        same_site=settings.session_same_site,
        https_only=settings.session_https_only,
    )
    app.add_exception_handler(EventBoardError, handle_event_board_error)
    app.include_router(router, prefix=settings.api_prefix)
    app.include_router(auth_router)

    @app.get("/healthz")
    def healthz():
        return {"status": "ok"}

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=3000)
