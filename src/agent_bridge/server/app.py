"""
FastAPI application for the session listing and document services.
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from agent_bridge.errors import BridgeError, InvalidCursor, NotFound, ScopeError, StorageError
from agent_bridge.server.db import Database, database_url_from_env
from agent_bridge.server.routes import router

logger = logging.getLogger(__name__)


def status_for(exc: BridgeError) -> int:
    if isinstance(exc, InvalidCursor):
        return 400
    if isinstance(exc, NotFound):
        return 404
    if isinstance(exc, ScopeError):
        return exc.status_code
    if isinstance(exc, StorageError):
        return 500
    return 400


async def bridge_error_handler(request: Request, exc: BridgeError) -> JSONResponse:
    status = status_for(exc)
    if status >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    else:
        logger.info("%s %s rejected (%s): %s", request.method, request.url.path, exc.code, exc.message)
    return JSONResponse(status_code=status, content={"error": exc.message, "code": exc.code})


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed parameters or bodies get the same ``{error, code}`` shape as every other client error."""
    problems = "; ".join(
        f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}" for err in exc.errors()
    )
    logger.info("%s %s rejected (invalid_request): %s", request.method, request.url.path, problems)
    return JSONResponse(status_code=400, content={"error": f"Invalid request: {problems}", "code": "invalid_request"})


def create_app(database: Optional[Database] = None) -> FastAPI:
    """Build the app. Without ``database`` one is opened from the environment."""
    db = database or Database(database_url_from_env())

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await db.init_db()
        logger.info("Database ready: %s", db.database_url)
        yield
        await db.close()

    app = FastAPI(title="agent-bridge", version="0.1.0", lifespan=lifespan)
    app.state.database = db
    app.add_exception_handler(BridgeError, bridge_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.include_router(router)

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    return app


def run(host: str = "127.0.0.1", port: int = 3000, database_url: Optional[str] = None) -> None:
    app = create_app(Database(database_url) if database_url else None)
    uvicorn.run(app, host=host, port=port)
