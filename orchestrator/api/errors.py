"""
Exception handlers: map errors to {"error", "code"} JSON bodies.

Details and raw exception text are only included when APP_ENV is development.
"""

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from orchestrator.core import config
from orchestrator.core.errors import AgentError, CollaboratorError

logger = logging.getLogger(__name__)


def _is_development() -> bool:
    return config.APP_ENV == "development"


async def agent_error_handler(request: Request, exc: AgentError) -> JSONResponse:
    if isinstance(exc, CollaboratorError):
        logger.warning(
            "[api] %s %s -> %s provider=%s upstream_status=%s: %s",
            request.method, request.url.path, exc.code, exc.provider, exc.upstream_status, exc.message,
        )
    else:
        logger.info("[api] %s %s -> %s: %s", request.method, request.url.path, exc.code, exc.message)
    body = {"error": exc.message, "code": exc.code}
    if _is_development() and exc.details is not None:
        body["details"] = exc.details
    return JSONResponse(status_code=exc.status, content=body)


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    first = errors[0] if errors else {}
    field = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
    message = f"{field}: {first.get('msg', 'invalid value')}" if field else "Invalid request"
    body = {"error": message, "code": "VALIDATION_ERROR"}
    if _is_development():
        body["details"] = [
            {"loc": list(e.get("loc", ())), "msg": e.get("msg", ""), "type": e.get("type", "")}
            for e in errors
        ]
    return JSONResponse(status_code=400, content=body)


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("[api] %s %s failed", request.method, request.url.path)
    message = str(exc) if _is_development() else "Internal server error"
    return JSONResponse(status_code=500, content={"error": message, "code": "INTERNAL_ERROR"})


def install_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AgentError, agent_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
