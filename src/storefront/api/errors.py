"""Translate the storefront error taxonomy into HTTP responses.

Every failure leaves the API as ``{"error": <kind>, "detail": <messages>}``
with a status picked by kind. Unexpected exceptions become a generic 500;
their details only reach the log.
"""

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from protean.exceptions import ObjectNotFoundError, ProteanException, ValidationError

from storefront.errors import error_kind, error_messages

logger = structlog.get_logger(__name__)

STATUS_BY_KIND = {
    "NotFound": 404,
    "BadRequest": 400,
    "Conflict": 409,
    "InternalError": 500,
}


def error_response(exc: Exception) -> JSONResponse:
    kind = error_kind(exc)
    return JSONResponse(
        status_code=STATUS_BY_KIND[kind],
        content={"error": kind, "code": type(exc).__name__, "detail": error_messages(exc)},
    )


async def handle_domain_error(request: Request, exc: ProteanException) -> JSONResponse:
    kind = error_kind(exc)
    log = logger.error if kind == "InternalError" else logger.info
    log("request_failed", path=request.url.path, kind=kind, error=type(exc).__name__)
    return error_response(exc)


async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("request_crashed", path=request.url.path, error=type(exc).__name__)
    return JSONResponse(
        status_code=500,
        content={"error": "InternalError", "code": "InternalError", "detail": {"_entity": ["Internal server error"]}},
    )


def register_exception_handlers(app: FastAPI) -> None:
    for exc_class in (ProteanException, ObjectNotFoundError, ValidationError):
        app.add_exception_handler(exc_class, handle_domain_error)
    app.add_exception_handler(Exception, handle_unexpected_error)
