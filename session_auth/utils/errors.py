# session_auth/utils/errors.py
import logging
from typing import Any, Sequence

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException

logger = logging.getLogger("session_auth.errors")

INTERNAL_ERROR = "Internal server error."


def first_error_message(errors: Sequence[Any]) -> str:
    """ Human-readable message for the first validation error """
    if not errors:
        return "Invalid request."
    err = errors[0]
    ctx_error = (err.get("ctx") or {}).get("error")
    if err.get("type") == "value_error" and ctx_error is not None:
        # our own validators already phrase the message
        return str(ctx_error)
    fields = [str(p) for p in err.get("loc", ()) if p != "body" and not isinstance(p, int)]
    msg = err.get("msg") or "Invalid value"
    return f"{'.'.join(fields)}: {msg}" if fields else msg


async def http_exception_handler(request: Request, exc: HTTPException):
    return JSONResponse({"error": exc.detail}, status_code=exc.status_code, headers=getattr(exc, "headers", None))


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    message = first_error_message(exc.errors())
    logger.info(f"Validation error on {request.url.path}: {message}")
    return JSONResponse({"error": message}, status_code=status.HTTP_400_BAD_REQUEST)


def install_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
