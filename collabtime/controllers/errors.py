# type: ignore
# pyright: reportMissingImports=false, reportGeneralTypeErrors=false
"""
Exception -> HTTPException translation shared by the controllers.
"""

from fastapi import HTTPException
from pydantic import ValidationError

from collabtime.core.errors import (
    ActionFailedError,
    ForbiddenError,
    SessionRequiredError,
    UnauthorizedError,
)

HANDLED_ERRORS = (ActionFailedError, ForbiddenError, SessionRequiredError,
                  UnauthorizedError, KeyError, ValueError)


def http_error(exc: Exception) -> HTTPException:
    if isinstance(exc, (SessionRequiredError, UnauthorizedError)):
        return HTTPException(status_code=401, detail=str(exc))
    if isinstance(exc, ForbiddenError):
        return HTTPException(status_code=403, detail=str(exc))
    if isinstance(exc, ActionFailedError):
        return HTTPException(status_code=409, detail=str(exc))
    if isinstance(exc, KeyError):
        return HTTPException(status_code=404, detail=exc.args[0] if exc.args else "Not found")
    if isinstance(exc, ValidationError):
        return HTTPException(
            status_code=422,
            detail=exc.errors(include_url=False, include_context=False),
        )
    return HTTPException(status_code=400, detail=str(exc))
