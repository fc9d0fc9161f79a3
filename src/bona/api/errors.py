"""
Error envelope for access-control failures.

Every AccessControlError raised by a service is rendered as:
    {"error": {"type": "<CODE>", "message": "<human readable>"}}
with the HTTP status for its class.
"""
import logging
from typing import Dict, Type

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from bona.errors import (
    AccessControlError,
    AlreadyMemberError,
    AuditWriteFailedError,
    CannotModifyOwnerError,
    CannotRemoveOwnerError,
    InsufficientPermissionsError,
    InvalidInvitationOptionsError,
    InvalidTokenError,
    InvitationDeactivatedError,
    InvitationExhaustedError,
    InvitationExpiredError,
    NotAMemberError,
    OwnerAlreadyExistsError,
)

logger = logging.getLogger(__name__)

ERROR_STATUS: Dict[Type[AccessControlError], int] = {
    NotAMemberError: status.HTTP_404_NOT_FOUND,
    AlreadyMemberError: status.HTTP_409_CONFLICT,
    OwnerAlreadyExistsError: status.HTTP_409_CONFLICT,
    InsufficientPermissionsError: status.HTTP_403_FORBIDDEN,
    CannotModifyOwnerError: status.HTTP_403_FORBIDDEN,
    CannotRemoveOwnerError: status.HTTP_403_FORBIDDEN,
    InvalidInvitationOptionsError: status.HTTP_400_BAD_REQUEST,
    InvalidTokenError: status.HTTP_404_NOT_FOUND,
    InvitationDeactivatedError: status.HTTP_410_GONE,
    InvitationExpiredError: status.HTTP_410_GONE,
    InvitationExhaustedError: status.HTTP_410_GONE,
    AuditWriteFailedError: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def status_for(exc: AccessControlError) -> int:
    for cls in type(exc).__mro__:
        if cls in ERROR_STATUS:
            return ERROR_STATUS[cls]
    return status.HTTP_400_BAD_REQUEST


def make_error_envelope(error_type: str, message: str) -> dict:
    return {"error": {"type": error_type, "message": message}}


async def access_control_exception_handler(request: Request, exc: AccessControlError) -> JSONResponse:
    status_code = status_for(exc)
    if status_code >= 500:
        logger.error(f"{exc.code} on {request.method} {request.url.path}: {exc}")
    else:
        logger.info(f"{exc.code} on {request.method} {request.url.path}: {exc}")
    return JSONResponse(
        status_code=status_code,
        content=make_error_envelope(exc.code, str(exc)),
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AccessControlError, access_control_exception_handler)
