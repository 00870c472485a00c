"""Translate failed lifecycle results into HTTP errors."""

from fastapi import HTTPException

from rideshare.domain.errors import ErrorCode
from rideshare.domain.results import OperationResult

HTTP_STATUS: dict[ErrorCode, int] = {
    ErrorCode.VALIDATION: 422,
    ErrorCode.NOT_FOUND: 404,
    ErrorCode.FORBIDDEN: 403,
    ErrorCode.CAPACITY: 409,
    ErrorCode.DUPLICATE_BOOKING: 409,
    ErrorCode.RIDE_CLOSED: 409,
    ErrorCode.ILLEGAL_TRANSITION: 409,
    ErrorCode.NOT_VERIFIED: 428,
    ErrorCode.CONFLICT: 409,
    ErrorCode.UNAVAILABLE: 503,
}


def error(code: ErrorCode, message: str) -> HTTPException:
    return HTTPException(
        status_code=HTTP_STATUS[code],
        detail={"code": code.value, "message": message},
    )


def raise_for_failure(result: OperationResult) -> None:
    if not result.success:
        raise error(result.error, result.message or result.error.value)
