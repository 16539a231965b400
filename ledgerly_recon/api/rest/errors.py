from fastapi import HTTPException

from ledgerly_recon.core.exceptions import (
    ColumnDetectionError,
    DocumentAlreadyMatchedError,
    DocumentNotFoundError,
    IdempotencyConflictError,
    StatementFormatError,
    TransactionNotFoundError,
)


def to_http_exception(error: ValueError) -> HTTPException:
    """Translate a service-layer ValueError into the matching HTTP error"""
    if isinstance(error, ColumnDetectionError):
        return HTTPException(status_code=422, detail={"message": str(error), "headers": error.headers})
    if isinstance(error, StatementFormatError):
        return HTTPException(status_code=400, detail=str(error))
    if isinstance(error, (TransactionNotFoundError, DocumentNotFoundError)):
        return HTTPException(status_code=404, detail=str(error))
    if isinstance(error, (DocumentAlreadyMatchedError, IdempotencyConflictError)):
        return HTTPException(status_code=409, detail=str(error))
    return HTTPException(status_code=400, detail=str(error))
