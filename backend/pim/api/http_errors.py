from fastapi import HTTPException

from pim.services.errors import (
    AlreadyExists,
    CatalogException,
    InvalidOperation,
    NotFound,
    StockLockTimeout,
)

STATUS_BY_ERROR = {
    NotFound: 404,
    AlreadyExists: 409,
    InvalidOperation: 400,
    StockLockTimeout: 409,
}


def to_http(e: CatalogException) -> HTTPException:
    status = next((code for cls, code in STATUS_BY_ERROR.items() if isinstance(e, cls)), 400)
    return HTTPException(status_code=status, detail={"message": e.message, "details": e.details})
