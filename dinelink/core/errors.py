"""
Domain errors for the bills service.

Every error is an HTTPException so services can raise them directly and
FastAPI renders them as {"detail": message} with the matching status code.
"""

import logging
from contextlib import contextmanager
from fastapi import HTTPException
from sqlalchemy.exc import SQLAlchemyError

logger = logging.getLogger(__name__)


class BillingError(HTTPException):
    status_code = 400

    def __init__(self, detail: str):
        super().__init__(status_code=type(self).status_code, detail=detail)


class NotFound(BillingError):
    status_code = 404


class AccessDenied(BillingError):
    status_code = 403


class Unauthorized(BillingError):
    status_code = 403


class InvalidInput(BillingError):
    status_code = 400


class InvalidState(BillingError):
    status_code = 409


class StorageError(BillingError):
    status_code = 503


@contextmanager
def storage_errors(action: str):
    """Translate SQLAlchemy failures raised inside the block into StorageError."""
    try:
        yield
    except SQLAlchemyError as e:
        logger.error("Failed to %s: %s", action, e)
        raise StorageError(f"Failed to {action}") from e
