import logging

from fastapi import HTTPException, status
from sqlalchemy.orm import Session

logger = logging.getLogger("hrportal.errors")

GENERIC_BACKEND_FAILURE = "Something went wrong. Please try again."


def backend_unavailable(db: Session, log_message: str, *args) -> HTTPException:
    """Roll back, log the active exception and build the generic 503.

    Call from inside an ``except SQLAlchemyError`` block.
    """
    db.rollback()
    logger.exception(log_message, *args)
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail=GENERIC_BACKEND_FAILURE
    )
