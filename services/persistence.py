"""
Unique-constraint translation for writes.

Services check uniqueness up front; the database constraint still catches a
concurrent writer, and its IntegrityError is turned into DuplicateKeyError.
"""
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from services.exceptions import DuplicateKeyError
import logging

logger = logging.getLogger(__name__)


def flush_or_duplicate(db: Session, message: str):
    try:
        db.flush()
    except IntegrityError:
        db.rollback()
        logger.warning(message)
        raise DuplicateKeyError(message)


def commit_or_duplicate(db: Session, message: str):
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        logger.warning(message)
        raise DuplicateKeyError(message)
