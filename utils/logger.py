"""
Database-backed activity and error logging
"""
from sqlalchemy.orm import Session
from models.log import ActivityLog, ErrorLog
from database import SessionLocal
from typing import Optional
import logging

logger = logging.getLogger(__name__)

class DatabaseLogger:
    """Centralized database logger for audit and error records"""

    @staticmethod
    def log_activity(
        db: Session,
        action: str,
        user_id: Optional[int] = None,
        entity_type: Optional[str] = None,
        entity_id: Optional[int] = None,
        description: Optional[str] = None
    ) -> ActivityLog:
        """Record an activity inside the caller's transaction.

        Nothing is committed here: the entry is persisted together with the
        change it describes, or not at all.
        """
        entry = ActivityLog(
            user_id=user_id,
            action=action,
            entity_type=entity_type,
            entity_id=entity_id,
            description=description
        )
        db.add(entry)
        return entry

    @staticmethod
    def log_error(
        error_type: str,
        error_message: str,
        stack_trace: Optional[str] = None,
        endpoint: Optional[str] = None,
        method: Optional[str] = None
    ):
        """Persist an unhandled error using a dedicated session"""
        if SessionLocal is None:
            return

        db = SessionLocal()
        try:
            db.add(ErrorLog(
                error_type=error_type,
                error_message=error_message[:5000],
                stack_trace=stack_trace,
                endpoint=endpoint,
                method=method
            ))
            db.commit()
        except Exception as e:
            logger.warning(f"Failed to write error log: {e}")
            db.rollback()
        finally:
            db.close()
