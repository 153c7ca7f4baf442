from sqlalchemy.orm import Session
from models import Notification, NotificationType, Trip
from typing import Optional, Dict, Any, List
import logging

logger = logging.getLogger(__name__)

NOTIFICATION_TITLES = {
    NotificationType.TRIP_ASSIGNED: "New trip assigned",
    NotificationType.TRIP_STATUS: "Trip status updated",
    NotificationType.MAINTENANCE: "Maintenance logged",
    NotificationType.FUEL: "Fuel entry recorded",
    NotificationType.INFO: "Information",
}

class NotificationService:
    """Service for creating and managing driver notifications"""

    @staticmethod
    def create_notification(
        db: Session,
        user_id: int,
        notification_type: NotificationType,
        message: str,
        trip_id: Optional[int] = None,
        metadata: Optional[Dict[str, Any]] = None
    ) -> Notification:
        """
        Queue a notification in the caller's transaction

        Args:
            db: Database session
            user_id: Recipient
            notification_type: Type of notification
            message: Body text
            trip_id: Related trip ID
            metadata: Additional data for the client

        Returns:
            Pending notification object, persisted when the caller commits
        """
        notification = Notification(
            user_id=user_id,
            trip_id=trip_id,
            type=notification_type,
            title=NOTIFICATION_TITLES.get(notification_type, notification_type.value),
            message=message,
            extra_data=metadata,
            is_read=False
        )
        db.add(notification)
        return notification

    @staticmethod
    def notify_trip_assigned(db: Session, trip: Trip) -> Notification:
        return NotificationService.create_notification(
            db,
            user_id=trip.driver_id,
            notification_type=NotificationType.TRIP_ASSIGNED,
            message=f"You have been assigned a trip from {trip.start_location} to {trip.end_location} "
                    f"starting {trip.start_date:%Y-%m-%d %H:%M}",
            trip_id=trip.id,
            metadata={"start_date": trip.start_date.isoformat(), "end_date": trip.end_date.isoformat()}
        )

    @staticmethod
    def notify_trip_status(db: Session, trip: Trip) -> Notification:
        return NotificationService.create_notification(
            db,
            user_id=trip.driver_id,
            notification_type=NotificationType.TRIP_STATUS,
            message=f"Trip {trip.start_location} -> {trip.end_location} is now {trip.status.value}",
            trip_id=trip.id,
            metadata={"status": trip.status.value}
        )

    @staticmethod
    def mark_as_read(db: Session, notification_id: int, user_id: int) -> bool:
        """Mark a notification belonging to this user as read"""
        notification = db.query(Notification).filter(
            Notification.id == notification_id,
            Notification.user_id == user_id
        ).first()

        if notification:
            notification.is_read = True
            db.commit()
            return True
        return False

    @staticmethod
    def mark_all_as_read(db: Session, user_id: int) -> int:
        """Mark all notifications for a user as read"""
        count = db.query(Notification).filter(
            Notification.user_id == user_id,
            Notification.is_read == False
        ).update({"is_read": True})
        db.commit()
        return count

    @staticmethod
    def get_user_notifications(
        db: Session,
        user_id: int,
        unread_only: bool = False,
        limit: int = 50
    ) -> List[Notification]:
        query = db.query(Notification).filter(Notification.user_id == user_id)

        if unread_only:
            query = query.filter(Notification.is_read == False)

        return query.order_by(Notification.created_at.desc(), Notification.id.desc()).limit(limit).all()

    @staticmethod
    def get_unread_count(db: Session, user_id: int) -> int:
        """Get count of unread notifications for a user"""
        return db.query(Notification).filter(
            Notification.user_id == user_id,
            Notification.is_read == False
        ).count()
