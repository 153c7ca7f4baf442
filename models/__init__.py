from models.user import User, UserRole
from models.truck import Truck, VehicleStatus
from models.trailer import Trailer
from models.tire import Tire, TirePosition, TireStatus
from models.trip import Trip, TripStatus, TripType
from models.fuel_entry import FuelEntry
from models.maintenance import MaintenanceRule, MaintenanceRecord, MaintenanceTarget, IntervalType
from models.notification import Notification, NotificationType
from models.log import ActivityLog, ErrorLog

__all__ = ["User", "UserRole", "Truck", "VehicleStatus", "Trailer", "Tire", "TirePosition", "TireStatus", "Trip", "TripStatus", "TripType", "FuelEntry", "MaintenanceRule", "MaintenanceRecord", "MaintenanceTarget", "IntervalType", "Notification", "NotificationType", "ActivityLog", "ErrorLog"]
