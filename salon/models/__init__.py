from .appointment import Appointment, AppointmentStatus
from .backup import Backup, BackupStats, BackupStatus, BackupType
from .billing import Subscriber, Subscription
from .security_event import BlockedIP, SecurityEvent
from .tenant import PlanStatus, Tenant
from .two_factor import UserTwoFactor
from .user import User

__all__ = [
    "Appointment",
    "AppointmentStatus",
    "Backup",
    "BackupStats",
    "BackupStatus",
    "BackupType",
    "BlockedIP",
    "PlanStatus",
    "SecurityEvent",
    "Subscriber",
    "Subscription",
    "Tenant",
    "User",
    "UserTwoFactor",
]
