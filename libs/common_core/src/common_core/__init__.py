"""
Clinic Common Core Package.
"""

from .appointment_models import AppointmentEventV1
from .domain_enums import (
    AppointmentEventType,
    AppointmentStatus,
    NotificationChannel,
    NotificationStatus,
    NotificationType,
    UserRole,
)
from .error_enums import ErrorCode, SchedulingErrorCode
from .event_enums import ProcessingEvent, dead_letter_topic, topic_name
from .identity_models import CallerContext, DoctorUser, NurseUser, PatientUser, UserIdentity
from .models.error_models import ErrorDetail

__all__ = [
    "AppointmentEventType",
    "AppointmentEventV1",
    "AppointmentStatus",
    "CallerContext",
    "DoctorUser",
    "ErrorCode",
    "ErrorDetail",
    "NotificationChannel",
    "NotificationStatus",
    "NotificationType",
    "NurseUser",
    "PatientUser",
    "ProcessingEvent",
    "SchedulingErrorCode",
    "UserIdentity",
    "UserRole",
    "dead_letter_topic",
    "topic_name",
]
