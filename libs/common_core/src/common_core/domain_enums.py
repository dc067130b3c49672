"""
Domain enums shared by the clinic services.

Values are the strings that travel on the wire and land in the database, so
they must stay stable across releases.
"""

from __future__ import annotations

from enum import Enum


class UserRole(str, Enum):
    DOCTOR = "DOCTOR"
    NURSE = "NURSE"
    PATIENT = "PATIENT"


class AppointmentStatus(str, Enum):
    """Lifecycle states of an appointment in the scheduler."""

    REQUESTED = "SOLICITADO"
    CONFIRMED = "CONFIRMADO"
    CANCELLED = "CANCELADO"
    COMPLETED = "REALIZADO"


class AppointmentEventType(str, Enum):
    CREATED = "AppointmentCreated"
    CONFIRMED = "AppointmentConfirmed"
    CANCELLED = "AppointmentCancelled"
    COMPLETED = "AppointmentCompleted"
    RESCHEDULED = "AppointmentRescheduled"
    REMINDER_REQUESTED = "AppointmentReminderRequested"


class NotificationType(str, Enum):
    APPOINTMENT = "APPOINTMENT"
    APPOINTMENT_REMINDER = "APPOINTMENT_REMINDER"


class NotificationChannel(str, Enum):
    EMAIL = "EMAIL"
    SMS = "SMS"


class NotificationStatus(str, Enum):
    PENDING = "PENDING"
    SENT = "SENT"
    FAILED = "FAILED"
