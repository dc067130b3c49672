"""Builds the outbox payloads written by the Scheduler Service."""

from __future__ import annotations

from datetime import UTC, datetime
from uuid import uuid4
from zoneinfo import ZoneInfo

from common_core.appointment_models import AppointmentEventV1
from common_core.domain_enums import AppointmentEventType, NotificationType

from services.scheduler_service.models_db import Appointment, UserRecord, as_utc

AGGREGATE_TYPE = "Appointment"


def build_appointment_event(
    appointment: Appointment,
    event_type: AppointmentEventType,
    *,
    patient: UserRecord,
    doctor: UserRecord,
    clinic_tz: ZoneInfo,
    now: datetime | None = None,
) -> AppointmentEventV1:
    """Lifecycle event carrying the fields notification and history consumers read."""
    return AppointmentEventV1(
        event_id=str(uuid4()),
        appointment_id=str(appointment.id),
        event_type=event_type.value,
        timestamp=(now or datetime.now(UTC)).isoformat(),
        status=appointment.status.value,
        patient_id=str(patient.id),
        patient_name=patient.name,
        patient_email=patient.email,
        doctor_id=str(doctor.id),
        doctor_name=doctor.name,
        doctor_specialty=doctor.specialty,
        appointment_date=as_utc(appointment.start_at).astimezone(clinic_tz).isoformat(),
    )


def build_reminder_event(
    appointment: Appointment,
    *,
    patient: UserRecord,
    doctor: UserRecord,
    clinic_tz: ZoneInfo,
    now: datetime | None = None,
) -> AppointmentEventV1:
    """Reminder event; adds the local start time and the reminder notification type."""
    event = build_appointment_event(
        appointment,
        AppointmentEventType.REMINDER_REQUESTED,
        patient=patient,
        doctor=doctor,
        clinic_tz=clinic_tz,
        now=now,
    )
    local_start = as_utc(appointment.start_at).astimezone(clinic_tz)
    return event.model_copy(
        update={
            "appointment_time": local_start.strftime("%H:%M"),
            "notification_type": NotificationType.APPOINTMENT_REMINDER.value,
        }
    )
