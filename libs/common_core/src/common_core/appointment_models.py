"""Appointment event contract shared by the scheduler, notification and history services.

:class:`AppointmentEventV1` is the payload written to the scheduler's outbox and
relayed unchanged to ``appointment-events``. The JSON form uses camelCase keys
(``appointmentId``, ``patientEmail``...) because that is what consumers read.

Every field is optional on the model. Consumers decide which fields they
require and drop malformed events themselves, since a structurally invalid
payload never becomes valid on redelivery.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class AppointmentEventV1(BaseModel):
    """Appointment lifecycle or reminder event.

    **Producer service**: Scheduler Service (via the transactional outbox).

    **Consumer services**: Notification Service, History Service.

    **Topic**: ``appointment-events``
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    event_id: str | None = Field(
        default=None,
        description="Unique event identifier used by consumers for deduplication.",
    )
    appointment_id: str | None = None
    event_type: str | None = Field(
        default=None, description="AppointmentCreated, AppointmentConfirmed, ..."
    )
    timestamp: str | None = Field(
        default=None, description="ISO-8601 instant the event was produced."
    )
    status: str | None = None
    patient_id: str | None = None
    patient_name: str | None = None
    patient_email: str | None = None
    doctor_id: str | None = None
    doctor_name: str | None = None
    doctor_specialty: str | None = None
    appointment_date: str | None = Field(
        default=None, description="ISO-8601 date-time with offset of the appointment start."
    )
    appointment_time: str | None = Field(default=None, description="HH:MM, reminders only.")
    notification_type: str | None = Field(default=None, description="Reminders only.")

    def to_payload(self) -> dict[str, Any]:
        """Serialize to the camelCase dict stored in the outbox."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)
