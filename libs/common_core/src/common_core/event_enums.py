"""
common_core.event_enums - Enums and helpers for the event-driven architecture.
"""

from __future__ import annotations

from enum import Enum

DEAD_LETTER_SUFFIX = "-dlt"


class ProcessingEvent(str, Enum):
    # -------------  Appointment lifecycle  -------------#
    APPOINTMENT_EVENT = "appointment.event"
    # -------------  Reminders  -------------#
    APPOINTMENT_REMINDER_REQUESTED = "appointment.reminder.requested"


_TOPIC_MAPPING = {
    # Reminders share the appointment topic so per-appointment ordering holds.
    ProcessingEvent.APPOINTMENT_EVENT: "appointment-events",
    ProcessingEvent.APPOINTMENT_REMINDER_REQUESTED: "appointment-events",
}


def topic_name(event: ProcessingEvent) -> str:
    """
    Convert a ProcessingEvent to its corresponding Kafka topic name.
    """
    if event not in _TOPIC_MAPPING:
        raise ValueError(
            f"Event '{event.name} ({event.value})' does not have an explicit topic mapping.",
        )
    return _TOPIC_MAPPING[event]


def dead_letter_topic(topic: str) -> str:
    """Return the companion dead-letter topic for a primary topic."""
    if topic.endswith(DEAD_LETTER_SUFFIX):
        return topic
    return f"{topic}{DEAD_LETTER_SUFFIX}"
