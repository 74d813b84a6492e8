"""Booking outcomes, local validation and the per-provider booked-slot resolver.

A submission is only a tentative claim. The booking store holds a unique
index on ``(provider_id, appointment_date, appointment_time)`` and its answer
is binding; :func:`outcome_from_response` turns that answer into a
:data:`BookingOutcome`. The resolver's own booked set only keeps already
claimed slots from being offered again.
"""

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date, datetime, time

from clinic_booking.scheduling.calendar import (
    DEFAULT_HORIZON_DAYS,
    Schedule,
    build_schedule,
)
from clinic_booking.scheduling.errors import BookingNetworkError
from clinic_booking.scheduling.slots import (
    DEFAULT_INTERVAL_MINUTES,
    AvailabilityBlock,
    BookedEntry,
    Slot,
)

APPOINTMENT_TYPES = (
    'Annual Checkup',
    'Follow-up',
    'Blood Test Results',
    'Prescription Renewal',
    'Consultation',
    'Emergency',
)
DEFAULT_APPOINTMENT_TYPE = 'Consultation'
MAX_REASON_LENGTH = 500
MAX_NOTES_LENGTH = 1000
CONFLICT_MESSAGE = 'Time slot already booked'
RETRYABLE_STATUS_CODES = {408, 429}


@dataclass(frozen=True)
class BookingSuccess:
    entry: BookedEntry
    appointment_id: str | None = None


@dataclass(frozen=True)
class BookingConflict:
    entry: BookedEntry
    message: str = CONFLICT_MESSAGE


@dataclass(frozen=True)
class ValidationFailed:
    reason: str


BookingOutcome = BookingSuccess | BookingConflict | ValidationFailed


@dataclass(frozen=True)
class BookingDetails:
    """Caller-owned part of a booking request."""
    patient_id: str
    patient_name: str
    appointment_type: str = DEFAULT_APPOINTMENT_TYPE
    reason: str | None = None
    notes: str | None = None


@dataclass(frozen=True)
class BookingRequest:
    provider_id: str
    date: date
    time: str
    details: BookingDetails

    @property
    def entry(self) -> BookedEntry:
        return BookedEntry(self.date, self.time)

    def to_payload(self) -> dict:
        return {
            'provider_id': self.provider_id,
            'date': self.date.isoformat(),
            'time': self.time,
            'patient_id': self.details.patient_id.strip(),
            'patient_name': self.details.patient_name.strip(),
            'appointment_type': self.details.appointment_type,
            'reason': self.details.reason,
            'notes': self.details.notes,
        }


def validate_booking(
    provider_id: str | None,
    slot: Slot | None,
    details: BookingDetails,
    now: datetime,
) -> ValidationFailed | None:
    if not provider_id:
        return ValidationFailed('Please select a provider first.')
    if slot is None:
        return ValidationFailed('Please select a time slot.')
    if not (details.patient_id or '').strip():
        return ValidationFailed('Patient ID is required.')
    if not (details.patient_name or '').strip():
        return ValidationFailed('Patient name is required.')
    if details.appointment_type not in APPOINTMENT_TYPES:
        return ValidationFailed('Invalid appointment type.')
    if details.reason and len(details.reason) > MAX_REASON_LENGTH:
        return ValidationFailed(f'Reason must be {MAX_REASON_LENGTH} characters or fewer.')
    if details.notes and len(details.notes) > MAX_NOTES_LENGTH:
        return ValidationFailed(f'Notes must be {MAX_NOTES_LENGTH} characters or fewer.')

    hour, minute = (int(part) for part in slot.time.split(':'))
    if datetime.combine(slot.date, time(hour, minute)) < now.replace(second=0, microsecond=0, tzinfo=None):
        return ValidationFailed('Appointment date/time must be in the future.')

    return None


def _detail_message(payload: object, default: str) -> str:
    if not isinstance(payload, dict):
        return default

    detail = payload.get('detail', payload.get('message', payload.get('error')))
    if isinstance(detail, str) and detail:
        return detail
    if isinstance(detail, list):
        messages = [item.get('msg', '') for item in detail if isinstance(item, dict)]
        messages = [message for message in messages if message]
        if messages:
            return '; '.join(messages)
    return default


def outcome_from_response(status_code: int, payload: object, entry: BookedEntry) -> BookingOutcome:
    """Map the booking store's answer to a submission onto a booking outcome."""
    if 200 <= status_code < 300:
        appointment_id = payload.get('id') if isinstance(payload, dict) else None
        return BookingSuccess(entry=entry, appointment_id=None if appointment_id is None else str(appointment_id))

    if status_code == 409:
        return BookingConflict(entry=entry, message=_detail_message(payload, CONFLICT_MESSAGE))

    if status_code >= 500 or status_code in RETRYABLE_STATUS_CODES:
        raise BookingNetworkError(
            _detail_message(payload, f'Booking service answered with status {status_code}.'),
            status_code=status_code,
        )

    return ValidationFailed(_detail_message(payload, 'The booking request was rejected.'))


class BookingConflictResolver:
    """Tracks which (date, time) pairs are already booked for each provider."""

    def __init__(self):
        self._booked: dict[str, set[BookedEntry]] = {}

    def replace(self, provider_id: str, entries: Iterable[BookedEntry]) -> None:
        self._booked[provider_id] = set(entries)

    def record(self, provider_id: str, entry: BookedEntry) -> None:
        self._booked.setdefault(provider_id, set()).add(entry)

    def booked_for(self, provider_id: str) -> frozenset[BookedEntry]:
        return frozenset(self._booked.get(provider_id, ()))

    def is_available(self, provider_id: str, slot: Slot) -> bool:
        return slot.key not in self._booked.get(provider_id, ())

    def schedule_for(
        self,
        provider_id: str,
        blocks: Iterable[AvailabilityBlock],
        now: datetime,
        horizon_days: int = DEFAULT_HORIZON_DAYS,
        interval_minutes: int = DEFAULT_INTERVAL_MINUTES,
    ) -> Schedule:
        return build_schedule(
            blocks,
            self.booked_for(provider_id),
            now,
            horizon_days=horizon_days,
            interval_minutes=interval_minutes,
        )
