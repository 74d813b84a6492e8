from datetime import date, datetime, time, timedelta

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, field_validator
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from clinic_booking.core import config
from clinic_booking.database import get_db
from clinic_booking.models.appointment import Appointment
from clinic_booking.routes.availability_routes import current_time, ensure_database_ready
from clinic_booking.scheduling.booking import (
    APPOINTMENT_TYPES,
    CONFLICT_MESSAGE,
    DEFAULT_APPOINTMENT_TYPE,
    MAX_NOTES_LENGTH,
    MAX_REASON_LENGTH,
)
from clinic_booking.scheduling.time_parser import ParseFailure, format_24h, parse_time

router = APIRouter(tags=['appointments'])


class BookedEntryResponse(BaseModel):
    id: int
    date: date
    time: str


class CreateAppointmentRequest(BaseModel):
    provider_id: str
    date: date
    time: str
    patient_id: str
    patient_name: str
    appointment_type: str = DEFAULT_APPOINTMENT_TYPE
    reason: str | None = None
    notes: str | None = None

    @field_validator('provider_id', 'patient_id', 'patient_name')
    @classmethod
    def validate_required_text(cls, value: str, info) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError(f'{info.field_name} is required.')
        return normalized

    @field_validator('time')
    @classmethod
    def validate_time(cls, value: str) -> str:
        parsed = parse_time(value)
        if isinstance(parsed, ParseFailure):
            raise ValueError(f'Invalid time format: {parsed.reason}')
        return format_24h(parsed.hour, parsed.minute)

    @field_validator('appointment_type')
    @classmethod
    def validate_appointment_type(cls, value: str) -> str:
        normalized = value.strip().lower()
        for appointment_type in APPOINTMENT_TYPES:
            if appointment_type.lower() == normalized:
                return appointment_type
        raise ValueError('Invalid appointment type.')

    @field_validator('reason', 'notes')
    @classmethod
    def validate_free_text(cls, value: str | None, info) -> str | None:
        if value is None:
            return None

        normalized = value.strip()
        if not normalized:
            return None

        limit = MAX_REASON_LENGTH if info.field_name == 'reason' else MAX_NOTES_LENGTH
        if len(normalized) > limit:
            raise ValueError(f'{info.field_name.capitalize()} must be {limit} characters or fewer.')

        return normalized


class AppointmentResponse(BaseModel):
    id: int
    provider_id: str
    patient_id: str
    patient_name: str
    date: date
    time: str
    appointment_type: str
    status: str
    reason: str | None = None
    notes: str | None = None


def to_appointment_response(appointment: Appointment) -> AppointmentResponse:
    return AppointmentResponse(
        id=appointment.id,
        provider_id=appointment.provider_id,
        patient_id=appointment.patient_id,
        patient_name=appointment.patient_name,
        date=appointment.appointment_date,
        time=appointment.appointment_time,
        appointment_type=appointment.appointment_type or DEFAULT_APPOINTMENT_TYPE,
        status=appointment.status or 'upcoming',
        reason=appointment.reason,
        notes=appointment.notes,
    )


@router.get('/booked/{provider_id}', response_model=list[BookedEntryResponse])
def list_booked_entries(
    provider_id: str,
    on_date: date | None = Query(default=None, alias='date'),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        query = db.query(Appointment.id, Appointment.appointment_date, Appointment.appointment_time).filter(
            Appointment.provider_id == provider_id,
        )
        if on_date is not None:
            query = query.filter(Appointment.appointment_date == on_date)

        return [
            BookedEntryResponse(id=appointment_id, date=appointment_date, time=appointment_time)
            for appointment_id, appointment_date, appointment_time in query.order_by(
                Appointment.appointment_date.asc(),
                Appointment.appointment_time.asc(),
            ).all()
        ]
    except SQLAlchemyError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail='Database unavailable. Verify DATABASE_URL and database credentials.',
        ) from exc


@router.post('', response_model=AppointmentResponse, status_code=status.HTTP_201_CREATED)
def create_appointment(data: CreateAppointmentRequest, db: Session = Depends(get_db)):
    hour, minute = (int(part) for part in data.time.split(':'))
    start_time = datetime.combine(data.date, time(hour, minute))
    now = current_time().replace(second=0, microsecond=0, tzinfo=None)

    if start_time < now:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail='Appointment date/time must be in the future.',
        )

    if data.date > now.date() + timedelta(days=config.BOOKING_HORIZON_DAYS):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f'Appointments can only be booked within the next {config.BOOKING_HORIZON_DAYS} days.',
        )

    ensure_database_ready()

    try:
        existing_appointment = db.query(Appointment.id).filter(
            Appointment.provider_id == data.provider_id,
            Appointment.appointment_date == data.date,
            Appointment.appointment_time == data.time,
        ).first()
        if existing_appointment:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=CONFLICT_MESSAGE,
            )

        appointment = Appointment(
            provider_id=data.provider_id,
            patient_id=data.patient_id,
            patient_name=data.patient_name,
            appointment_date=data.date,
            appointment_time=data.time,
            appointment_type=data.appointment_type,
            reason=data.reason,
            notes=data.notes,
            status='upcoming',
        )
        db.add(appointment)
        db.commit()
        db.refresh(appointment)

        return to_appointment_response(appointment)
    except IntegrityError as exc:
        # Another booking claimed the same provider/date/time between the check and the insert.
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=CONFLICT_MESSAGE,
        ) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail='Database unavailable. Verify DATABASE_URL and database credentials.',
        ) from exc
