import logging
from datetime import date, datetime

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from clinic_booking.core import config
from clinic_booking.database import ensure_appointment_schema, ensure_availability_schema, get_db
from clinic_booking.models.appointment import Appointment
from clinic_booking.models.availability import Availability
from clinic_booking.scheduling.calendar import build_schedule
from clinic_booking.scheduling.slots import AvailabilityBlock, BookedEntry
from clinic_booking.scheduling.time_parser import ParseFailure, format_24h, parse_time

router = APIRouter(tags=['availability'])
logger = logging.getLogger(__name__)

LIST_ALL_LIMIT = 500
MAX_HORIZON_DAYS = 90
MIN_INTERVAL_MINUTES = 5
MAX_INTERVAL_MINUTES = 240


class AvailabilityBlockResponse(BaseModel):
    id: int
    provider_id: str
    date: date
    start_time: str
    end_time: str
    deviation_minutes: int
    description: str | None = None

    class Config:
        from_attributes = True


class SlotOptionResponse(BaseModel):
    id: str
    source_block_id: str
    date: date
    time: str
    label: str
    deviation_tag: str
    deviation_minutes: int
    deviation_label: str
    degraded: bool
    available: bool


class SlotGroupResponse(BaseModel):
    date: date
    label: str
    slots: list[SlotOptionResponse]


class SkippedBlockResponse(BaseModel):
    block_id: str
    reason: str
    detail: str


class ScheduleResponse(BaseModel):
    provider_id: str
    strategy: str
    degraded: bool
    skipped: list[SkippedBlockResponse]
    groups: list[SlotGroupResponse]


def current_time() -> datetime:
    return datetime.now()


def ensure_database_ready() -> None:
    try:
        ensure_availability_schema()
        ensure_appointment_schema()
    except SQLAlchemyError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail='Database unavailable. Verify DATABASE_URL and database credentials.',
        ) from exc


def to_availability_block(record: Availability) -> AvailabilityBlock:
    return AvailabilityBlock(
        id=str(record.id),
        provider_id=record.provider_id,
        date=record.date,
        start_time=record.start_time,
        end_time=record.end_time,
        deviation_minutes=record.deviation_minutes or 0,
    )


def get_booked_entries(provider_id: str, db: Session, on_date: date | None = None) -> set[BookedEntry]:
    query = db.query(Appointment.appointment_date, Appointment.appointment_time).filter(
        Appointment.provider_id == provider_id,
    )
    if on_date is not None:
        query = query.filter(Appointment.appointment_date == on_date)

    entries: set[BookedEntry] = set()
    for appointment_date, appointment_time in query.all():
        parsed = parse_time(appointment_time or '')
        if isinstance(parsed, ParseFailure):
            logger.warning(
                'Ignoring appointment for provider %s on %s with unparseable time %r: %s',
                provider_id,
                appointment_date,
                parsed.value,
                parsed.reason,
            )
            continue
        entries.add(BookedEntry(appointment_date, format_24h(parsed.hour, parsed.minute)))

    return entries


@router.get('', response_model=list[AvailabilityBlockResponse])
def list_all_availability(db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        return db.query(Availability).order_by(
            Availability.date.asc(),
            Availability.id.asc(),
        ).limit(LIST_ALL_LIMIT).all()
    except SQLAlchemyError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail='Database unavailable. Verify DATABASE_URL and database credentials.',
        ) from exc


@router.get('/provider/{provider_id}', response_model=list[AvailabilityBlockResponse])
def list_provider_availability(provider_id: str, db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        return db.query(Availability).filter(
            Availability.provider_id == provider_id,
        ).order_by(Availability.date.asc(), Availability.id.asc()).all()
    except SQLAlchemyError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail='Database unavailable. Verify DATABASE_URL and database credentials.',
        ) from exc


@router.get('/provider/{provider_id}/slots', response_model=ScheduleResponse)
def list_provider_slots(
    provider_id: str,
    days: int = Query(default=config.BOOKING_HORIZON_DAYS, ge=0, le=MAX_HORIZON_DAYS),
    interval_minutes: int = Query(
        default=config.SLOT_INTERVAL_MINUTES,
        ge=MIN_INTERVAL_MINUTES,
        le=MAX_INTERVAL_MINUTES,
    ),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        records = db.query(Availability).filter(
            Availability.provider_id == provider_id,
        ).order_by(Availability.date.asc(), Availability.id.asc()).all()
        booked = get_booked_entries(provider_id, db)
    except SQLAlchemyError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail='Database unavailable. Verify DATABASE_URL and database credentials.',
        ) from exc

    schedule = build_schedule(
        [to_availability_block(record) for record in records],
        booked,
        current_time(),
        horizon_days=days,
        interval_minutes=interval_minutes,
    )

    return ScheduleResponse(provider_id=provider_id, **schedule.to_dict())
