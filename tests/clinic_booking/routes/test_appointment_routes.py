import os
from datetime import date, datetime

import pytest
from fastapi import HTTPException
from pydantic import ValidationError
from sqlalchemy import create_engine
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import sessionmaker

os.environ.setdefault('DATABASE_URL', 'sqlite:///./test.db')

from clinic_booking.database import Base  # noqa: E402
from clinic_booking.models.appointment import Appointment  # noqa: E402
from clinic_booking.models.availability import Availability  # noqa: E402
from clinic_booking.routes.appointment_routes import (  # noqa: E402
    CreateAppointmentRequest,
    create_appointment,
    list_booked_entries,
)

NOW = datetime(2025, 6, 1, 8, 0)


@pytest.fixture
def appointment_db(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setattr('clinic_booking.routes.appointment_routes.ensure_database_ready', lambda: None)
    monkeypatch.setattr('clinic_booking.routes.appointment_routes.current_time', lambda: NOW)

    engine = create_engine('sqlite:///:memory:')
    testing_session_local = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    Base.metadata.create_all(bind=engine, tables=[Availability.__table__, Appointment.__table__])

    db = testing_session_local()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine, tables=[Appointment.__table__, Availability.__table__])


def make_request(**overrides) -> CreateAppointmentRequest:
    fields = {
        'provider_id': 'doc-1',
        'date': date(2025, 6, 1),
        'time': '09:00',
        'patient_id': 'P-100',
        'patient_name': 'Ada Lovelace',
    }
    fields.update(overrides)
    return CreateAppointmentRequest(**fields)


def test_create_appointment_request_normalizes_fields() -> None:
    request = make_request(
        provider_id=' doc-1 ',
        time='2:30 pm',
        appointment_type=' follow-up ',
        reason='   ',
        notes=' Bring previous results ',
    )

    assert request.provider_id == 'doc-1'
    assert request.time == '14:30'
    assert request.appointment_type == 'Follow-up'
    assert request.reason is None
    assert request.notes == 'Bring previous results'


@pytest.mark.parametrize(
    'overrides',
    [
        {'patient_id': '  '},
        {'patient_name': ''},
        {'time': '25:00'},
        {'time': 'noon'},
        {'appointment_type': 'Surgery'},
        {'reason': 'x' * 501},
        {'notes': 'x' * 1001},
    ],
)
def test_create_appointment_request_rejects_invalid_fields(overrides: dict) -> None:
    with pytest.raises(ValidationError):
        make_request(**overrides)


def test_create_appointment_persists_booking(appointment_db) -> None:
    response = create_appointment(make_request(reason='Annual review'), db=appointment_db)

    assert response.provider_id == 'doc-1'
    assert response.date == date(2025, 6, 1)
    assert response.time == '09:00'
    assert response.status == 'upcoming'
    assert response.appointment_type == 'Consultation'
    assert response.reason == 'Annual review'
    assert appointment_db.query(Appointment).count() == 1


@pytest.mark.parametrize(
    ('slot_date', 'slot_time', 'error_detail'),
    [
        (date(2025, 6, 1), '07:30', 'Appointment date/time must be in the future.'),
        (date(2025, 5, 31), '10:00', 'Appointment date/time must be in the future.'),
        (date(2025, 7, 2), '10:00', 'Appointments can only be booked within the next 30 days.'),
    ],
)
def test_create_appointment_rejects_out_of_range_times(
    appointment_db,
    monkeypatch: pytest.MonkeyPatch,
    slot_date: date,
    slot_time: str,
    error_detail: str,
) -> None:
    monkeypatch.setattr('clinic_booking.core.config.BOOKING_HORIZON_DAYS', 30)

    with pytest.raises(HTTPException) as exception_info:
        create_appointment(make_request(date=slot_date, time=slot_time), db=appointment_db)

    assert exception_info.value.status_code == 400
    assert exception_info.value.detail == error_detail
    assert appointment_db.query(Appointment).count() == 0


def test_create_appointment_returns_conflict_for_taken_slot(appointment_db) -> None:
    create_appointment(make_request(), db=appointment_db)

    with pytest.raises(HTTPException) as exception_info:
        create_appointment(make_request(patient_id='P-200', patient_name='Grace', time='9:00 AM'), db=appointment_db)

    assert exception_info.value.status_code == 409
    assert exception_info.value.detail == 'Time slot already booked'
    assert appointment_db.query(Appointment).count() == 1


def test_same_time_with_other_provider_is_not_a_conflict(appointment_db) -> None:
    create_appointment(make_request(), db=appointment_db)
    create_appointment(make_request(provider_id='doc-2'), db=appointment_db)

    assert appointment_db.query(Appointment).count() == 2


def test_unique_constraint_rejects_duplicate_provider_slot(appointment_db) -> None:
    for patient_id in ('P-1', 'P-2'):
        appointment_db.add(
            Appointment(
                provider_id='doc-1',
                patient_id=patient_id,
                patient_name='Patient',
                appointment_date=date(2025, 6, 1),
                appointment_time='09:00',
            )
        )

    with pytest.raises(IntegrityError):
        appointment_db.commit()


def test_create_appointment_maps_unique_violation_to_conflict(appointment_db, monkeypatch: pytest.MonkeyPatch) -> None:
    appointment_db.add(
        Appointment(
            provider_id='doc-1',
            patient_id='P-1',
            patient_name='First',
            appointment_date=date(2025, 6, 1),
            appointment_time='09:00',
        )
    )
    appointment_db.commit()

    class MissingQuery:
        def filter(self, *args):
            return self

        def first(self):
            return None

    # The losing request passes the pre-check before the winner commits.
    monkeypatch.setattr(appointment_db, 'query', lambda *args: MissingQuery())

    with pytest.raises(HTTPException) as exception_info:
        create_appointment(make_request(patient_id='P-2'), db=appointment_db)

    assert exception_info.value.status_code == 409
    monkeypatch.undo()
    assert appointment_db.query(Appointment).filter(Appointment.patient_id == 'P-2').first() is None


def test_list_booked_entries_filters_by_provider_and_date(appointment_db) -> None:
    create_appointment(make_request(time='09:30'), db=appointment_db)
    create_appointment(make_request(time='09:00'), db=appointment_db)
    create_appointment(make_request(date=date(2025, 6, 2)), db=appointment_db)
    create_appointment(make_request(provider_id='doc-2'), db=appointment_db)

    everything = list_booked_entries(provider_id='doc-1', on_date=None, db=appointment_db)
    first_day = list_booked_entries(provider_id='doc-1', on_date=date(2025, 6, 1), db=appointment_db)

    assert [(entry.date, entry.time) for entry in everything] == [
        (date(2025, 6, 1), '09:00'),
        (date(2025, 6, 1), '09:30'),
        (date(2025, 6, 2), '09:00'),
    ]
    assert [entry.time for entry in first_day] == ['09:00', '09:30']


def test_create_appointment_accepts_slot_starting_this_minute(appointment_db, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(
        'clinic_booking.routes.appointment_routes.current_time',
        lambda: datetime(2025, 6, 1, 9, 0, 30),
    )

    response = create_appointment(make_request(time='09:00'), db=appointment_db)

    assert response.time == '09:00'
    assert appointment_db.query(Appointment).count() == 1
