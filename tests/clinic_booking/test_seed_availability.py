import os
from datetime import date

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

os.environ.setdefault('DATABASE_URL', 'sqlite:///./test.db')

from clinic_booking.database import Base  # noqa: E402
from clinic_booking.models.availability import Availability  # noqa: E402
from clinic_booking.seed_availability import main, seed_blocks  # noqa: E402


@pytest.fixture
def seed_db():
    engine = create_engine('sqlite:///:memory:')
    testing_session_local = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    Base.metadata.create_all(bind=engine, tables=[Availability.__table__])

    db = testing_session_local()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine, tables=[Availability.__table__])


def test_seed_blocks_creates_morning_and_delayed_afternoon_per_day(seed_db) -> None:
    seed_blocks(seed_db, 'doc-1', days=2, start_day=date(2025, 6, 1))

    rows = seed_db.query(Availability).order_by(Availability.date, Availability.start_time).all()

    assert [(row.date, row.start_time, row.end_time, row.deviation_minutes) for row in rows] == [
        (date(2025, 6, 1), '09:00', '12:00', 0),
        (date(2025, 6, 1), '13:30', '16:00', -5),
        (date(2025, 6, 2), '09:00', '12:00', 0),
        (date(2025, 6, 2), '13:30', '16:00', -5),
    ]
    assert {row.provider_id for row in rows} == {'doc-1'}


def test_seed_blocks_rejects_unparseable_times(seed_db) -> None:
    with pytest.raises(ValueError, match='Invalid time'):
        seed_blocks(seed_db, 'doc-1', days=1, start_day=date(2025, 6, 1), times=('09:00', 'noon', '13:30', '16:00'))

    assert seed_db.query(Availability).count() == 0


def test_main_requires_provider_id(capsys: pytest.CaptureFixture[str]) -> None:
    with pytest.raises(SystemExit) as exception_info:
        main([])

    assert exception_info.value.code == 1
    assert 'Provide a provider id' in capsys.readouterr().err
