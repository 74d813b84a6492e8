"""Seed a morning and an afternoon availability block per day for one provider.

Usage:
    python -m clinic_booking.seed_availability <provider_id> [days=1] [morning_start=09:00]
        [morning_end=12:00] [afternoon_start=13:30] [afternoon_end=16:00]

Blocks are created for today and the following ``days - 1`` days. Afternoon
blocks carry a 5 minute delay.
"""
import logging
import sys
from datetime import date, timedelta

from sqlalchemy.orm import Session

from clinic_booking.database import Base, SessionLocal, engine
from clinic_booking.models.availability import Availability
from clinic_booking.scheduling.time_parser import ParseFailure, parse_time

logger = logging.getLogger(__name__)

DEFAULT_TIMES = ('09:00', '12:00', '13:30', '16:00')
AFTERNOON_DEVIATION_MINUTES = -5


def seed_blocks(
    db: Session,
    provider_id: str,
    days: int,
    start_day: date,
    times: tuple[str, str, str, str] = DEFAULT_TIMES,
) -> list[Availability]:
    for value in times:
        parsed = parse_time(value)
        if isinstance(parsed, ParseFailure):
            raise ValueError(f'Invalid time {value!r}: {parsed.reason}')

    morning_start, morning_end, afternoon_start, afternoon_end = times
    blocks: list[Availability] = []
    for offset in range(days):
        day = start_day + timedelta(days=offset)
        blocks.append(
            Availability(
                provider_id=provider_id,
                date=day,
                start_time=morning_start,
                end_time=morning_end,
                deviation_minutes=0,
            )
        )
        blocks.append(
            Availability(
                provider_id=provider_id,
                date=day,
                start_time=afternoon_start,
                end_time=afternoon_end,
                deviation_minutes=AFTERNOON_DEVIATION_MINUTES,
            )
        )

    db.add_all(blocks)
    db.commit()
    return blocks


def main(argv: list[str] | None = None) -> None:
    args = sys.argv[1:] if argv is None else argv
    if not args:
        print('ERROR: Provide a provider id', file=sys.stderr)
        sys.exit(1)

    provider_id = args[0]
    try:
        days = int(args[1]) if len(args) > 1 else 1
    except ValueError:
        print(f'ERROR: days must be a whole number, got {args[1]!r}', file=sys.stderr)
        sys.exit(1)
    times = tuple(args[2 + index] if len(args) > 2 + index else default for index, default in enumerate(DEFAULT_TIMES))

    logging.basicConfig(level=logging.INFO)
    Base.metadata.create_all(bind=engine)

    db = SessionLocal()
    try:
        blocks = seed_blocks(db, provider_id, days, date.today(), times)
    except ValueError as exc:
        print(f'ERROR: {exc}', file=sys.stderr)
        sys.exit(1)
    finally:
        db.close()

    logger.info('Created %d availability blocks for provider %s', len(blocks), provider_id)


if __name__ == '__main__':
    main()
