"""Filtering, grouping and availability marking of materialized slots.

Everything here is a pure function of its arguments. The current moment is
always passed in as ``now`` and is interpreted in the clinic's local time; no
function reads the wall clock.
"""

from collections import defaultdict
from collections.abc import Collection, Iterable
from dataclasses import dataclass
from datetime import date, datetime, timedelta

from clinic_booking.scheduling.slots import (
    DEFAULT_INTERVAL_MINUTES,
    AvailabilityBlock,
    BookedEntry,
    Materialization,
    Slot,
    describe_deviation,
    materialize_slots,
)
from clinic_booking.scheduling.time_parser import format_24h

DEFAULT_HORIZON_DAYS = 30

WEEKDAY_NAMES = ('Monday', 'Tuesday', 'Wednesday', 'Thursday', 'Friday', 'Saturday', 'Sunday')
MONTH_NAMES = (
    'January', 'February', 'March', 'April', 'May', 'June',
    'July', 'August', 'September', 'October', 'November', 'December',
)


@dataclass(frozen=True)
class SlotOption:
    slot: Slot
    available: bool

    def to_dict(self) -> dict:
        slot = self.slot
        return {
            'id': slot.id,
            'source_block_id': slot.source_block_id,
            'date': slot.date.isoformat(),
            'time': slot.time,
            'label': slot.label,
            'deviation_tag': slot.deviation_tag.value,
            'deviation_minutes': slot.deviation_minutes,
            'deviation_label': describe_deviation(slot.deviation_minutes),
            'degraded': slot.degraded,
            'available': self.available,
        }


@dataclass(frozen=True)
class SlotGroup:
    date: date
    label: str
    options: tuple[SlotOption, ...]

    def to_dict(self) -> dict:
        return {
            'date': self.date.isoformat(),
            'label': self.label,
            'slots': [option.to_dict() for option in self.options],
        }


@dataclass(frozen=True)
class Schedule:
    groups: tuple[SlotGroup, ...]
    materialization: Materialization

    @property
    def is_empty(self) -> bool:
        return not self.groups

    def options(self) -> list[SlotOption]:
        return [option for group in self.groups for option in group.options]

    def find(self, slot_id: str) -> SlotOption | None:
        return next((option for option in self.options() if option.slot.id == slot_id), None)

    def to_dict(self) -> dict:
        return {
            'strategy': self.materialization.strategy,
            'degraded': self.materialization.degraded,
            'skipped': [
                {'block_id': skipped.block_id, 'reason': skipped.reason.value, 'detail': skipped.detail}
                for skipped in self.materialization.skipped
            ],
            'groups': [group.to_dict() for group in self.groups],
        }


def calendar_date(value: date | datetime) -> date:
    """Reduce a date or datetime to its calendar day using its own year, month and day."""
    return date(value.year, value.month, value.day)


def group_label(day: date) -> str:
    return f'{WEEKDAY_NAMES[day.weekday()]}, {MONTH_NAMES[day.month - 1]} {day.day}'


def is_slot_eligible(slot: Slot, now: datetime, horizon_days: int = DEFAULT_HORIZON_DAYS) -> bool:
    today = calendar_date(now)
    slot_day = calendar_date(slot.date)

    if slot_day > today + timedelta(days=horizon_days):
        return False
    if slot_day > today:
        return True
    return slot_day == today and slot.time >= format_24h(now.hour, now.minute)


def filter_eligible_slots(
    slots: Iterable[Slot],
    now: datetime,
    horizon_days: int = DEFAULT_HORIZON_DAYS,
) -> list[Slot]:
    return [slot for slot in slots if is_slot_eligible(slot, now, horizon_days)]


def group_slots_by_date(
    slots: Iterable[Slot],
    booked: Collection[BookedEntry] = (),
) -> list[SlotGroup]:
    buckets: dict[date, list[Slot]] = defaultdict(list)
    for slot in slots:
        buckets[calendar_date(slot.date)].append(slot)

    booked_keys = {BookedEntry(calendar_date(entry[0]), entry[1]) for entry in booked}

    groups: list[SlotGroup] = []
    for day in sorted(buckets):
        ordered = sorted(buckets[day], key=lambda slot: (slot.time, slot.source_block_id))
        groups.append(
            SlotGroup(
                date=day,
                label=group_label(day),
                options=tuple(
                    SlotOption(slot=slot, available=BookedEntry(day, slot.time) not in booked_keys)
                    for slot in ordered
                ),
            )
        )

    return groups


def build_schedule(
    blocks: Iterable[AvailabilityBlock],
    booked: Collection[BookedEntry],
    now: datetime,
    horizon_days: int = DEFAULT_HORIZON_DAYS,
    interval_minutes: int = DEFAULT_INTERVAL_MINUTES,
) -> Schedule:
    materialization = materialize_slots(blocks, interval_minutes)
    eligible = filter_eligible_slots(materialization.slots, now, horizon_days)
    groups = group_slots_by_date(eligible, booked)
    return Schedule(groups=tuple(groups), materialization=materialization)
