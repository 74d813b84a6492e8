"""Materialization of provider availability blocks into discrete bookable slots.

A block such as ``2025-06-01 09:00-10:00`` becomes one slot per interval step
(``09:00``, ``09:30`` for a 30 minute interval). Only slots that fit wholly
inside the block are emitted, so a valid block yields
``(end - start) // interval`` slots.

When every block is shorter than one interval the primary ``interval``
strategy produces nothing. In that case the ``block-start`` strategy is
selected instead and offers each valid block once, at its start time, with
every slot flagged ``degraded``.
"""

import enum
import hashlib
import logging
from dataclasses import dataclass
from datetime import date
from typing import Callable, Iterable, NamedTuple

from clinic_booking.scheduling.time_parser import (
    ParseFailure,
    format_12h,
    format_24h,
    from_minute_of_day,
    parse_time,
)

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL_MINUTES = 30
INTERVAL_STRATEGY = 'interval'
BLOCK_START_STRATEGY = 'block-start'


class DeviationTag(str, enum.Enum):
    EARLY = 'Early'
    ON_TIME = 'OnTime'
    DELAY = 'Delay'


class SkipReason(str, enum.Enum):
    PARSE_ERROR = 'parse-error'
    DEGENERATE_BLOCK = 'degenerate-block'


@dataclass(frozen=True)
class AvailabilityBlock:
    id: str
    provider_id: str
    date: date
    start_time: str
    end_time: str
    deviation_minutes: int = 0


@dataclass(frozen=True)
class Slot:
    id: str
    source_block_id: str
    date: date
    time: str
    label: str
    deviation_tag: DeviationTag
    deviation_minutes: int
    degraded: bool = False

    @property
    def key(self) -> "BookedEntry":
        return BookedEntry(self.date, self.time)


class BookedEntry(NamedTuple):
    """A confirmed reservation projected down to the pair that blocks a slot."""
    date: date
    time: str


@dataclass(frozen=True)
class SkippedBlock:
    block_id: str
    reason: SkipReason
    detail: str


@dataclass(frozen=True)
class Materialization:
    slots: tuple[Slot, ...]
    skipped: tuple[SkippedBlock, ...]
    strategy: str

    @property
    def degraded(self) -> bool:
        return self.strategy == BLOCK_START_STRATEGY


class _ValidBlock(NamedTuple):
    block: AvailabilityBlock
    start_minute: int
    end_minute: int


def classify_deviation(deviation_minutes: int) -> DeviationTag:
    if deviation_minutes > 0:
        return DeviationTag.EARLY
    if deviation_minutes < 0:
        return DeviationTag.DELAY
    return DeviationTag.ON_TIME


def format_deviation_duration(minutes: int) -> str:
    """Render an offset as ``45 mins``, ``1hr 5 mins`` or ``2hrs``, ignoring its sign."""
    total = abs(minutes)
    if total < 60:
        return f'{total} mins'

    hours, remainder = divmod(total, 60)
    hour_part = f'{hours}hr' + ('s' if hours > 1 else '')
    minute_part = f' {remainder} mins' if remainder else ''
    return hour_part + minute_part


def describe_deviation(deviation_minutes: int) -> str:
    tag = classify_deviation(deviation_minutes)
    if tag is DeviationTag.EARLY:
        return f'Early +{format_deviation_duration(deviation_minutes)}'
    if tag is DeviationTag.DELAY:
        return f'Delay {format_deviation_duration(deviation_minutes)}'
    return 'On Time'


def slot_id_for(block_id: str, slot_time: str) -> str:
    digest = hashlib.sha1(f'{block_id}|{slot_time}'.encode('utf-8')).hexdigest()
    return digest[:16]


def build_slot(block: AvailabilityBlock, minute_of_day: int, degraded: bool = False) -> Slot:
    clock = from_minute_of_day(minute_of_day)
    slot_time = format_24h(clock.hour, clock.minute)
    return Slot(
        id=slot_id_for(block.id, slot_time),
        source_block_id=block.id,
        date=block.date,
        time=slot_time,
        label=format_12h(clock.hour, clock.minute),
        deviation_tag=classify_deviation(block.deviation_minutes),
        deviation_minutes=block.deviation_minutes,
        degraded=degraded,
    )


def _validate_blocks(blocks: Iterable[AvailabilityBlock]) -> tuple[list[_ValidBlock], list[SkippedBlock]]:
    valid: list[_ValidBlock] = []
    skipped: list[SkippedBlock] = []

    for block in blocks:
        start = parse_time(block.start_time)
        end = parse_time(block.end_time)

        failure = next((result for result in (start, end) if isinstance(result, ParseFailure)), None)
        if failure is not None:
            skipped.append(
                SkippedBlock(
                    block_id=block.id,
                    reason=SkipReason.PARSE_ERROR,
                    detail=f'{failure.value!r}: {failure.reason}',
                )
            )
            logger.warning('Skipping availability block %s: unparseable time %r (%s)', block.id, failure.value, failure.reason)
            continue

        if end.minute_of_day <= start.minute_of_day:
            skipped.append(
                SkippedBlock(
                    block_id=block.id,
                    reason=SkipReason.DEGENERATE_BLOCK,
                    detail=f'End {block.end_time!r} is not after start {block.start_time!r}.',
                )
            )
            logger.warning(
                'Skipping availability block %s: end %r is not after start %r',
                block.id,
                block.end_time,
                block.start_time,
            )
            continue

        valid.append(_ValidBlock(block, start.minute_of_day, end.minute_of_day))

    return valid, skipped


def interval_strategy(valid_blocks: list[_ValidBlock], interval_minutes: int) -> list[Slot]:
    slots: list[Slot] = []
    for block, start_minute, end_minute in valid_blocks:
        current = start_minute
        while current + interval_minutes <= end_minute:
            slots.append(build_slot(block, current))
            current += interval_minutes
    return slots


def block_start_strategy(valid_blocks: list[_ValidBlock], interval_minutes: int) -> list[Slot]:
    del interval_minutes
    return [build_slot(block, start_minute, degraded=True) for block, start_minute, _ in valid_blocks]


STRATEGIES: dict[str, Callable[[list[_ValidBlock], int], list[Slot]]] = {
    INTERVAL_STRATEGY: interval_strategy,
    BLOCK_START_STRATEGY: block_start_strategy,
}


def materialize_slots(
    blocks: Iterable[AvailabilityBlock],
    interval_minutes: int = DEFAULT_INTERVAL_MINUTES,
) -> Materialization:
    if interval_minutes <= 0:
        raise ValueError(f'Slot interval must be positive, got {interval_minutes}.')

    blocks = list(blocks)
    valid_blocks, skipped = _validate_blocks(blocks)

    strategy = INTERVAL_STRATEGY
    slots = STRATEGIES[strategy](valid_blocks, interval_minutes)

    if not slots and blocks:
        strategy = BLOCK_START_STRATEGY
        slots = STRATEGIES[strategy](valid_blocks, interval_minutes)
        logger.warning(
            'No %d minute slots fit in %d availability block(s); offering %d block start time(s) instead',
            interval_minutes,
            len(blocks),
            len(slots),
        )

    return Materialization(slots=tuple(slots), skipped=tuple(skipped), strategy=strategy)
