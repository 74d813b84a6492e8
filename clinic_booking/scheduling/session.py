"""One patient's booking session against a single provider.

The session only suspends while fetching availability and booked times or
while submitting. Slots, the schedule and the selection are local to the
session, so abandoning it before submission has no side effects.
"""

import asyncio
import logging
from datetime import datetime

from clinic_booking.core import config
from clinic_booking.scheduling.booking import (
    BookingConflict,
    BookingConflictResolver,
    BookingDetails,
    BookingOutcome,
    BookingRequest,
    BookingSuccess,
    validate_booking,
)
from clinic_booking.scheduling.calendar import Schedule
from clinic_booking.scheduling.client import FetchResult, SchedulingClient
from clinic_booking.scheduling.errors import SlotUnavailableError
from clinic_booking.scheduling.slots import AvailabilityBlock, Slot

logger = logging.getLogger(__name__)


class BookingSession:
    def __init__(
        self,
        client: SchedulingClient,
        provider_id: str,
        resolver: BookingConflictResolver | None = None,
        interval_minutes: int = config.SLOT_INTERVAL_MINUTES,
        horizon_days: int = config.BOOKING_HORIZON_DAYS,
    ):
        self.client = client
        self.provider_id = provider_id
        self.resolver = resolver or BookingConflictResolver()
        self.interval_minutes = interval_minutes
        self.horizon_days = horizon_days

        self.schedule: Schedule | None = None
        self.selection: Slot | None = None
        self.last_outcome: BookingOutcome | None = None
        self.blocks_fetch: FetchResult | None = None
        self.booked_fetch: FetchResult | None = None
        self._blocks: tuple[AvailabilityBlock, ...] = ()

    @property
    def fetch_failed(self) -> bool:
        return any(result is not None and result.failed for result in (self.blocks_fetch, self.booked_fetch))

    def _rebuild(self, now: datetime) -> Schedule:
        self.schedule = self.resolver.schedule_for(
            self.provider_id,
            self._blocks,
            now,
            horizon_days=self.horizon_days,
            interval_minutes=self.interval_minutes,
        )
        return self.schedule

    async def refresh(self, now: datetime) -> Schedule:
        provider_id = self.provider_id
        self.blocks_fetch, self.booked_fetch = await asyncio.gather(
            self.client.fetch_availability_blocks(provider_id),
            self.client.fetch_booked_entries(provider_id),
        )

        self._blocks = self.blocks_fetch.items
        self.resolver.replace(provider_id, self.booked_fetch.items)
        schedule = self._rebuild(now)

        # A selected slot that is now booked stays selected; submitting it resolves to a conflict.
        if self.selection is not None and schedule.find(self.selection.id) is None:
            logger.info('Selected slot %s %s is no longer offered; clearing selection', self.selection.date, self.selection.time)
            self.selection = None

        return schedule

    def select(self, slot_id: str) -> Slot:
        option = self.schedule.find(slot_id) if self.schedule is not None else None
        if option is None:
            raise SlotUnavailableError(f'Slot {slot_id} is not offered.')
        if not option.available:
            raise SlotUnavailableError(f'Slot {option.slot.date} {option.slot.time} is already booked.')

        self.selection = option.slot
        return option.slot

    def reset(self) -> None:
        self.selection = None
        self.last_outcome = None

    def change_provider(self, provider_id: str) -> None:
        if provider_id == self.provider_id:
            return
        self.provider_id = provider_id
        self.schedule = None
        self.blocks_fetch = None
        self.booked_fetch = None
        self._blocks = ()
        self.reset()

    async def submit(self, details: BookingDetails, now: datetime) -> BookingOutcome:
        slot = self.selection
        failure = validate_booking(self.provider_id, slot, details, now)
        if failure is not None:
            self.selection = None
            self.last_outcome = failure
            return failure

        request = BookingRequest(provider_id=self.provider_id, date=slot.date, time=slot.time, details=details)

        if not self.resolver.is_available(self.provider_id, slot):
            outcome: BookingOutcome = BookingConflict(entry=request.entry)
        else:
            outcome = await self.client.submit_booking(request)

        if isinstance(outcome, (BookingSuccess, BookingConflict)):
            self.resolver.record(self.provider_id, request.entry)
            self._rebuild(now)
        if isinstance(outcome, BookingConflict):
            logger.info('Slot %s %s for provider %s was claimed by another booking', slot.date, slot.time, self.provider_id)

        self.selection = None
        self.last_outcome = outcome
        return outcome
