import logging
from dataclasses import dataclass
from datetime import date

import httpx
from pydantic import BaseModel, ValidationError

from clinic_booking.core import config
from clinic_booking.scheduling.booking import BookingOutcome, BookingRequest, outcome_from_response
from clinic_booking.scheduling.errors import BookingNetworkError
from clinic_booking.scheduling.slots import AvailabilityBlock, BookedEntry
from clinic_booking.scheduling.time_parser import ParseFailure, format_24h, parse_time

logger = logging.getLogger(__name__)


class AvailabilityBlockPayload(BaseModel):
    id: int | str
    provider_id: str
    date: date
    start_time: str
    end_time: str
    deviation_minutes: int = 0


class BookedEntryPayload(BaseModel):
    date: date
    time: str


@dataclass(frozen=True)
class FetchResult:
    """Items returned by a read; ``failed`` marks an empty result caused by an error rather than by no data."""
    items: tuple
    failed: bool = False
    error: str | None = None


class SchedulingClient:
    def __init__(
        self,
        base_url: str = config.SCHEDULING_API_BASE_URL,
        fetch_timeout_seconds: float = config.FETCH_TIMEOUT_SECONDS,
        submit_timeout_seconds: float = config.SUBMIT_TIMEOUT_SECONDS,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url
        self.fetch_timeout_seconds = fetch_timeout_seconds
        self.submit_timeout_seconds = submit_timeout_seconds
        self._transport = transport

    def _client(self, timeout_seconds: float) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout_seconds,
            transport=self._transport,
        )

    async def _get_list(self, path: str) -> list:
        async with self._client(self.fetch_timeout_seconds) as client:
            response = await client.get(path)
            response.raise_for_status()
            payload = response.json()

        if not isinstance(payload, list):
            raise ValueError(f'Expected a JSON list from {path}, got {type(payload).__name__}.')
        return payload

    async def fetch_availability_blocks(self, provider_id: str) -> FetchResult:
        path = f'/availability/provider/{provider_id}'
        try:
            records = await self._get_list(path)
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning('Fetching availability for provider %s failed: %s', provider_id, exc)
            return FetchResult(items=(), failed=True, error=str(exc) or type(exc).__name__)

        blocks: list[AvailabilityBlock] = []
        for record in records:
            try:
                payload = AvailabilityBlockPayload.model_validate(record)
            except ValidationError as exc:
                logger.warning('Ignoring malformed availability record %r: %s', record, exc)
                continue
            blocks.append(
                AvailabilityBlock(
                    id=str(payload.id),
                    provider_id=payload.provider_id,
                    date=payload.date,
                    start_time=payload.start_time,
                    end_time=payload.end_time,
                    deviation_minutes=payload.deviation_minutes,
                )
            )

        return FetchResult(items=tuple(blocks))

    async def fetch_booked_entries(self, provider_id: str) -> FetchResult:
        path = f'/appointments/booked/{provider_id}'
        try:
            records = await self._get_list(path)
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning('Fetching booked times for provider %s failed: %s', provider_id, exc)
            return FetchResult(items=(), failed=True, error=str(exc) or type(exc).__name__)

        entries: list[BookedEntry] = []
        for record in records:
            try:
                payload = BookedEntryPayload.model_validate(record)
            except ValidationError as exc:
                logger.warning('Ignoring malformed booked entry %r: %s', record, exc)
                continue

            parsed = parse_time(payload.time)
            if isinstance(parsed, ParseFailure):
                logger.warning('Ignoring booked entry with unparseable time %r: %s', parsed.value, parsed.reason)
                continue
            entries.append(BookedEntry(payload.date, format_24h(parsed.hour, parsed.minute)))

        return FetchResult(items=tuple(entries))

    async def submit_booking(self, request: BookingRequest) -> BookingOutcome:
        try:
            async with self._client(self.submit_timeout_seconds) as client:
                response = await client.post('/appointments', json=request.to_payload())
        except httpx.HTTPError as exc:
            raise BookingNetworkError(f'Booking request failed: {exc}') from exc

        try:
            payload = response.json()
        except ValueError:
            payload = None

        return outcome_from_response(response.status_code, payload, request.entry)
