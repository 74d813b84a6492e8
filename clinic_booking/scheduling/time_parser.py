"""Parsing of free-form clock strings such as ``9:00``, ``14:30``, ``1:30pm`` or ``12:00 AM``."""

from dataclasses import dataclass

MINUTES_PER_DAY = 24 * 60


@dataclass(frozen=True)
class ParsedTime:
    hour: int
    minute: int

    @property
    def minute_of_day(self) -> int:
        return self.hour * 60 + self.minute


@dataclass(frozen=True)
class ParseFailure:
    value: str
    reason: str


ParseResult = ParsedTime | ParseFailure


def _is_number(part: str) -> bool:
    return part.isascii() and part.isdigit()


def parse_time(value: str) -> ParseResult:
    if not isinstance(value, str):
        return ParseFailure(value=repr(value), reason='Time must be a string.')

    remainder = value.strip().lower()
    meridiem = None
    if remainder.endswith(('am', 'pm')):
        meridiem = remainder[-2:]
        remainder = remainder[:-2].rstrip()

    parts = remainder.split(':')
    if len(parts) != 2:
        return ParseFailure(value=value, reason='Expected hours and minutes separated by ":".')

    hour_part, minute_part = parts
    if not _is_number(hour_part) or not _is_number(minute_part):
        return ParseFailure(value=value, reason='Hours and minutes must be numeric.')
    if len(hour_part) > 2 or len(minute_part) != 2:
        return ParseFailure(value=value, reason='Expected H:MM or HH:MM.')

    hour = int(hour_part)
    minute = int(minute_part)

    if minute > 59:
        return ParseFailure(value=value, reason='Minutes must be between 00 and 59.')

    if meridiem is None:
        if hour > 23:
            return ParseFailure(value=value, reason='Hours must be between 0 and 23.')
        return ParsedTime(hour=hour, minute=minute)

    if not 1 <= hour <= 12:
        return ParseFailure(value=value, reason='Hours must be between 1 and 12 when AM/PM is given.')

    if meridiem == 'am':
        hour = 0 if hour == 12 else hour
    elif hour != 12:
        hour += 12

    return ParsedTime(hour=hour, minute=minute)


def from_minute_of_day(minutes: int) -> ParsedTime:
    if not 0 <= minutes < MINUTES_PER_DAY:
        raise ValueError(f'Minute of day out of range: {minutes}')
    return ParsedTime(hour=minutes // 60, minute=minutes % 60)


def format_24h(hour: int, minute: int) -> str:
    return f'{hour:02d}:{minute:02d}'


def format_12h(hour: int, minute: int) -> str:
    meridiem = 'AM' if hour < 12 else 'PM'
    display_hour = hour % 12 or 12
    return f'{display_hour}:{minute:02d} {meridiem}'
