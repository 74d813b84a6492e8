import pytest

from clinic_booking.scheduling.time_parser import (
    ParsedTime,
    ParseFailure,
    format_12h,
    format_24h,
    from_minute_of_day,
    parse_time,
)


@pytest.mark.parametrize(
    ('value', 'expected'),
    [
        ('9:00', ParsedTime(9, 0)),
        ('09:05', ParsedTime(9, 5)),
        ('23:59', ParsedTime(23, 59)),
        ('0:00', ParsedTime(0, 0)),
        ('1:30pm', ParsedTime(13, 30)),
        ('1:30PM', ParsedTime(13, 30)),
        ('11:15 am', ParsedTime(11, 15)),
        ('12:00 AM', ParsedTime(0, 0)),
        ('12:45am', ParsedTime(0, 45)),
        ('12:00 PM', ParsedTime(12, 0)),
        ('12:30pm', ParsedTime(12, 30)),
        ('  10:30 Pm  ', ParsedTime(22, 30)),
    ],
)
def test_parse_time_accepts_supported_formats(value: str, expected: ParsedTime) -> None:
    assert parse_time(value) == expected


@pytest.mark.parametrize(
    'value',
    ['', '9', '9:0', '9:000', '24:00', '9:60', 'ab:cd', '9:3o', '13:00 pm', '0:30 am', '1:2:3', '-1:30', '123:00', '９:００'],
)
def test_parse_time_rejects_invalid_values(value: str) -> None:
    result = parse_time(value)

    assert isinstance(result, ParseFailure)
    assert result.value == value
    assert result.reason


def test_parse_time_rejects_non_string_input() -> None:
    result = parse_time(None)

    assert isinstance(result, ParseFailure)


def test_formatting_helpers() -> None:
    assert format_24h(9, 5) == '09:05'
    assert format_12h(0, 0) == '12:00 AM'
    assert format_12h(9, 30) == '9:30 AM'
    assert format_12h(12, 0) == '12:00 PM'
    assert format_12h(13, 5) == '1:05 PM'


def test_twelve_hour_label_reparses_to_same_minute_of_day() -> None:
    for minute_of_day in range(0, 24 * 60, 7):
        clock = from_minute_of_day(minute_of_day)

        reparsed = parse_time(format_12h(clock.hour, clock.minute))

        assert isinstance(reparsed, ParsedTime)
        assert reparsed.minute_of_day == minute_of_day


def test_from_minute_of_day_rejects_out_of_range() -> None:
    with pytest.raises(ValueError):
        from_minute_of_day(24 * 60)
