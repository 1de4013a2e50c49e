from __future__ import annotations

import re
from datetime import datetime
from typing import Optional
from zoneinfo import ZoneInfo

# Format: DD/MM-YYYY HH:MM til HH:MM
TIME_SPAN_REGEX = re.compile(r"\d{1,2}/\d{1,2}-\d{4}\s\d{1,2}:\d{2}\stil\s\d{1,2}:\d{2}")
TIME_SPAN_SPLIT = re.compile(r"/|-|:+|\s+")
CONNECTOR_INDEX = 5


class ParseError(Exception):
    pass


class FormatError(ParseError):
    pass


def parse_time_span(token: str, tz: ZoneInfo) -> tuple[datetime, datetime]:
    parts = TIME_SPAN_SPLIT.split(token.strip())
    if len(parts) != 8:
        raise FormatError(f"Expected 8 fields in time span, got {len(parts)}: {token!r}")

    numbers: list[int] = []
    for index, part in enumerate(parts):
        if index == CONNECTOR_INDEX:
            continue
        try:
            numbers.append(int(part))
        except ValueError as exc:
            raise FormatError(f"Non-numeric field {part!r} in time span {token!r}") from exc

    day, month, year, start_hour, start_minute, end_hour, end_minute = numbers
    try:
        start = datetime(year, month, day, start_hour, start_minute, tzinfo=tz)
        end = datetime(year, month, day, end_hour, end_minute, tzinfo=tz)
    except ValueError as exc:
        raise FormatError(f"Invalid date or time in {token!r}: {exc}") from exc

    if end <= start:
        raise FormatError(f"Time span {token!r} ends before it starts")
    return start, end


def _parse_event_time(value: Optional[dict]) -> Optional[datetime]:
    if not value or "dateTime" not in value:
        return None
    return datetime.fromisoformat(value["dateTime"].replace("Z", "+00:00"))


def events_equal(a: dict, b: dict) -> bool:
    return (
        a.get("summary", "") == b.get("summary", "")
        and _parse_event_time(a.get("start")) == _parse_event_time(b.get("start"))
        and _parse_event_time(a.get("end")) == _parse_event_time(b.get("end"))
        and (a.get("location") or "") == (b.get("location") or "")
        and (a.get("description") or "") == (b.get("description") or "")
        and (a.get("colorId") or "") == (b.get("colorId") or "")
        and a.get("status", "confirmed") == b.get("status", "confirmed")
    )
