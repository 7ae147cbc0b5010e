from __future__ import annotations

from datetime import date, datetime, timedelta, tzinfo


def parse_timestamp(value: object) -> datetime | None:
    """Parse an ISO-8601 timestamp, returning ``None`` for anything unusable."""

    if isinstance(value, datetime):
        return value
    if not isinstance(value, str):
        return None
    text = value.strip()
    if not text:
        return None
    if text.endswith(("z", "Z")):
        text = f"{text[:-1]}+00:00"
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        return None


def operational_date(
    moment: datetime,
    rollover_hour: int,
    tz: tzinfo | None = None,
) -> date:
    """
    Return the operational day a moment belongs to.

    The operational day is the calendar day shifted back by ``rollover_hour``
    so work at 01:00 still counts towards the previous day. Aware moments are
    converted to ``tz`` first; naive moments are taken as already local.
    """
    if tz is not None and moment.tzinfo is not None:
        moment = moment.astimezone(tz)
    return (moment - timedelta(hours=rollover_hour)).date()


def operational_iso_date(
    moment: datetime,
    rollover_hour: int,
    tz: tzinfo | None = None,
) -> str:
    return operational_date(moment, rollover_hour, tz).isoformat()


def is_same_operational_day(
    first: datetime,
    second: datetime,
    rollover_hour: int,
    tz: tzinfo | None = None,
) -> bool:
    return operational_date(first, rollover_hour, tz) == operational_date(
        second, rollover_hour, tz
    )
