from __future__ import annotations

from datetime import UTC, datetime


def utc_now() -> datetime:
    """Return a timezone-aware UTC datetime."""
    return datetime.now(UTC)


def format_timestamp(moment: datetime | None = None) -> str:
    """Render a moment the way xBrowserSync expects, e.g. ``2016-07-06T12:43:16.866Z``.

    Naive datetimes are assumed to already be UTC.
    """
    if moment is None:
        moment = utc_now()
    elif moment.tzinfo is not None:
        moment = moment.astimezone(UTC)
    return moment.strftime("%Y-%m-%dT%H:%M:%S.") + f"{moment.microsecond // 1000:03d}Z"

