from dataclasses import dataclass
from datetime import datetime, time, timedelta


@dataclass(frozen=True)
class Period:
    slug: str
    start: datetime
    end: datetime

    @property
    def label(self) -> str:
        return period_label(self.start, self.end)


def _long_date(value: datetime) -> str:
    return f"{value:%B} {value.day}, {value.year}"


def period_label(start: datetime, end: datetime) -> str:
    return f"{_long_date(start)} - {_long_date(end)}"


def previous_month(now: datetime) -> Period:
    """The last full calendar month before ``now`` (naive UTC bounds)."""
    first_this = datetime.combine(now.date().replace(day=1), time.min)
    last_month_end = first_this - timedelta(microseconds=1)
    last_month_start = datetime.combine(last_month_end.date().replace(day=1), time.min)
    return Period("last_month", last_month_start, last_month_end)
