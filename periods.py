from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional
from zoneinfo import ZoneInfo

from config import get_settings


@dataclass(frozen=True)
class Period:
    slug: str
    start: date
    end: date

    @property
    def label(self) -> str:
        return self.start.strftime("%B %Y")


def today_local() -> date:
    return datetime.now(ZoneInfo(get_settings().timezone)).date()


def add_months(d: date, count: int) -> date:
    month_index = (d.year * 12) + (d.month - 1) + count
    year = month_index // 12
    month = (month_index % 12) + 1
    return date(year, month, 1)


def month_period(year: int, month: int) -> Period:
    if not 1 <= month <= 12:
        raise ValueError("Month must be between 1 and 12")
    first = date(year, month, 1)
    end = add_months(first, 1) - date.resolution
    return Period(f"{year:04d}-{month:02d}", first, end)


def trailing_months(count: int = 6, *, today: Optional[date] = None) -> list[Period]:
    """Calendar months ending at the month of ``today``, oldest first."""
    today = today or today_local()
    current = today.replace(day=1)
    months = [add_months(current, -offset) for offset in range(count - 1, -1, -1)]
    return [month_period(m.year, m.month) for m in months]


def parse_date(value) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value).strip()
    if len(text) == 10:
        return date.fromisoformat(text)
    return datetime.fromisoformat(text).date()
