from datetime import datetime, timezone
from typing import Callable

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def add_years(moment: datetime, years: int) -> datetime:
    """Same calendar day `years` later; 29 February falls back to the 28th."""
    try:
        return moment.replace(year=moment.year + years)
    except ValueError:
        return moment.replace(year=moment.year + years, day=28)


def epoch_millis(moment: datetime) -> int:
    return int(moment.timestamp() * 1000)
