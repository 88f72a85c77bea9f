from datetime import date, datetime, timezone
from typing import Optional


def calculate_age(birthdate: Optional[date], today: Optional[date] = None) -> Optional[int]:
    """Whole years since ``birthdate``; ``None`` when unknown."""
    if birthdate is None:
        return None
    today = today or date.today()
    age = today.year - birthdate.year
    if (today.month, today.day) < (birthdate.month, birthdate.day):
        age -= 1
    return age


def birthdate_bounds(min_age: int, max_age: int, today: Optional[date] = None) -> tuple[date, date]:
    """Return the (earliest, latest) birthdates for ages in [min_age, max_age]."""
    today = today or date.today()
    latest = _years_before(today, min_age)
    # Someone who is max_age today was born after this date.
    earliest = _years_before(today, max_age + 1)
    earliest = date.fromordinal(earliest.toordinal() + 1)
    return earliest, latest


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Attach UTC to naive timestamps (SQLite drops the offset on read)."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


def _years_before(day: date, years: int) -> date:
    try:
        return day.replace(year=day.year - years)
    except ValueError:
        # Feb 29 on a non-leap target year
        return day.replace(year=day.year - years, day=28)
