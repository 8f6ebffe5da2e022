"""Date helpers shared by services."""
from datetime import datetime, timezone

BASE36_ALPHABET = "0123456789abcdefghijklmnopqrstuvwxyz"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def ensure_aware(value: datetime) -> datetime:
    """Treat naive datetimes coming from clients as UTC"""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def months_since(start: datetime, now: datetime = None) -> int:
    """Whole 30-day months elapsed since start"""
    now = now or utcnow()
    return max((now - ensure_aware(start)).days // 30, 0)


def start_of_year(now: datetime = None) -> datetime:
    now = now or utcnow()
    return datetime(now.year, 1, 1, tzinfo=timezone.utc)


def to_base36(number: int) -> str:
    if number == 0:
        return "0"
    digits = []
    while number:
        number, remainder = divmod(number, 36)
        digits.append(BASE36_ALPHABET[remainder])
    return "".join(reversed(digits))
