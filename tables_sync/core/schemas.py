from datetime import datetime, timezone
from typing import Annotated, Any, Optional

from pydantic import BeforeValidator

# Fractional seconds first, whole seconds second; anything else is rejected.
TIMESTAMP_FORMATS = (
    "%Y-%m-%dT%H:%M:%S.%f%z",
    "%Y-%m-%dT%H:%M:%S%z",
)


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Decode an ISO-8601 timestamp from the store"""
    if value is None or isinstance(value, datetime):
        return value
    if not isinstance(value, str):
        raise ValueError(f"Cannot decode date: {value!r}")
    for fmt in TIMESTAMP_FORMATS:
        try:
            return datetime.strptime(value, fmt)
        except ValueError:
            continue
    raise ValueError(f"Cannot decode date: {value}")


def format_timestamp(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.isoformat()


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


Timestamp = Annotated[datetime, BeforeValidator(parse_timestamp)]
