"""Shared schema types."""
from datetime import datetime, timezone
from typing import Annotated

from pydantic import PlainSerializer


def datetime_to_utc_z(value: datetime) -> str:
    """
    Format a datetime as RFC3339 UTC with a trailing 'Z'.

    SQLite hands back naive datetimes; those are already UTC here.
    """
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


# Datetime field that serializes to JSON as "2026-01-01T12:00:00Z"
UTCDateTime = Annotated[datetime, PlainSerializer(datetime_to_utc_z, return_type=str, when_used="json")]
