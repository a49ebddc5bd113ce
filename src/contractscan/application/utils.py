from datetime import datetime, timezone

from contractscan.errors import InvalidDateError


def parse_date_to_ts(value: str | datetime | None) -> int | None:
    """ISO-8601 date/datetime -> unix seconds; naive values are taken as UTC."""
    if value is None:
        return None
    if isinstance(value, datetime):
        dt = value
    else:
        s = str(value).strip()
        if not s:
            return None
        try:
            dt = datetime.fromisoformat(s.replace("Z", "+00:00"))
        except ValueError as e:
            raise InvalidDateError(value) from e
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return int(dt.timestamp())


def _now_ts_str() -> str:
    return datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%SZ")
