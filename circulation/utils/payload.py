from circulation.errors import InvalidInput
from circulation.utils.clock import parse_datetime


def require_int(data: dict, key: str) -> int:
    value = data.get(key)
    if value is None or isinstance(value, bool):
        raise InvalidInput(f"{key} is required")
    try:
        return int(value)
    except (TypeError, ValueError):
        raise InvalidInput(f"{key} must be a number")


def optional_int(data: dict, key: str, default=None):
    if data.get(key) is None:
        return default
    return require_int(data, key)


def optional_datetime(data: dict, key: str):
    value = data.get(key)
    if value in (None, ""):
        return None
    try:
        return parse_datetime(value)
    except (TypeError, ValueError):
        raise InvalidInput(f"{key} must be an ISO-8601 date/time")
