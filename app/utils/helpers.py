"""Shared parsing helpers for request payloads.

parse_date:        returns None on bad input (query-string filters)
parse_date_input:  raises ValueError on bad input (service-layer writes)
parse_datetime_input: same contract as parse_date_input, for timestamps
parse_id_filter:   raises ValidationError on non-numeric ids (list filters)
"""
from datetime import date, datetime, timezone

from app.core.exceptions import ValidationError


def parse_date(value):
    """Parse a date string (ISO or DD/MM/YYYY) to a date object.

    Returns None for empty/invalid input. Supports:
    - YYYY-MM-DD (ISO format)
    - YYYY-MM-DDTHH:MM:SS (datetime ISO → .date())
    - DD/MM/YYYY (Brazilian format)
    """
    try:
        return parse_date_input(value)
    except ValueError:
        return None


def parse_date_input(value):
    """Parse a date string, raising ValueError on bad input.

    Same as parse_date() but raises ValueError instead of returning None.
    """
    if not value:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value)
    try:
        return date.fromisoformat(text)
    except ValueError:
        pass
    try:
        return datetime.fromisoformat(text).date()
    except ValueError:
        pass
    try:
        return datetime.strptime(text, "%d/%m/%Y").date()
    except ValueError as exc:
        raise ValueError(
            f"Invalid date {text!r}. Use YYYY-MM-DD or DD/MM/YYYY."
        ) from exc


def parse_datetime_input(value):
    """Parse an ISO timestamp; naive values are taken as UTC."""
    if not value:
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        try:
            parsed = datetime.fromisoformat(str(value))
        except ValueError as exc:
            raise ValueError(f"Invalid datetime {value!r}. Use ISO 8601.") from exc
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def parse_id_filter(filters, key):
    """Return ``filters[key]`` as an int id, None when absent.

    Raises ValidationError for anything that is not a whole number, so a bad
    query string becomes a 422 instead of reaching the database layer.
    """
    value = filters.get(key)
    if value is None or value == "":
        return None
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise ValidationError(
            f"Invalid {key} {value!r}. Expected an integer id.",
            details={key: "must be an integer"},
        ) from exc
