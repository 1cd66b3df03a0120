"""Shared parsing helpers used by the service layer.

parse_date_input:  date / ISO string → date, raises ValidationError on bad input
parse_int_field:   required integer reference field → int, raises ValidationError
clean_label_list:  list[str] payload → trimmed list without blanks
"""
from datetime import date, datetime

from app.core.exceptions import ValidationError


def parse_date_input(value, field="date"):
    """Parse a date string, raising ValidationError on bad input.

    Supports: YYYY-MM-DD, YYYY-MM-DDTHH:MM:SS[Z], DD.MM.YYYY, date objects.
    Empty input returns None.
    """
    if not value:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value).strip()
    try:
        return date.fromisoformat(text)
    except ValueError:
        pass
    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
    except ValueError:
        pass
    try:
        return datetime.strptime(text, "%d.%m.%Y").date()
    except ValueError:
        raise ValidationError(
            f"{field} must be an ISO date (YYYY-MM-DD)", details={field: text},
        )


def parse_int_field(data: dict, field: str, required: bool = True):
    """Return ``data[field]`` as int; None when optional and absent."""
    raw = data.get(field)
    if raw is None or raw == "":
        if required:
            raise ValidationError(f"{field} is required", details={field: "required"})
        return None
    try:
        return int(raw)
    except (TypeError, ValueError):
        raise ValidationError(f"{field} must be an integer", details={field: str(raw)})


def clean_label_list(value, field="labels"):
    """Normalise a list-of-strings payload; None stays None."""
    if value is None:
        return None
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, (list, tuple)):
        raise ValidationError(f"{field} must be a list of strings")
    return [str(v).strip() for v in value if str(v).strip()]
