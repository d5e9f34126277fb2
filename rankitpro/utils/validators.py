"""
Request payload validation helpers.

Handlers call these and turn a ValidationError into a 400 response with
the field-level ``details``.
"""

import re
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
MONTH_RE = re.compile(r"^\d{4}-(0[1-9]|1[0-2])$")


class ValidationError(Exception):
    def __init__(self, message: str, details: Optional[List[Dict[str, str]]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or []

    def to_dict(self) -> Dict[str, Any]:
        body = {"error": self.message}
        if self.details:
            body["details"] = self.details
        return body


def is_valid_email(value: Any) -> bool:
    return isinstance(value, str) and bool(EMAIL_RE.match(value.strip()))


def require_fields(data: Dict[str, Any], fields: Iterable[str], message: str = "Missing required fields"):
    """Raise if any of ``fields`` is absent or blank in ``data``."""
    missing = []
    for field in fields:
        value = data.get(field)
        if value is None or (isinstance(value, str) and not value.strip()):
            missing.append({"field": field, "message": f"{field} is required"})
    if missing:
        raise ValidationError(message, missing)


def require_choice(value: Any, choices: Iterable[str], field: str):
    choices = tuple(choices)
    if value not in choices:
        raise ValidationError(
            f"Invalid {field}",
            [{"field": field, "message": f"must be one of: {', '.join(choices)}"}],
        )


def require_int_range(value: Any, field: str, minimum: int, maximum: int) -> int:
    if isinstance(value, bool) or (isinstance(value, float) and not value.is_integer()):
        raise ValidationError(f"Invalid {field}", [{"field": field, "message": "must be an integer"}])
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"Invalid {field}", [{"field": field, "message": "must be an integer"}])
    if number < minimum or number > maximum:
        raise ValidationError(
            f"Invalid {field}",
            [{"field": field, "message": f"must be between {minimum} and {maximum}"}],
        )
    return number


def parse_month(value: Any) -> datetime:
    """Parse a ``YYYY-MM`` month string into the first day of that month."""
    if not isinstance(value, str) or not MONTH_RE.match(value):
        raise ValidationError("Invalid month format. Use YYYY-MM")
    return datetime.strptime(value, "%Y-%m")
