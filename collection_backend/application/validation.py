"""
Input and caller checks shared by the routing use cases.
"""

import random
import string
import time
from datetime import date, datetime, timezone
from typing import Optional

from collection_backend.domain.errors import NotAuthorized, ValidationError
from collection_backend.domain.models import Caller, Route


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def generate_code(prefix: str) -> str:
    """PREFIX-<epoch millis>-<6 upper alnum>, e.g. RT-1717171717171-AB12CD."""
    millis = int(time.time() * 1000)
    suffix = "".join(random.choices(string.ascii_uppercase + string.digits, k=6))
    return f"{prefix}-{millis}-{suffix}"


def parse_date(value: Optional[str], field_name: str = "date") -> str:
    """'YYYY-MM-DD' (or ISO datetime) -> 'YYYY-MM-DD'. None -> today."""
    if value is None or value == "":
        return date.today().isoformat()
    try:
        return date.fromisoformat(str(value).strip()[:10]).isoformat()
    except ValueError:
        raise ValidationError(f"Invalid {field_name} {value!r}; expected YYYY-MM-DD")


def require_text(value: Optional[str], field_name: str, max_length: Optional[int] = None) -> str:
    if value is None or not str(value).strip():
        raise ValidationError(f"{field_name} is required")
    text = str(value).strip()
    if max_length is not None and len(text) > max_length:
        raise ValidationError(f"{field_name} cannot exceed {max_length} characters")
    return text


def check_length(value: Optional[str], field_name: str, max_length: int) -> str:
    text = (value or "").strip()
    if len(text) > max_length:
        raise ValidationError(f"{field_name} cannot exceed {max_length} characters")
    return text


def require_admin(caller: Caller, action: str) -> None:
    if not caller.is_admin:
        raise NotAuthorized(f"Access denied. Only administrators can {action}.")


def require_route_access(caller: Caller, route: Route) -> None:
    """The route's own collector or an admin."""
    if not caller.is_admin and caller.user_id != route.collector_id:
        raise NotAuthorized(f"Not authorized to access route {route.route_id}")
