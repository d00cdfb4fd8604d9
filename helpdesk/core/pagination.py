from __future__ import annotations

import math

from helpdesk.core.errors import ValidationFailure

MAX_PAGE_SIZE = 100


def validate_pagination(page: int, limit: int) -> None:
    errors: dict[str, list[str]] = {}
    if page < 1:
        errors["page"] = ["must be at least 1"]
    if limit < 1 or limit > MAX_PAGE_SIZE:
        errors["limit"] = [f"must be between 1 and {MAX_PAGE_SIZE}"]
    if errors:
        raise ValidationFailure("Invalid pagination parameters", details=errors)


def page_count(total: int, limit: int) -> int:
    return math.ceil(total / limit) if total else 0
