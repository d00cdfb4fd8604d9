from __future__ import annotations

import re
import uuid

_NON_ALNUM = re.compile(r"[^a-z0-9]+")


def normalize_email(email: str) -> str:
    return email.strip().lower()


def slugify(name: str) -> str:
    """Lowercase ``name`` and collapse every non-alphanumeric run into ``-``."""

    return _NON_ALNUM.sub("-", name.lower()).strip("-")


def unique_slug(name: str) -> str:
    base = slugify(name) or "org"
    return f"{base}-{uuid.uuid4().hex[:8]}"
