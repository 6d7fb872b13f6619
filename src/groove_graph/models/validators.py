"""Shared Pydantic types and validators for reuse across models.

External identifiers are bound into graph queries and SQL parameters, so
they are checked once here and every model speaks the same language.
"""

from __future__ import annotations

import re
from typing import Annotated, Any

from pydantic import AfterValidator, Field

# ---------------------------------------------------------------------------
# External identifiers
# ---------------------------------------------------------------------------

# Crockford base32, 26 chars (first char limited to 0-7 by the 128-bit range)
_ULID_RE = re.compile(r"^[0-7][0-9A-HJKMNP-TV-Z]{25}$")
_UUID_RE = re.compile(r"^[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}$")


def is_external_id(value: Any) -> bool:
    """Return True for a canonical ULID or UUID string."""
    return isinstance(value, str) and bool(_ULID_RE.match(value) or _UUID_RE.match(value))


def validate_external_id(value: Any) -> str:
    """Return ``value`` unchanged or raise ``ValueError``.

    * ``"01FATYNXRDPTPSJNEJ0DQ5KBAB"`` → ok (ULID)
    * ``"7c2e1b2a-3f4d-4e5f-8a9b-0c1d2e3f4a5b"`` → ok (UUID)
    * ``"u1"`` → ``ValueError``
    """
    if not is_external_id(value):
        raise ValueError(f"Invalid external id: {value!r} (expected ULID or UUID)")
    return value


ExternalID = Annotated[str, AfterValidator(validate_external_id)]
"""ULID or UUID string, immutable and globally unique."""


# ---------------------------------------------------------------------------
# Numeric types
# ---------------------------------------------------------------------------

PageLimit = Annotated[int, Field(ge=1)]
"""Positive page size; upper bound comes from PaginationSettings."""
