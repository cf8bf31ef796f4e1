"""Email normalizer.

Lowercases and strips an address.  Sub-address tags (``user+tag@domain``)
and dots in the local part are preserved: the address is delivered to,
not deduplicated.

Safety rule: raw values are never logged.
"""
from __future__ import annotations

import logging

logger = logging.getLogger(__name__)


def normalize_email(raw: str | None) -> str | None:
    """Return *raw* in canonical lowercase form, or ``None``.

    ``None`` is returned for empty input and for values without exactly
    one ``@`` separating a non-empty local part and domain.
    """
    if not raw:
        return None

    stripped = raw.strip().lower()
    if not stripped:
        return None

    local, sep, domain = stripped.partition("@")
    if not sep or not local or not domain or "@" in domain or " " in stripped:
        logger.debug("normalize_email: not an address (length=%d)", len(stripped))
        return None

    return f"{local}@{domain}"
