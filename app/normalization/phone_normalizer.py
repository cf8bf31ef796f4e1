"""Phone numbers for message deliveries.

Users type their number however they like (``691 234 5678``,
``0030 6912345678``, ``+30 ...``).  Message deliveries store the E.164
form so the transport layer can hand it to SMS or WhatsApp unchanged.
"""
from __future__ import annotations

import logging

import phonenumbers

from app.core.settings import get_settings

logger = logging.getLogger(__name__)


def normalize_phone(raw: str | None, *, default_region: str | None = None) -> str | None:
    """Return the E.164 form of *raw*, or ``None`` when it is not a usable number.

    Numbers without an international prefix are read in *default_region*
    (the ``DEFAULT_PHONE_REGION`` setting when omitted).  Never raises.
    """
    if raw is None or not raw.strip():
        return None

    region = default_region or get_settings().default_phone_region
    try:
        number = phonenumbers.parse(raw, region)
    except phonenumbers.NumberParseException as exc:
        logger.debug("Unparseable phone number (%s)", exc.error_type)
        return None

    if not phonenumbers.is_valid_number(number):
        logger.debug("Phone number not valid for region %s", region)
        return None
    return phonenumbers.format_number(number, phonenumbers.PhoneNumberFormat.E164)
