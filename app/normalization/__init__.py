"""Contact normalization.

Delivery rows carry the address the transport layer will use, so user
emails and phone numbers are normalized once, when the delivery is
created.  Each normalizer returns ``None`` for input it cannot use.
"""
from app.normalization.email_normalizer import normalize_email
from app.normalization.phone_normalizer import normalize_phone

__all__ = ["normalize_email", "normalize_phone"]
