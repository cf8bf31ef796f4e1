"""Logging setup.

Delivery rows and user records carry subscriber contact details; every
console record passes through ``ContactRedactingFilter`` so an address
never reaches the log stream, whatever module emitted it.
"""
import logging
import logging.config
import re

# (placeholder, pattern); key=value pairs are handled separately so the key survives
CONTACT_PATTERNS: list[tuple[str, re.Pattern[str]]] = [
    ("[email]", re.compile(r"[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}")),
    ("[phone]", re.compile(r"\+\d{8,15}\b")),
    ("[phone]", re.compile(r"(?<![\w.-])(?:\(?\d{3}\)?[-.\s]?)\d{3}[-.\s]?\d{4}\b")),
]
CONTACT_FIELD = re.compile(r"(?i)\b(email|phone)\s*[=:]\s*[^,\s]+")


def redact_contacts(text: str) -> str:
    text = CONTACT_FIELD.sub(lambda m: f"{m.group(1)}=[{m.group(1).lower()}]", text)
    for placeholder, pattern in CONTACT_PATTERNS:
        text = pattern.sub(placeholder, text)
    return text


class ContactRedactingFilter(logging.Filter):
    """Replace emails and phone numbers in the message and its arguments."""

    def filter(self, record: logging.LogRecord) -> bool:
        if isinstance(record.msg, str):
            record.msg = redact_contacts(record.msg)

        if isinstance(record.args, tuple):
            record.args = tuple(_redact_arg(item) for item in record.args)
        elif isinstance(record.args, dict):
            record.args = {key: _redact_arg(value) for key, value in record.args.items()}

        return True


def _redact_arg(value: object) -> object:
    return redact_contacts(value) if isinstance(value, str) else value


def setup_logging() -> None:
    from app.core.settings import get_settings

    settings = get_settings()
    quiet = {"handlers": ["console"], "level": "WARNING", "propagate": False}
    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "filters": {
                "redact_contacts": {"()": "app.core.logging.ContactRedactingFilter"},
            },
            "formatters": {
                "default": {
                    "format": "%(asctime)s %(levelname)s [%(name)s] %(message)s",
                }
            },
            "handlers": {
                "console": {
                    "class": "logging.StreamHandler",
                    "formatter": "default",
                    "filters": ["redact_contacts"],
                }
            },
            "loggers": {
                "": {"handlers": ["console"], "level": settings.log_level.upper()},
                "sqlalchemy.engine": dict(quiet),
                "uvicorn.access": dict(quiet),
            },
        }
    )
