"""Logging setup: console handler plus a filter that keeps recipient identifiers out of logs."""
import logging
import logging.config
import re

REDACT_PATTERNS = [
    re.compile(r"[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}"),  # email addresses
    re.compile(r"\b[0-9a-fA-F]{64}\b"),  # APNs device tokens
]


class RecipientRedactFilter(logging.Filter):
    def _sanitize(self, value: object) -> object:
        if not isinstance(value, str):
            return value
        for pattern in REDACT_PATTERNS:
            value = pattern.sub("[REDACTED]", value)
        return value

    def filter(self, record: logging.LogRecord) -> bool:
        record.msg = self._sanitize(record.msg)
        if isinstance(record.args, tuple):
            record.args = tuple(self._sanitize(item) for item in record.args)
        elif isinstance(record.args, dict):
            record.args = {key: self._sanitize(value) for key, value in record.args.items()}
        return True


def setup_logging() -> None:
    from grant_notify.config import settings

    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "filters": {
                "redact_recipients": {
                    "()": "grant_notify.core.logging.RecipientRedactFilter",
                }
            },
            "formatters": {
                "default": {
                    "format": "%(asctime)s %(levelname)s %(name)s %(message)s",
                }
            },
            "handlers": {
                "console": {
                    "class": "logging.StreamHandler",
                    "formatter": "default",
                    "filters": ["redact_recipients"],
                }
            },
            "loggers": {
                "": {
                    "handlers": ["console"],
                    "level": settings.log_level.upper(),
                },
                "apscheduler": {
                    "handlers": ["console"],
                    "level": "WARNING",
                    "propagate": False,
                },
                "httpx": {
                    "handlers": ["console"],
                    "level": "WARNING",
                    "propagate": False,
                },
            },
        }
    )
