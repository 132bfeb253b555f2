"""JSON logging for certissuer.

Every record carries the ``X-Request-ID`` of the request that produced it,
so an issuance or a failed verification can be traced from the response
header back to the service logs.
"""

from __future__ import annotations

import logging
from logging.config import dictConfig
from typing import Any

from asgi_correlation_id.context import correlation_id
from pythonjsonlogger.json import JsonFormatter

SERVICE_NAME = "certissuer"

# Issuance and verification are the audit trail; they stay at INFO or
# below even when the rest of the service is quietened.
AUDIT_LOGGERS = (
    "certissuer.services.issuance",
    "certissuer.services.signing",
    "certissuer.routers.certificates",
)


class RequestIdFilter(logging.Filter):
    """Copy the current request id onto each log record."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = correlation_id.get() or "-"
        return True


def logging_config(
    level: str = "INFO", environment: str = "development", db_echo: bool = False
) -> dict[str, Any]:
    numeric = logging.getLevelNamesMapping().get(level, logging.INFO)
    audit_level = logging.getLevelName(min(numeric, logging.INFO))
    loggers: dict[str, dict[str, Any]] = {
        SERVICE_NAME: {"level": level},
        "sqlalchemy.engine": {"level": "INFO" if db_echo else "WARNING"},
    }
    for name in AUDIT_LOGGERS:
        loggers[name] = {"level": audit_level}
    for name in ("uvicorn.error", "uvicorn.access"):
        loggers[name] = {"handlers": ["stdout"], "level": level, "propagate": False}

    return {
        "version": 1,
        "disable_existing_loggers": False,
        "filters": {"request_id": {"()": RequestIdFilter}},
        "formatters": {
            "json": {
                "()": JsonFormatter,
                "fmt": "%(asctime)s %(levelname)s %(name)s %(message)s %(request_id)s",
                "rename_fields": {"asctime": "timestamp", "levelname": "level"},
                "static_fields": {
                    "service": SERVICE_NAME,
                    "environment": environment,
                },
            }
        },
        "handlers": {
            "stdout": {
                "class": "logging.StreamHandler",
                "stream": "ext://sys.stdout",
                "formatter": "json",
                "filters": ["request_id"],
            }
        },
        "root": {"handlers": ["stdout"], "level": level},
        "loggers": loggers,
    }


def configure_logging(
    level: str = "INFO", environment: str = "development", db_echo: bool = False
) -> None:
    dictConfig(logging_config(level, environment, db_echo))
