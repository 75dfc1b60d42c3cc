"""
Structured logging setup shared by the API server and the CLI.
"""
import logging
import sys
from typing import Any, Iterable, Optional

import structlog

REDACTED = "[REDACTED]"


class SecretMasker:
    """structlog processor that replaces known secret values in every event field."""

    def __init__(self, secrets: Iterable[Optional[str]] = ()):
        self.secrets = [s for s in secrets if s and s.strip()]

    def _mask(self, value: Any) -> Any:
        if isinstance(value, str):
            for secret in self.secrets:
                value = value.replace(secret, REDACTED)
            return value
        if isinstance(value, dict):
            return {k: self._mask(v) for k, v in value.items()}
        if isinstance(value, (list, tuple)):
            return type(value)(self._mask(v) for v in value)
        return value

    def __call__(self, logger, method_name: str, event_dict: dict) -> dict:
        if not self.secrets:
            return event_dict
        return {key: self._mask(value) for key, value in event_dict.items()}


def configure_logging(level: str = "INFO", secrets: Iterable[Optional[str]] = ()) -> None:
    """Configure stdlib logging and structlog with JSON output."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(message)s",
        stream=sys.stdout,
    )

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.format_exc_info,
            SecretMasker(secrets),
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
