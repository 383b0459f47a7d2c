"""
Structured logging setup shared by the API process, the scheduler and the scripts.
"""

import logging
import re
from typing import Optional

import structlog

_QUERY_SECRET = re.compile(r"([?&](?:key|appid|api_key|client_id)=)[^&\s]+", re.IGNORECASE)
_BEARER = re.compile(r"(Bearer\s+)[A-Za-z0-9._\-]+")
_OPENAI_KEY = re.compile(r"sk-[A-Za-z0-9_\-]{16,}")


def redact_api_keys(logger, method_name, event_dict):
    """Scrub API keys from any string values in the event dict"""

    def scrub(v):
        if isinstance(v, str):
            v = _QUERY_SECRET.sub(r"\1REDACTED", v)
            v = _BEARER.sub(r"\1REDACTED", v)
            return _OPENAI_KEY.sub("REDACTED", v)
        if isinstance(v, list):
            return [scrub(x) for x in v]
        if isinstance(v, dict):
            return {k: scrub(vv) for k, vv in v.items()}
        return v

    for k, v in list(event_dict.items()):
        event_dict[k] = scrub(v)
    return event_dict


def configure_logging(level: str = "INFO", log_file: Optional[str] = None) -> None:
    """Configure structlog with JSON output on top of stdlib logging"""
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            redact_api_keys,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    handlers = [logging.StreamHandler()]
    if log_file:
        handlers.append(logging.FileHandler(log_file))

    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(message)s",  # structlog handles formatting
        handlers=handlers,
        force=True,
    )
