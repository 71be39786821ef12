"""Process-wide logging setup for codeatlas hosts.

``setup_logging`` must run before litellm is first imported: litellm
reads ``LITELLM_LOG`` at import time. ``cleanup_third_party_handlers``
runs afterwards and removes the stream handlers litellm attaches to its
own loggers, which would otherwise print every record twice.

Each function does its work once per process.
"""

import logging
import os

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"
LOG_DATEFMT = "%Y-%m-%dT%H:%M:%S"

_LITELLM_LOGGERS = ("LiteLLM", "LiteLLM Router", "LiteLLM Proxy")

# Lowered to WARNING so per-request chatter stays out of analysis logs
_QUIET_LOGGERS = (*_LITELLM_LOGGERS, "httpx", "httpcore", "openai")

_configured = False
_handlers_cleaned = False


def setup_logging(level: str = "INFO") -> None:
    """Configure the root logger and quiet third-party loggers."""
    global _configured  # noqa: PLW0603
    if _configured:
        return
    _configured = True

    os.environ.setdefault("LITELLM_LOG", "WARNING")
    logging.basicConfig(
        level=getattr(logging, level.upper()),
        format=LOG_FORMAT,
        datefmt=LOG_DATEFMT,
    )
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def cleanup_third_party_handlers() -> None:
    """Drop litellm's own handlers; its records still reach the root."""
    global _handlers_cleaned  # noqa: PLW0603
    if _handlers_cleaned:
        return
    _handlers_cleaned = True

    for name in _LITELLM_LOGGERS:
        lg = logging.getLogger(name)
        lg.handlers.clear()
        lg.propagate = True
