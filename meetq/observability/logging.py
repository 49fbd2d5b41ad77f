"""
Logger setup shared by every MeetQ module.

One stream handler on the root logger; level from MEETQ_LOG_LEVEL.  Attendee
and organizer addresses end up in log arguments often enough that the handler
masks the local part of any email address it formats.
"""

from __future__ import annotations

import logging
import os
import re
from typing import Final

_HANDLER_ATTACHED: bool = False
_FORMAT: Final[str] = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

_EMAIL_RE: Final[re.Pattern[str]] = re.compile(r"\b([A-Za-z0-9._%+-])[A-Za-z0-9._%+-]*@([A-Za-z0-9.-]+\.[A-Za-z]{2,})\b")


def mask_emails(text: str) -> str:
    """
    Keep the first character and the domain of each address.

    Examples:
        >>> mask_emails("shared with alice@egen.com")
        'shared with a***@egen.com'
    """
    return _EMAIL_RE.sub(r"\1***@\2", text)


class EmailMaskingFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        masked = mask_emails(message)
        if masked != message:
            record.msg = masked
            record.args = None
        return True


def _resolve_level() -> int:
    level_name = os.getenv("MEETQ_LOG_LEVEL", "INFO").upper()
    return getattr(logging, level_name, logging.INFO)


def get_logger(name: str) -> logging.Logger:
    """Return a module logger; the first call attaches the root handler."""
    global _HANDLER_ATTACHED

    level = _resolve_level()

    if not _HANDLER_ATTACHED:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
        handler.addFilter(EmailMaskingFilter())
        root = logging.getLogger()
        root.addHandler(handler)
        root.setLevel(level)
        _HANDLER_ATTACHED = True

    logger = logging.getLogger(name)
    logger.setLevel(level)
    return logger
