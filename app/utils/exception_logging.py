"""
Utility functions for logging upstream failures without leaking the API key.
"""

import logging
from typing import Optional

from app.utils import mask_token


def _safe_str(obj) -> str:
    """
    Safely convert an object to string, handling cases where __str__ or __repr__ might fail.

    Args:
        obj: The object to convert to string

    Returns:
        A string representation of the object, falling back to safe alternatives
    """
    try:
        return str(obj)
    except Exception:
        try:
            return repr(obj)
        except Exception:
            return f"<{type(obj).__name__} object (string conversion failed)>"


def _safe_get_exceptions(exception_group) -> list:
    """
    Safely get the exceptions list from an exception group.

    Args:
        exception_group: The exception group object

    Returns:
        List of exceptions, or empty list if access fails
    """
    try:
        return list(exception_group.exceptions)
    except Exception:
        return []


def format_exception_message(exception: Exception, secret: Optional[str] = None) -> str:
    """
    Format an exception message, including sub-exceptions of exception groups,
    with every occurrence of ``secret`` masked.

    Args:
        exception: The exception to format
        secret: Value that must not appear in the result (e.g. the API key)

    Returns:
        A formatted string describing the exception
    """
    if exception is None:
        return "None"

    message = _safe_str(exception)
    sub_exceptions = (
        _safe_get_exceptions(exception) if hasattr(exception, "exceptions") else []
    )
    if sub_exceptions:
        parts = [f"{type(sub).__name__}: {_safe_str(sub)}" for sub in sub_exceptions]
        message = f"{message} (Sub-exceptions: {'; '.join(parts)})"

    return mask_token(message, secret)


def log_exception_with_details(
    logger: logging.Logger,
    prefix: str,
    exception: Exception,
    level: int = logging.ERROR,
    secret: Optional[str] = None,
) -> None:
    """
    Log an exception with its type and masked message.

    The traceback is not attached: httpx and websockets put the full upstream
    URL, query string included, into exception arguments and frames.

    Args:
        logger: The logger instance to use
        prefix: Prefix for the log message (e.g., "[Proxy]", "[WebSocket]")
        exception: The exception to log
        level: The logging level to use (default: ERROR)
        secret: Value to mask in the logged message
    """
    try:
        exc_type = type(exception).__name__ if exception is not None else "NoneType"
        message = format_exception_message(exception, secret)
        logger.log(level, f"{prefix} {exc_type}: {message}")
    except Exception:
        # Logging must never mask the original failure
        try:
            logger.log(level, f"{prefix} Exception (logging details failed)")
        except Exception:
            pass
