"""
Exception logging that never raises, including sub-exceptions of exception groups.

Pipeline stages call these helpers from their failure paths, where a broken
``__str__`` on some provider exception must not mask the original failure.
"""

import logging


def _safe_str(obj) -> str:
    try:
        return str(obj)
    except Exception:
        try:
            return repr(obj)
        except Exception:
            return f"<{type(obj).__name__} object (string conversion failed)>"


def _safe_get_exceptions(exception_group) -> list:
    try:
        return list(exception_group.exceptions)
    except Exception:
        return []


def _sub_exceptions(exception) -> list:
    if exception is None or not hasattr(exception, "exceptions"):
        return []
    return _safe_get_exceptions(exception)


def log_exception_with_details(
    logger: logging.Logger,
    prefix: str,
    exception: BaseException,
    level: int = logging.ERROR,
) -> None:
    """
    Log an exception and, for exception groups, each sub-exception.

    Args:
        logger: Logger to write to
        prefix: Component prefix for the message, e.g. "[BuildStage]"
        exception: The exception to log
        level: Logging level (default: ERROR)
    """
    try:
        safe_prefix = _safe_str(prefix) if prefix is not None else ""
        message = _safe_str(exception) if exception is not None else "None"
        subs = _sub_exceptions(exception)

        if not subs:
            try:
                logger.log(
                    level,
                    f"{safe_prefix} Exception: {message}",
                    exc_info=exception if exception is not None else False,
                )
            except Exception:
                logger.log(level, f"{safe_prefix} Exception: {message}")
            return

        logger.log(
            level,
            f"{safe_prefix} Exception with {len(subs)} sub-exceptions: {message}",
        )
        for i, sub_exc in enumerate(subs, start=1):
            try:
                logger.log(
                    level,
                    f"{safe_prefix} Sub-exception {i}: {type(sub_exc).__name__}: {_safe_str(sub_exc)}",
                    exc_info=sub_exc,
                )
            except Exception:
                continue
    except Exception:
        try:
            if logger is not None:
                logger.log(logging.ERROR, "Exception logging failed")
        except Exception:
            pass


def format_exception_message(exception: BaseException) -> str:
    """Describe an exception in one string, listing sub-exceptions if any."""
    try:
        if exception is None:
            return "None"
        message = _safe_str(exception)
        subs = _sub_exceptions(exception)
        if not subs:
            return message
        details = "; ".join(
            f"{type(sub).__name__}: {_safe_str(sub)}" for sub in subs
        )
        return f"{message} [{details}]"
    except Exception:
        return "<exception formatting failed>"
