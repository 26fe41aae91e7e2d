"""Error types and exception reporting helpers."""

import errno
import logging


class ScenarioError(Exception):
    """Raised when a test scenario observes an unexpected outcome."""


def log_exception(
    logger: logging.Logger, exc: BaseException, prefix: str = ""
) -> None:
    """Log ``exc`` as "Type: message", with the traceback only at debug level."""
    logger.error(
        "%s%s: %s",
        prefix,
        type(exc).__name__,
        exc,
        exc_info=exc if logger.isEnabledFor(logging.DEBUG) else None,
    )


def exit_code_for_exception(exc: BaseException) -> int:
    """Derive a non-zero process exit code from an exception.

    OS-level errors keep their errno; timeouts map to ETIMEDOUT; anything
    else exits with 1.
    """
    if isinstance(exc, TimeoutError):
        return errno.ETIMEDOUT
    if isinstance(exc, OSError) and exc.errno:
        return exc.errno
    return 1
