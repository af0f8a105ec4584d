"""Context propagation for structured logging.

Fields pushed with ``log_context`` are injected into every log record emitted
inside the scope. Context lives in a ContextVar, so worker threads only see it
when the submitting code hands them a copy (see ``context_bound``).
"""

from contextvars import ContextVar, Token, copy_context
from typing import Any, Callable, Dict, Optional


LogContextVar: ContextVar[Dict[str, Any]] = ContextVar("log_context", default={})


def get_log_context() -> Dict[str, Any]:
    """Get the current logging context.

    Returns:
        Dictionary of current context fields
    """
    return LogContextVar.get().copy()


def push_log_context(**kwargs) -> Token:
    """Merge new fields into the logging context.

    Args:
        **kwargs: Key-value pairs to add to the logging context

    Returns:
        Token that restores the previous context when passed to pop_log_context()

    Example:
        >>> token = push_log_context(run_id="abc123", event_type="attendance_absent")
        >>> pop_log_context(token)
    """
    current = LogContextVar.get()
    return LogContextVar.set({**current, **kwargs})


def pop_log_context(token: Token) -> None:
    """Restore the logging context to a previous state.

    Args:
        token: Token returned from push_log_context()
    """
    LogContextVar.reset(token)


def clear_log_context() -> None:
    """Clear all logging context fields (mainly for tests)."""
    LogContextVar.set({})


def context_bound(func: Callable[..., Any]) -> Callable[..., Any]:
    """Bind ``func`` to a snapshot of the caller's context.

    Used when submitting work to a thread pool so that run-level fields such as
    ``run_id`` follow the task into the worker thread.

    Args:
        func: Callable to wrap

    Returns:
        Callable that executes ``func`` inside the captured context
    """
    snapshot = copy_context()

    def runner(*args, **kwargs):
        return snapshot.run(func, *args, **kwargs)

    return runner


class log_context:
    """Context manager for scoped logging context.

    Example:
        >>> with log_context(run_id="abc123", reference_id="att-001"):
        ...     logger.info("Processing event")  # includes run_id and reference_id
    """

    def __init__(self, **kwargs):
        self.kwargs = kwargs
        self.token: Optional[Token] = None

    def __enter__(self):
        self.token = push_log_context(**self.kwargs)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self.token is not None:
            pop_log_context(self.token)
        return False
