"""Process-wide error coordinator and uncaught-exception hooks.

Application start-up code uses these accessors; library code should accept an
``ErrorCoordinator`` explicitly instead of reaching for the global one.
"""

from __future__ import annotations

import asyncio
import sys
import threading
from types import TracebackType
from typing import Any, Callable, Mapping

from packages.tutor_shared.config import TutorSettings
from packages.tutor_shared.errors import ErrorCategory
from packages.tutor_shared.logging import configure_logging, get_logger

from .coordinator import ErrorContext, ErrorCoordinator
from .retry import RetryPolicy

logger = get_logger(__name__)

_global_handler: ErrorCoordinator | None = None


def get_global_error_handler() -> ErrorCoordinator:
    """Return the process coordinator, creating a default one on first use."""
    global _global_handler
    if _global_handler is None:
        _global_handler = ErrorCoordinator()
    return _global_handler


def initialize_error_handler(
    context: ErrorContext | Mapping[str, Any] | None = None,
    *,
    settings: TutorSettings | None = None,
) -> ErrorCoordinator:
    """Replace the process coordinator.

    With ``settings``, logging is configured from ``settings.logging`` and the
    coordinator's default retry policy comes from ``settings.recovery.retry``.
    """
    global _global_handler
    if settings is None:
        _global_handler = ErrorCoordinator(context)
        return _global_handler

    configure_logging(
        level=settings.logging.level,
        json_output=settings.logging.json_output,
        service=settings.logging.service,
        environment=settings.logging.environment,
    )
    _global_handler = ErrorCoordinator(
        context,
        retry_policy=RetryPolicy.from_settings(settings.recovery.retry),
    )
    return _global_handler


def reset_error_handler() -> None:
    """Drop the process coordinator; the next access builds a fresh one."""
    global _global_handler
    _global_handler = None


def setup_global_error_handlers(
    loop: asyncio.AbstractEventLoop | None = None,
) -> Callable[[], None]:
    """Route uncaught exceptions through the process coordinator.

    Installs ``sys.excepthook``, ``threading.excepthook`` and, when an event
    loop is given or running, its exception handler. Every hook reports the
    failure as ``ErrorCategory.UNKNOWN`` and then defers to the hook it
    replaced. Returns a callable restoring the previous hooks.
    """
    if loop is None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            loop = None

    previous_excepthook = sys.excepthook
    previous_threading_hook = threading.excepthook
    previous_loop_handler = loop.get_exception_handler() if loop is not None else None

    def excepthook(
        exc_type: type[BaseException],
        exc_value: BaseException,
        traceback: TracebackType | None,
    ) -> None:
        if not issubclass(exc_type, KeyboardInterrupt):
            _report(exc_value)
        previous_excepthook(exc_type, exc_value, traceback)

    def threading_hook(args: threading.ExceptHookArgs) -> None:
        if not issubclass(args.exc_type, SystemExit):
            _report(args.exc_value if args.exc_value is not None else args.exc_type.__name__)
        previous_threading_hook(args)

    def loop_handler(
        event_loop: asyncio.AbstractEventLoop, context: dict[str, Any]
    ) -> None:
        _report(context.get("exception") or context.get("message"))
        if previous_loop_handler is not None:
            previous_loop_handler(event_loop, context)
        else:
            event_loop.default_exception_handler(context)

    sys.excepthook = excepthook
    threading.excepthook = threading_hook
    if loop is not None:
        loop.set_exception_handler(loop_handler)

    def teardown() -> None:
        sys.excepthook = previous_excepthook
        threading.excepthook = previous_threading_hook
        if loop is not None:
            loop.set_exception_handler(previous_loop_handler)

    return teardown


def _report(value: object) -> None:
    get_global_error_handler().handle(value, ErrorCategory.UNKNOWN)
