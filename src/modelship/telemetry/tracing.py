"""OpenTelemetry tracing utilities for modelship.

Provides the @traced decorator and the create_span() context manager used to
instrument promotion operations. Error messages recorded on spans are
sanitized via ``sanitize_error_message()`` so that state store credentials
never leave the process.
"""

from __future__ import annotations

import functools
from collections.abc import Callable
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any, ParamSpec, TypeVar, overload

from opentelemetry import trace
from opentelemetry.trace import Status, StatusCode, Tracer

from modelship.telemetry.sanitization import sanitize_error_message

__all__ = ["traced", "create_span", "get_tracer", "set_tracer", "reset_tracer"]

if TYPE_CHECKING:
    from collections.abc import Generator

    from opentelemetry.trace import Span

P = ParamSpec("P")
R = TypeVar("R")

_TRACER_NAME = "modelship.telemetry"

_tracer: Tracer | None = None


def get_tracer() -> Tracer:
    """Get the tracer instance for modelship telemetry.

    Resolved lazily from the global TracerProvider, so spans go to whatever
    provider the host process installed (a no-op one by default).
    """
    global _tracer
    if _tracer is None:
        _tracer = trace.get_tracer(_TRACER_NAME)
    return _tracer


def set_tracer(tracer: Tracer | None) -> None:
    """Set the module-level tracer (for testing).

    Args:
        tracer: Tracer instance to use, or None to resolve it again.
    """
    global _tracer
    _tracer = tracer


def reset_tracer() -> None:
    """Drop the cached tracer."""
    set_tracer(None)


def _record_error(span: Span, exc: Exception) -> None:
    sanitized = sanitize_error_message(str(exc))
    span.set_status(Status(StatusCode.ERROR, sanitized))
    span.set_attribute("exception.type", type(exc).__name__)
    span.set_attribute("exception.message", sanitized)


@overload
def traced(func: Callable[P, R]) -> Callable[P, R]: ...


@overload
def traced(
    *,
    name: str | None = None,
    attributes: dict[str, str] | None = None,
) -> Callable[[Callable[P, R]], Callable[P, R]]: ...


def traced(
    func: Callable[P, R] | None = None,
    *,
    name: str | None = None,
    attributes: dict[str, str] | None = None,
) -> Callable[P, R] | Callable[[Callable[P, R]], Callable[P, R]]:
    """Decorator to trace function execution with an OpenTelemetry span.

    Can be used with or without arguments:
        @traced
        def my_function(): ...

        @traced(name="modelship.state_store.sync", attributes={"key": "value"})
        def my_function(): ...

    Args:
        func: The function to decorate (when used without parentheses).
        name: Optional custom span name. Defaults to function name.
        attributes: Optional static span attributes set on every invocation.

    Returns:
        Decorated function that creates a span on each invocation.
    """

    def decorator(fn: Callable[P, R]) -> Callable[P, R]:
        span_name = name if name is not None else fn.__name__

        @functools.wraps(fn)
        def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
            tracer = get_tracer()
            with tracer.start_as_current_span(
                span_name,
                record_exception=False,
                set_status_on_exception=False,
            ) as span:
                if attributes:
                    for key, value in attributes.items():
                        span.set_attribute(key, value)
                try:
                    return fn(*args, **kwargs)
                except Exception as e:
                    _record_error(span, e)
                    raise

        return wrapper

    if func is not None:
        return decorator(func)
    return decorator


@contextmanager
def create_span(
    name: str,
    attributes: dict[str, Any] | None = None,
) -> Generator[Span, None, None]:
    """Create a span as a context manager.

    Nested calls create parent-child relationships automatically.

    Args:
        name: The name for the span.
        attributes: Optional dictionary of attributes to set on the span.

    Yields:
        The created span for additional attribute setting.

    Examples:
        >>> with create_span("modelship.promotion.run") as span:
        ...     span.set_attribute("commit_sha", "3f2a9c1")
        ...     with create_span("modelship.promotion.detect"):
        ...         pass
    """
    tracer = get_tracer()
    with tracer.start_as_current_span(
        name,
        record_exception=False,
        set_status_on_exception=False,
    ) as span:
        if attributes:
            for key, value in attributes.items():
                if value is not None:
                    span.set_attribute(key, value)
        try:
            yield span
        except Exception as e:
            _record_error(span, e)
            raise
