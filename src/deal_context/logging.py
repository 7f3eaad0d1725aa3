"""
Structured logging for the deal context engine.

structlog with request-scoped identifiers (trace, tenant, deal) carried in
context variables and stamped onto every event. Console rendering for
development, JSON lines for production (``LOG_JSON=true``).

Event names are dotted: ``<component>.<event>``, e.g.
``aggregator.branch_failed`` or ``postgres_store.query``.
"""

import logging
import sys
import time
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Any, Generator

import structlog
from structlog.types import Processor

from .config import config

_CONTEXT_KEYS = ('trace_id', 'tenant_id', 'deal_id')

_context: dict[str, ContextVar[str | None]] = {
    key: ContextVar(key, default=None) for key in _CONTEXT_KEYS
}


def current_context() -> dict[str, str]:
    """Identifiers currently bound by ``logging_context``."""
    bound = {}
    for key, var in _context.items():
        value = var.get()
        if value:
            bound[key] = value
    return bound


def get_trace_id() -> str | None:
    return _context['trace_id'].get()


def get_tenant_id() -> str | None:
    return _context['tenant_id'].get()


def get_deal_id() -> str | None:
    return _context['deal_id'].get()


def add_context_info(
    logger: structlog.types.WrappedLogger,
    method_name: str,
    event_dict: dict[str, Any],
) -> dict[str, Any]:
    """Processor: stamp bound identifiers onto the event (explicit keys win)."""
    for key, value in current_context().items():
        event_dict.setdefault(key, value)
    return event_dict


def _renderers(json_output: bool) -> list[Processor]:
    if json_output:
        return [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]
    return [structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())]


def configure_logging(
    json_output: bool = False,
    log_level: str | None = None,
) -> None:
    """
    Configure structlog for the application.

    Args:
        json_output: JSON lines when True, pretty console output otherwise
        log_level: Override log level (defaults to config.LOG_LEVEL)
    """
    level_name = (log_level or config.LOG_LEVEL).upper()
    level = logging.getLevelName(level_name)
    if not isinstance(level, int):
        level = logging.INFO

    logging.basicConfig(format='%(message)s', stream=sys.stdout, level=level)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            add_context_info,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt='iso'),
            structlog.processors.StackInfoRenderer(),
            *_renderers(json_output),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Structured logger, typically ``get_logger(__name__)``."""
    return structlog.get_logger(name)


@contextmanager
def logging_context(
    trace_id: str | None = None,
    tenant_id: str | None = None,
    deal_id: str | None = None,
) -> Generator[None, None, None]:
    """
    Bind request-scoped identifiers for the duration of the block.

    Arguments left as None keep whatever an outer block bound.

    Usage:
        with logging_context(tenant_id="tenant_1", deal_id="deal_42"):
            logger.info("aggregator.started")  # carries tenant_id and deal_id
    """
    requested = {'trace_id': trace_id, 'tenant_id': tenant_id, 'deal_id': deal_id}
    tokens = [
        (_context[key], _context[key].set(value))
        for key, value in requested.items()
        if value is not None
    ]
    try:
        yield
    finally:
        for var, token in reversed(tokens):
            var.reset(token)


class StageTimer:
    """
    Wall-clock durations (ms) of named stages.

    Usage:
        timer = StageTimer()
        with timer.stage("fan_out"):
            ...
        logger.info("aggregator.complete", **timer.summary())
    """

    def __init__(self):
        self.started = time.perf_counter()
        self.stages: dict[str, float] = {}

    @contextmanager
    def stage(self, name: str) -> Generator[None, None, None]:
        began = time.perf_counter()
        try:
            yield
        finally:
            self.record(name, (time.perf_counter() - began) * 1000)

    def record(self, name: str, duration_ms: float) -> None:
        self.stages[name] = duration_ms

    @property
    def total_ms(self) -> float:
        return (time.perf_counter() - self.started) * 1000

    def summary(self) -> dict[str, Any]:
        return {
            'total_ms': round(self.total_ms, 2),
            'stages': {name: round(ms, 2) for name, ms in self.stages.items()},
        }


configure_logging(json_output=config.LOG_JSON)
