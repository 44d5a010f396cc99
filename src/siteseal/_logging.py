"""Logging plumbing shared by the siteseal modules.

Records carry structured fields through ``extra=``. The domain or domains
being validated or issued are attached by :func:`log_extra` while a
:func:`domain_context` block is active, so nested validation inside an
issuance reports the single domain and then falls back to the SAN set.
"""

import logging
import time
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Any

logging.getLogger("siteseal").addHandler(logging.NullHandler())

_active_domains: ContextVar[tuple[str, ...]] = ContextVar("siteseal_active_domains", default=())


@contextmanager
def domain_context(domains: Iterable[str]) -> Iterator[tuple[str, ...]]:
    """Tag records logged inside the block with ``domains``."""
    active = tuple(domains)
    token = _active_domains.set(active)
    try:
        yield active
    finally:
        _active_domains.reset(token)


def active_domains() -> tuple[str, ...]:
    return _active_domains.get()


def log_extra(**fields: Any) -> dict[str, Any]:
    """Return ``fields`` plus ``domain`` (one active) or ``domains`` (several)."""
    active = _active_domains.get()
    if len(active) == 1:
        fields.setdefault("domain", active[0])
    elif active:
        fields.setdefault("domains", list(active))
    return fields


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


class Timer:
    """Wall time of a ``with`` block, exposed as ``elapsed_ms`` after exit."""

    def __init__(self) -> None:
        self.elapsed_ms: float = 0.0
        self._started: float = 0.0

    def __enter__(self) -> "Timer":
        self._started = time.perf_counter()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.elapsed_ms = round((time.perf_counter() - self._started) * 1000, 3)
