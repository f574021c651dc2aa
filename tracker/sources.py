"""
Observation source contract.

A source produces the value set for a tick (logging in, navigating and
scraping are its own business) and can capture a screenshot of whatever it
is looking at for diagnostics.
"""

import importlib
from abc import ABC, abstractmethod
from pathlib import Path

from tracker.failure_reporter import ReasonLike, normalize_reason
from tracker.models import FailureReason, Observation


class ObservationError(Exception):
    """Raised by a source that could not produce values for this tick."""

    def __init__(self, reason: ReasonLike = FailureReason.ERROR_GETTING_VALUES, message: str = ""):
        self.reason = normalize_reason(reason)
        super().__init__(message or self.reason)


class ObservationSource(ABC):
    """Supplies one observation per tick."""

    @abstractmethod
    async def fetch(self) -> Observation:
        """Return the current observation or raise ObservationError."""

    @abstractmethod
    async def take_screenshot(self, path: Path) -> None:
        """Write a PNG image of the current state of the source to ``path``."""

    async def close(self) -> None:
        """Release browser sessions or connections."""


def load_source(import_path: str) -> ObservationSource:
    """
    Build a source from a ``"package.module:factory"`` import path.

    The factory is called without arguments and must return an ObservationSource.
    """
    module_name, _, attribute = import_path.partition(":")
    if not module_name or not attribute:
        raise ValueError(f"Source must look like 'module:factory', got {import_path!r}")

    factory = getattr(importlib.import_module(module_name), attribute)
    source = factory()
    if not isinstance(source, ObservationSource):
        raise TypeError(f"{import_path} did not return an ObservationSource")
    return source
