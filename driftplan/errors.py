"""Exceptions raised while planning instances."""

from __future__ import annotations

from typing import Any

__all__ = [
    "PlanningError",
    "UnboundInstanceModelError",
]


class PlanningError(Exception):
    """Base class for errors that abort a planning pass."""


class UnboundInstanceModelError(PlanningError):
    """Raised when disk state is read from an instance with no persisted model."""

    def __init__(self, instance: Any) -> None:
        super().__init__(f"Instance '{instance}' model is not bound")
        self.instance = instance
