"""Core type aliases for driftplan."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Literal, TypeAlias

__all__ = [
    "AgentState",
    "CloudProperties",
    "Index",
    "NetworkPlanTag",
    "NetworkType",
]

CloudProperties: TypeAlias = Mapping[str, Any]

# Opaque document last reported by the agent running on an instance.
AgentState: TypeAlias = Mapping[str, Any]

Index: TypeAlias = int

NetworkPlanTag: TypeAlias = Literal["desired", "existing", "obsolete"]

NetworkType: TypeAlias = Literal["manual", "dynamic", "vip"]
