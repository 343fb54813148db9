"""Centralized constants and enums for driftplan.

All magic strings used by the planner are defined here
to ensure consistency and enable type-safe usage throughout the codebase.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Final

# =============================================================================
# Change Categories
# =============================================================================


class Change(StrEnum):
    """Drift categories reported by an instance plan."""

    RESTART = "restart"
    RECREATE = "recreate"
    CLOUD_PROPERTIES = "cloud_properties"
    VM_TYPE = "vm_type"
    STEMCELL = "stemcell"
    ENV = "env"
    NETWORK = "network"
    PACKAGES = "packages"
    PERSISTENT_DISK = "persistent_disk"
    CONFIGURATION = "configuration"
    JOB = "job"
    STATE = "state"
    DNS = "dns"
    TRUSTED_CERTS = "trusted_certs"


# =============================================================================
# Instance States
# =============================================================================


class InstanceState(StrEnum):
    """Administrative lifecycle states persisted for an instance."""

    STARTED = "started"
    STOPPED = "stopped"
    DETACHED = "detached"


class VirtualState(StrEnum):
    """One-shot markers carried in a desired instance's state field."""

    RESTART = "restart"
    RECREATE = "recreate"


JOB_STATE_RUNNING: Final = "running"


# =============================================================================
# DNS
# =============================================================================

DEFAULT_DNS_DOMAIN: Final = "bosh"
