"""Type definitions for driftplan using Python 3.12+ generics."""

from driftplan.types.core import (
    AgentState,
    CloudProperties,
    Index,
    NetworkPlanTag,
    NetworkType,
)
from driftplan.types.protocols import (
    DnsManager,
    Instance,
    InstanceRepository,
    Logger,
)
from driftplan.types.spec import (
    ApplySpec,
    AvailabilityZone,
    DesiredInstance,
    DiskType,
    Env,
    ExistingInstanceRecord,
    InstanceGroup,
    InstanceWithAZ,
    PersistentDisk,
    Stemcell,
    VmType,
)

__all__ = [
    # Core types
    "AgentState",
    "CloudProperties",
    "Index",
    "NetworkPlanTag",
    "NetworkType",
    # Desired and persisted topology
    "AvailabilityZone",
    "Stemcell",
    "VmType",
    "Env",
    "DiskType",
    "PersistentDisk",
    "ApplySpec",
    "InstanceGroup",
    "DesiredInstance",
    "ExistingInstanceRecord",
    "InstanceWithAZ",
    # Collaborators
    "Logger",
    "Instance",
    "InstanceRepository",
    "DnsManager",
]
