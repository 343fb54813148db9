"""driftplan - instance reconciliation for deployment orchestrators.

Example:

    from driftplan import InstancePlanner, DesiredInstance, InstanceWithAZ

    planner = InstancePlanner(repository)
    plans = planner.plan_job_instances(job, desired, existing, states)

    for plan in plans:
        if plan.obsolete:
            delete(plan)
        elif plan.needs_shutting_down():
            recreate(plan)
        elif plan.changed:
            update(plan, plan.changes)
"""

# Change categories and states
from driftplan.constants import Change, InstanceState, VirtualState

# DNS record stores
from driftplan.dns import DnsRecord, InMemoryDnsManager, NullDnsManager

# Errors
from driftplan.errors import PlanningError, UnboundInstanceModelError

# Networks
from driftplan.network import (
    Network,
    NetworkPlan,
    NetworkReservation,
    NetworkReservations,
    NetworkSettings,
)

# Planning
from driftplan.config import PlannerConfig, load_config, resolve_config
from driftplan.plan import InstancePlan
from driftplan.planner import InstancePlanner

# Logging
from driftplan.observability import LogConfig, setup_logging, teardown_logging

# Types
from driftplan.types import (
    ApplySpec,
    AvailabilityZone,
    DesiredInstance,
    DiskType,
    DnsManager,
    Env,
    ExistingInstanceRecord,
    Instance,
    InstanceGroup,
    InstanceRepository,
    InstanceWithAZ,
    PersistentDisk,
    Stemcell,
    VmType,
)

__all__ = [
    # Changes
    "Change",
    "InstanceState",
    "VirtualState",
    # DNS
    "DnsRecord",
    "InMemoryDnsManager",
    "NullDnsManager",
    # Errors
    "PlanningError",
    "UnboundInstanceModelError",
    # Networks
    "Network",
    "NetworkPlan",
    "NetworkReservation",
    "NetworkReservations",
    "NetworkSettings",
    # Planning
    "PlannerConfig",
    "load_config",
    "resolve_config",
    "InstancePlan",
    "InstancePlanner",
    # Logging
    "LogConfig",
    "setup_logging",
    "teardown_logging",
    # Types
    "ApplySpec",
    "AvailabilityZone",
    "DesiredInstance",
    "DiskType",
    "DnsManager",
    "Env",
    "ExistingInstanceRecord",
    "Instance",
    "InstanceGroup",
    "InstanceRepository",
    "InstanceWithAZ",
    "PersistentDisk",
    "Stemcell",
    "VmType",
]
