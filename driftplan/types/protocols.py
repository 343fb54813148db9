"""Protocol definitions for the planner's collaborators."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from driftplan.network import NetworkReservations
    from driftplan.types.core import AgentState
    from driftplan.types.spec import (
        AvailabilityZone,
        DesiredInstance,
        ExistingInstanceRecord,
        InstanceGroup,
        Stemcell,
        VmType,
    )

__all__ = [
    "Logger",
    "Instance",
    "InstanceRepository",
    "DnsManager",
]


class Logger(Protocol):
    """Structured log sink. Messages use ``str.format`` placeholders."""

    def bind(self, **extra: object) -> Logger:
        """Child logger that attaches ``extra`` to every record."""
        ...

    def debug(self, message: str, /, *args: object, **kwargs: object) -> None: ...
    def info(self, message: str, /, *args: object, **kwargs: object) -> None: ...
    def warning(self, message: str, /, *args: object, **kwargs: object) -> None: ...


@runtime_checkable
class Instance(Protocol):
    """Bound runtime representation of one instance.

    Supplied by the repository. It knows the resolved desired configuration
    for the slot and the persisted model it was built from, and answers the
    drift questions only it can evaluate (rendered packages, templates, job
    spec, trusted certs, cloud properties).
    """

    @property
    def job(self) -> InstanceGroup: ...

    @property
    def model(self) -> ExistingInstanceRecord | None:
        """Persisted record backing this instance, None while unbound."""
        ...

    @property
    def deployment_name(self) -> str: ...

    @property
    def index(self) -> int: ...

    @property
    def uuid(self) -> str: ...

    @property
    def availability_zone(self) -> AvailabilityZone | None: ...

    @property
    def bootstrap(self) -> bool: ...

    @property
    def state(self) -> str:
        """Persisted administrative state (started, stopped, detached)."""
        ...

    @property
    def current_job_state(self) -> str | None:
        """Job state last reported by the agent (running, failing, ...)."""
        ...

    @property
    def current_state(self) -> AgentState | None: ...

    @property
    def vm_type(self) -> VmType: ...

    @property
    def stemcell(self) -> Stemcell: ...

    @property
    def existing_network_reservations(self) -> NetworkReservations: ...

    def packages_changed(self) -> bool: ...
    def configuration_changed(self) -> bool: ...
    def job_changed(self) -> bool: ...
    def trusted_certs_changed(self) -> bool: ...
    def cloud_properties_changed(self) -> bool: ...


@runtime_checkable
class InstanceRepository(Protocol):
    """Builds bound instances. Failures propagate to the caller of the planner."""

    def fetch_existing(
        self,
        desired: DesiredInstance,
        existing: ExistingInstanceRecord,
        state: AgentState | None,
        logger: Logger,
    ) -> Instance: ...

    def fetch_obsolete(self, existing: ExistingInstanceRecord, logger: Logger) -> Instance: ...

    def create(self, desired: DesiredInstance, index: int, logger: Logger) -> Instance: ...


@runtime_checkable
class DnsManager(Protocol):
    def dns_enabled(self) -> bool: ...

    def find_dns_record(self, name: str, ip: str) -> Any | None: ...
