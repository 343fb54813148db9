"""Value types describing desired and existing instances.

Desired topology comes in as ``InstanceGroup`` and ``DesiredInstance``;
persisted topology as ``ExistingInstanceRecord`` with its last-applied
``ApplySpec``. Everything except ``DesiredInstance`` is immutable.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any

from driftplan.constants import InstanceState
from driftplan.types.core import CloudProperties

__all__ = [
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
]

_EMPTY: Mapping[str, Any] = MappingProxyType({})


@dataclass(frozen=True, slots=True)
class AvailabilityZone:
    name: str
    cloud_properties: CloudProperties = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class Stemcell:
    name: str
    version: str

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> Stemcell:
        return cls(name=raw["name"], version=str(raw["version"]))


@dataclass(frozen=True, slots=True)
class VmType:
    """Resolved VM type. Two types are equal when name and cloud properties match."""

    name: str
    cloud_properties: CloudProperties = field(default_factory=dict)

    @property
    def spec(self) -> dict[str, Any]:
        return {"name": self.name, "cloud_properties": dict(self.cloud_properties)}

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> VmType:
        return cls(name=raw["name"], cloud_properties=dict(raw.get("cloud_properties") or {}))


@dataclass(frozen=True, slots=True)
class Env:
    """Environment handed to the CPI when creating a VM (``bosh`` settings etc.)."""

    spec: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class DiskType:
    name: str
    disk_size: int
    cloud_properties: CloudProperties = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.disk_size < 0:
            raise ValueError(f"disk_size must be >= 0, got {self.disk_size}")


@dataclass(frozen=True, slots=True)
class PersistentDisk:
    """Persistent disk currently attached to an instance."""

    size: int
    cloud_properties: CloudProperties = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class ApplySpec:
    """Snapshot of the configuration last applied to an instance's VM.

    Attributes:
        networks: Network settings keyed by network name, as sent to the agent.
        stemcell: Stemcell the VM was created from.
        vm_type: VM type the VM was created with.
        env: Environment recorded at VM creation, None when never recorded.
    """

    networks: Mapping[str, Mapping[str, Any]] = field(default_factory=dict)
    stemcell: Stemcell | None = None
    vm_type: VmType | None = None
    env: Env | None = None

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any] | None) -> ApplySpec:
        """Build an apply spec from the raw persisted document."""
        raw = raw or _EMPTY
        stemcell = raw.get("stemcell")
        vm_type = raw.get("vm_type")
        env = raw.get("env")
        return cls(
            networks={name: dict(settings) for name, settings in (raw.get("networks") or {}).items()},
            stemcell=Stemcell.from_dict(stemcell) if stemcell else None,
            vm_type=VmType.from_dict(vm_type) if vm_type else None,
            env=Env(spec=dict(env)) if env is not None else None,
        )


@dataclass(frozen=True, slots=True)
class InstanceGroup:
    """Desired job / instance group as resolved from the deployment manifest."""

    name: str
    availability_zones: tuple[AvailabilityZone, ...] = ()
    vm_type: VmType | None = None
    stemcell: Stemcell | None = None
    env: Env = field(default_factory=Env)
    persistent_disk_type: DiskType | None = None
    # property ("dns", "gateway", "addressable") -> network name
    default_network: Mapping[str, str] = field(default_factory=dict)
    migrated_from: tuple[str, ...] = ()

    @property
    def zone_names(self) -> frozenset[str]:
        return frozenset(az.name for az in self.availability_zones)

    @property
    def known_names(self) -> frozenset[str]:
        """Names under which existing records of this group may be persisted."""
        return frozenset((self.name, *self.migrated_from))


@dataclass(slots=True)
class DesiredInstance:
    """One slot the instance group wants filled.

    ``index`` and ``bootstrap`` are assigned by the planner; callers may
    request an index, which is honoured when it is free.
    """

    job: InstanceGroup
    state: str | None = None
    deployment: Any = None
    az: AvailabilityZone | None = None
    is_existing: bool = False
    index: int | None = None
    bootstrap: bool = False

    @property
    def virtual_state(self) -> str | None:
        return self.state

    @property
    def az_name(self) -> str | None:
        return self.az.name if self.az else None

    def assign_index(self, index: int) -> None:
        if index < 0:
            raise ValueError(f"index must be >= 0, got {index}")
        self.index = index

    def mark_as_bootstrap(self) -> None:
        self.bootstrap = True

    def unmark_as_bootstrap(self) -> None:
        self.bootstrap = False


@dataclass(frozen=True, slots=True, eq=False)
class ExistingInstanceRecord:
    """Persisted instance record. Compared and hashed by identity, like a DB row."""

    job: str
    index: int
    deployment: str = ""
    uuid: str = ""
    state: str = InstanceState.STARTED
    bootstrap: bool = False
    apply_spec: ApplySpec = field(default_factory=ApplySpec)
    persistent_disk: PersistentDisk | None = None

    @property
    def env(self) -> Env | None:
        return self.apply_spec.env

    def __str__(self) -> str:
        suffix = f" ({self.uuid})" if self.uuid else ""
        return f"{self.job}/{self.index}{suffix}"


@dataclass(frozen=True, slots=True)
class InstanceWithAZ:
    """An existing record paired with the name of the zone it lives in."""

    model: ExistingInstanceRecord
    az: str | None = None
