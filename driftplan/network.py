"""Network reservations, per-slot network plans and derived network settings."""

from __future__ import annotations

import re
from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass, field
from typing import Any, get_args

from driftplan.constants import DEFAULT_DNS_DOMAIN
from driftplan.types.core import AgentState, CloudProperties, NetworkPlanTag, NetworkType
from driftplan.types.spec import AvailabilityZone

__all__ = [
    "Network",
    "NetworkReservation",
    "NetworkReservations",
    "NetworkPlan",
    "NetworkSettings",
    "canonical",
]

_INVALID_DNS_CHARS = re.compile(r"[^a-z0-9-]")


def canonical(label: str) -> str:
    """Turn a job/network/deployment name into a valid DNS label."""
    return _INVALID_DNS_CHARS.sub("", label.lower().replace("_", "-"))


@dataclass(frozen=True, slots=True)
class Network:
    name: str
    type: NetworkType = "manual"
    netmask: str | None = None
    gateway: str | None = None
    dns: tuple[str, ...] = ()
    cloud_properties: CloudProperties = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class NetworkReservation:
    """An address held on a network for one instance.

    Dynamic networks carry no ip; the address is whatever the agent reports.
    """

    network: Network
    ip: str | None = None

    @property
    def dynamic(self) -> bool:
        return self.network.type == "dynamic"


@dataclass(frozen=True, slots=True)
class NetworkReservations:
    """Reservations an instance held before this pass."""

    reservations: tuple[NetworkReservation, ...] = ()

    def __iter__(self) -> Iterator[NetworkReservation]:
        return iter(self.reservations)

    def __len__(self) -> int:
        return len(self.reservations)

    def find_for_network(self, network: Network) -> NetworkReservation | None:
        return next((r for r in self.reservations if r.network == network), None)


_TAGS: tuple[str, ...] = get_args(NetworkPlanTag)


@dataclass(slots=True)
class NetworkPlan:
    """Whether a reservation is newly desired, already applied, or being released."""

    reservation: NetworkReservation
    tag: NetworkPlanTag = "desired"

    def __post_init__(self) -> None:
        if self.tag not in _TAGS:
            raise ValueError(f"Invalid network plan tag: {self.tag!r}. Use one of {', '.join(_TAGS)}.")

    @property
    def desired(self) -> bool:
        return self.tag == "desired"

    @property
    def existing(self) -> bool:
        return self.tag == "existing"

    @property
    def obsolete(self) -> bool:
        return self.tag == "obsolete"

    def mark_existing(self) -> None:
        if self.desired:
            self.tag = "existing"


@dataclass(frozen=True, slots=True)
class NetworkSettings:
    """Network settings for one instance slot, as the agent will receive them.

    Computed from the slot's non-obsolete reservations. Nothing is cached;
    build a new one whenever reservations change.
    """

    job_name: str
    deployment_name: str
    default_network: Mapping[str, str]
    reservations: tuple[NetworkReservation, ...]
    current_state: AgentState | None
    availability_zone: AvailabilityZone | None
    index: int
    uuid: str
    dns_domain: str = DEFAULT_DNS_DOMAIN

    @classmethod
    def build(
        cls,
        *,
        job_name: str,
        deployment_name: str,
        default_network: Mapping[str, str],
        reservations: Iterable[NetworkReservation],
        current_state: AgentState | None,
        availability_zone: AvailabilityZone | None,
        index: int,
        uuid: str,
        dns_domain: str = DEFAULT_DNS_DOMAIN,
    ) -> NetworkSettings:
        return cls(
            job_name=job_name,
            deployment_name=deployment_name,
            default_network=dict(default_network),
            reservations=tuple(reservations),
            current_state=current_state,
            availability_zone=availability_zone,
            index=index,
            uuid=uuid,
            dns_domain=dns_domain,
        )

    def _ip_for(self, reservation: NetworkReservation) -> str | None:
        if not reservation.dynamic:
            return reservation.ip
        networks = (self.current_state or {}).get("networks") or {}
        return (networks.get(reservation.network.name) or {}).get("ip")

    def _dns_name(self, first_label: str, network_name: str) -> str:
        labels = (
            first_label,
            canonical(self.job_name),
            canonical(network_name),
            canonical(self.deployment_name),
            self.dns_domain,
        )
        return ".".join(labels)

    def _addresses(self) -> Iterator[tuple[str, str]]:
        for reservation in self.reservations:
            ip = self._ip_for(reservation)
            if ip:
                yield reservation.network.name, ip

    def to_dict(self) -> dict[str, dict[str, Any]]:
        result: dict[str, dict[str, Any]] = {}
        for reservation in self.reservations:
            network = reservation.network
            settings: dict[str, Any] = {
                "type": network.type,
                "cloud_properties": dict(network.cloud_properties),
                "dns_record_name": self._dns_name(str(self.index), network.name),
            }
            if ip := self._ip_for(reservation):
                settings["ip"] = ip
            if network.netmask:
                settings["netmask"] = network.netmask
            if network.gateway:
                settings["gateway"] = network.gateway
            if network.dns:
                settings["dns"] = list(network.dns)
            defaults = sorted(prop for prop, name in self.default_network.items() if name == network.name)
            if defaults:
                settings["default"] = defaults
            result[network.name] = settings
        return result

    def dns_record_info(self) -> list[tuple[str, str]]:
        """(name, ip) pairs that must exist in the DNS store for this slot."""
        records: list[tuple[str, str]] = []
        for network_name, ip in self._addresses():
            records.append((self._dns_name(str(self.index), network_name), ip))
            if self.uuid:
                records.append((self._dns_name(self.uuid, network_name), ip))
        return records

    def network_addresses(self) -> dict[str, dict[str, str]]:
        return {network_name: {"address": ip} for network_name, ip in self._addresses()}
