"""DNS record stores consulted when checking a slot's DNS drift."""

from __future__ import annotations

from dataclasses import dataclass, field

__all__ = [
    "DnsRecord",
    "NullDnsManager",
    "InMemoryDnsManager",
]


@dataclass(frozen=True, slots=True)
class DnsRecord:
    name: str
    ip: str
    type: str = "A"


class NullDnsManager:
    """DNS management switched off. No slot ever reports DNS drift."""

    def dns_enabled(self) -> bool:
        return False

    def find_dns_record(self, name: str, ip: str) -> DnsRecord | None:
        return None


@dataclass
class InMemoryDnsManager:
    """Dict-backed record store keyed by (name, ip)."""

    enabled: bool = True
    _records: dict[tuple[str, str], DnsRecord] = field(default_factory=dict, repr=False)

    def dns_enabled(self) -> bool:
        return self.enabled

    def find_dns_record(self, name: str, ip: str) -> DnsRecord | None:
        return self._records.get((name, ip))

    def add_record(self, name: str, ip: str) -> DnsRecord:
        record = DnsRecord(name=name, ip=ip)
        self._records[(name, ip)] = record
        return record

    def remove_record(self, name: str, ip: str) -> None:
        self._records.pop((name, ip), None)

    def __len__(self) -> int:
        return len(self._records)
