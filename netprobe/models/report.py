"""Diagnostic report models built from aggregate outcomes and topology facts.

Each report carries its parts unchanged and derives one overall
classification, used by the CLI for its exit code.
"""

from dataclasses import dataclass, field
from typing import Optional

from netprobe.models.outcome import AggregateOutcome, Classification
from netprobe.models.probe import ProbeResult
from netprobe.models.topology import TopologyFact


def combine_classifications(verdicts: list[Classification]) -> Classification:
    """Overall verdict of several checks.

    FULL_SUCCESS only when every check fully succeeded, FAILURE when every
    check failed (or there were none), PARTIAL otherwise.

    Examples:
        >>> combine_classifications([Classification.FULL_SUCCESS, Classification.PARTIAL])
        <Classification.PARTIAL: 'PARTIAL'>
    """
    if not verdicts or all(v == Classification.FAILURE for v in verdicts):
        return Classification.FAILURE
    if all(v == Classification.FULL_SUCCESS for v in verdicts):
        return Classification.FULL_SUCCESS
    return Classification.PARTIAL


@dataclass(frozen=True)
class DnsReport:
    """DNS health for one domain.

    Attributes:
        domain: Domain tested.
        dns_servers: Configured DNS servers of this host.
        current_servers: Resolution through each configured server, None
            when the configured servers are unknown.
        public_servers: Resolution through well-known public resolvers.
        records: Extra lookups (AAAA, MX, NS) keyed by record type.
        cancelled: True if the report was cut short.
    """

    domain: str
    dns_servers: TopologyFact
    current_servers: Optional[AggregateOutcome]
    public_servers: AggregateOutcome
    records: dict[str, ProbeResult] = field(default_factory=dict)
    cancelled: bool = False

    @property
    def classification(self) -> Classification:
        verdicts = [self.public_servers.classification]
        if self.current_servers is not None:
            verdicts.insert(0, self.current_servers.classification)
        return combine_classifications(verdicts)

    def to_json(self) -> dict:
        return {
            "report": "dns",
            "domain": self.domain,
            "classification": self.classification.value,
            "cancelled": self.cancelled,
            "dns_servers": self.dns_servers.to_json(),
            "current_servers": (
                self.current_servers.to_json() if self.current_servers else None
            ),
            "public_servers": self.public_servers.to_json(),
            "records": {k: v.to_json() for k, v in self.records.items()},
        }


@dataclass(frozen=True)
class InternetReport:
    """Internet connectivity sections plus the public address.

    Attributes:
        sections: Outcomes keyed by section name (basic, dns, http, latency),
            in the order they were run.
        public_address: Public IPv4 address as seen by external services.
        cancelled: True if the report was cut short.
    """

    sections: dict[str, AggregateOutcome]
    public_address: Optional[TopologyFact] = None
    cancelled: bool = False

    @property
    def classification(self) -> Classification:
        return combine_classifications(
            [outcome.classification for outcome in self.sections.values()]
        )

    def to_json(self) -> dict:
        return {
            "report": "internet",
            "classification": self.classification.value,
            "cancelled": self.cancelled,
            "sections": {name: o.to_json() for name, o in self.sections.items()},
            "public_address": (
                self.public_address.to_json() if self.public_address else None
            ),
        }


@dataclass(frozen=True)
class RouterReport:
    """Reachability and identity of the default gateway.

    Attributes:
        gateway: Gateway address, from topology or given by the caller.
        reachability: Ping result, None when the gateway is unknown.
        ports: PORT_OPEN outcome over the router service ports.
        web_interface_url: Suggested admin URL, None without an open web port.
        web_title: Title of the admin page, if it could be fetched.
        mac_address: Gateway MAC address from the neighbor caches.
        vendor: Manufacturer derived from the MAC prefix.
        interfaces: Active interfaces of this host and their addresses.
        routes: Routing table of this host.
        cancelled: True if the report was cut short.

    Computed Properties:
        open_ports: Open port numbers, ascending.
        classification: FAILURE if the gateway is unknown or unreachable,
            FULL_SUCCESS if it answers and exposes a service, else PARTIAL.
    """

    gateway: TopologyFact
    reachability: Optional[ProbeResult] = None
    ports: Optional[AggregateOutcome] = None
    web_interface_url: Optional[str] = None
    web_title: Optional[str] = None
    mac_address: Optional[TopologyFact] = None
    vendor: Optional[str] = None
    interfaces: Optional[TopologyFact] = None
    routes: Optional[TopologyFact] = None
    cancelled: bool = False

    @property
    def open_ports(self) -> list[int]:
        if self.ports is None:
            return []
        return sorted(r.payload["port"] for r in self.ports.successes())

    @property
    def classification(self) -> Classification:
        if not self.gateway.is_known or self.reachability is None:
            return Classification.FAILURE
        if not self.reachability.success:
            return Classification.FAILURE
        if self.open_ports:
            return Classification.FULL_SUCCESS
        return Classification.PARTIAL

    def to_json(self) -> dict:
        return {
            "report": "router",
            "classification": self.classification.value,
            "cancelled": self.cancelled,
            "gateway": self.gateway.to_json(),
            "reachability": self.reachability.to_json() if self.reachability else None,
            "ports": self.ports.to_json() if self.ports else None,
            "open_ports": self.open_ports,
            "web_interface_url": self.web_interface_url,
            "web_title": self.web_title,
            "mac_address": self.mac_address.to_json() if self.mac_address else None,
            "vendor": self.vendor,
            "interfaces": self.interfaces.to_json() if self.interfaces else None,
            "routes": self.routes.to_json() if self.routes else None,
        }


@dataclass(frozen=True)
class TopologyReport:
    """Every local topology fact."""

    facts: tuple[TopologyFact, ...]

    @property
    def classification(self) -> Classification:
        known = sum(1 for f in self.facts if f.is_known)
        if not self.facts or known == 0:
            return Classification.FAILURE
        if known == len(self.facts):
            return Classification.FULL_SUCCESS
        return Classification.PARTIAL

    def to_json(self) -> dict:
        return {
            "report": "topology",
            "classification": self.classification.value,
            "facts": [f.to_json() for f in self.facts],
        }
