"""Topology resolver: reconciles local network facts across every available source."""

import logging
import threading
from typing import Callable, Optional, Sequence

from netprobe.models.probe import LOCAL_TARGET, ProbeKind, ProbeSpec
from netprobe.models.topology import (
    TopologyCandidate,
    TopologyFact,
    first_non_empty,
    union_in_order,
)
from netprobe.services.logger import log_topology_fact
from netprobe.services.registry import BackendRegistry
from netprobe.services.runner import ProbeRunner


logger = logging.getLogger(__name__)

Reducer = Callable[[str, Sequence[TopologyCandidate]], TopologyFact]

# Kinds whose value is a list of strings
LIST_KINDS = frozenset({ProbeKind.DNS_SERVERS, ProbeKind.INTERFACES, ProbeKind.ROUTES})


class TopologyResolver:
    """Asks every available capability for a fact and reduces the answers.

    Unlike ProbeRunner.run(), resolution does not stop at the first
    answer: different OS subsystems have different blind spots, so each
    one is consulted and the candidates are kept for diagnostics. A fact
    nobody can answer comes back as "unknown" rather than raising.
    """

    def __init__(
        self, runner: ProbeRunner, registry: BackendRegistry, timeout: float = 5.0
    ):
        self.runner = runner
        self.registry = registry
        self.timeout = timeout

    def resolve_gateway(self, cancel_event: Optional[threading.Event] = None) -> TopologyFact:
        return self._resolve(
            "gateway", ProbeKind.GATEWAY, LOCAL_TARGET, first_non_empty, cancel_event
        )

    def resolve_local_network(
        self, cancel_event: Optional[threading.Event] = None
    ) -> TopologyFact:
        return self._resolve(
            "local_network", ProbeKind.LOCAL_NETWORK, LOCAL_TARGET, first_non_empty, cancel_event
        )

    def resolve_local_address(
        self, cancel_event: Optional[threading.Event] = None
    ) -> TopologyFact:
        return self._resolve(
            "local_address", ProbeKind.LOCAL_ADDRESS, LOCAL_TARGET, first_non_empty, cancel_event
        )

    def resolve_dns_servers(
        self, cancel_event: Optional[threading.Event] = None
    ) -> TopologyFact:
        """Union of the DNS servers every source reports, first-seen order."""
        return self._resolve(
            "dns_servers", ProbeKind.DNS_SERVERS, LOCAL_TARGET, union_in_order, cancel_event
        )

    def resolve_mac_address(
        self, ip: str, cancel_event: Optional[threading.Event] = None
    ) -> TopologyFact:
        """MAC address of a host on the local link, from the neighbor caches.

        Args:
            ip: Neighbor IP address (usually the gateway).
            cancel_event: Optional cancellation signal.

        Returns:
            TopologyFact: Normalized MAC address or "unknown".
        """
        return self._resolve("mac_address", ProbeKind.NEIGHBOR, ip, first_non_empty, cancel_event)

    def resolve_interfaces(
        self, cancel_event: Optional[threading.Event] = None
    ) -> TopologyFact:
        """Active interfaces as "NAME ADDRESS/PREFIX", from the first source that lists any."""
        return self._resolve(
            "interfaces", ProbeKind.INTERFACES, LOCAL_TARGET, first_non_empty, cancel_event
        )

    def resolve_routes(self, cancel_event: Optional[threading.Event] = None) -> TopologyFact:
        """Routing table rows, from the first source that lists any.

        Row formats differ between ip, route and netstat, so tables are
        never merged.
        """
        return self._resolve(
            "routes", ProbeKind.ROUTES, LOCAL_TARGET, first_non_empty, cancel_event
        )

    def resolve_all(self, cancel_event: Optional[threading.Event] = None) -> list[TopologyFact]:
        """Addressing facts of this host, in a fixed order."""
        return [
            self.resolve_gateway(cancel_event),
            self.resolve_local_network(cancel_event),
            self.resolve_local_address(cancel_event),
            self.resolve_dns_servers(cancel_event),
        ]

    def _resolve(
        self,
        name: str,
        kind: ProbeKind,
        target: str,
        reducer: Reducer,
        cancel_event: Optional[threading.Event],
    ) -> TopologyFact:
        spec = ProbeSpec(kind=kind, target=target, timeout=self.timeout)
        candidates = []

        for capability in self.registry.capabilities_for(kind):
            if cancel_event is not None and cancel_event.is_set():
                break
            record, observation = self.runner.attempt(spec, capability, cancel_event)
            if observation is None:
                logger.debug(
                    "No %s candidate from %s (%s)", name, capability.name, record.status
                )
                value = [] if kind in LIST_KINDS else ""
            else:
                value = observation.payload.get("value")
            candidates.append(TopologyCandidate(capability.name, value))

        fact = reducer(name, candidates)
        log_topology_fact(fact)
        return fact
