"""Network diagnostics workflows: DNS, ping, internet and router checks.

Each workflow builds probe specs from the configuration, runs them through
the aggregator or topology resolver and returns outcome or report models.
"""

import logging
import threading
from typing import Optional, Sequence

from netprobe.backends.defaults import build_default_registry
from netprobe.config import Config
from netprobe.models.outcome import AggregateOutcome, AggregationPolicy
from netprobe.models.probe import ProbeKind, ProbeResult, ProbeSpec
from netprobe.models.report import DnsReport, InternetReport, RouterReport, TopologyReport
from netprobe.models.topology import TopologyCandidate, TopologyFact, first_non_empty
from netprobe.services.aggregator import Aggregator
from netprobe.services.logger import log_topology_fact
from netprobe.services.registry import BackendRegistry
from netprobe.services.runner import ProbeRunner
from netprobe.services.topology import TopologyResolver
from netprobe.utils.ip_utils import first_ipv4, is_valid_ip
from netprobe.utils.oui import lookup_vendor


logger = logging.getLogger(__name__)

# Well-known router services, by port
ROUTER_SERVICES = {
    22: "SSH",
    23: "Telnet",
    53: "DNS",
    80: "HTTP",
    443: "HTTPS",
    8080: "HTTP-Alt",
    8443: "HTTPS-Alt",
}

# Web ports and their scheme, in order of preference for the admin URL
WEB_PORTS = {80: "http", 443: "https", 8080: "http", 8443: "https"}

DNS_REPORT_RECORD_TYPES = ("AAAA", "MX", "NS")

# Pings used by the latency section
LATENCY_PING_COUNT = 3


class NetworkDiagnostics:
    """High-level network checks for home and IoT troubleshooting."""

    def __init__(self, config: Config, registry: Optional[BackendRegistry] = None):
        """Initialize diagnostics.

        Args:
            config: Validated configuration.
            registry: Frozen backend registry; built for this host if omitted.
        """
        self.config = config
        self.registry = registry or build_default_registry()
        self.runner = ProbeRunner(self.registry)
        self.aggregator = Aggregator(self.runner, max_in_flight=config.concurrency)
        self.topology = TopologyResolver(self.runner, self.registry, timeout=config.timeout)

    # -- DNS ------------------------------------------------------------

    def check_dns(
        self,
        domain: str,
        servers: Optional[Sequence[str]] = None,
        record_type: str = "A",
        cancel_event: Optional[threading.Event] = None,
    ) -> AggregateOutcome:
        """Resolve a domain through each DNS server; every server must answer.

        Args:
            domain: Domain to resolve.
            servers: DNS servers to query; configured public servers if omitted.
            record_type: DNS record type.
            cancel_event: Optional cancellation signal.

        Returns:
            AggregateOutcome: One result per server, policy ALL.
        """
        specs = [
            ProbeSpec(
                kind=ProbeKind.NAME_RESOLUTION,
                target=domain,
                parameters={"server": server, "record_type": record_type},
                timeout=self.config.timeout,
            )
            for server in (servers or self.config.dns_servers)
        ]
        return self.aggregator.aggregate(
            specs, AggregationPolicy.all(), cancel_event, label=f"dns:{domain}"
        )

    def dns_report(
        self, domain: str, cancel_event: Optional[threading.Event] = None
    ) -> DnsReport:
        """DNS health for a domain: current servers, public servers, extra records."""
        dns_servers = self.topology.resolve_dns_servers(cancel_event)
        current = None
        if dns_servers.is_known:
            current = self.check_dns(domain, dns_servers.value, cancel_event=cancel_event)
        public = self.check_dns(domain, self.config.dns_servers, cancel_event=cancel_event)

        records: dict[str, ProbeResult] = {}
        for record_type in DNS_REPORT_RECORD_TYPES:
            if cancel_event is not None and cancel_event.is_set():
                break
            spec = ProbeSpec(
                kind=ProbeKind.NAME_RESOLUTION,
                target=domain,
                parameters={"record_type": record_type},
                timeout=self.config.timeout,
            )
            records[record_type] = self.runner.run(spec, cancel_event)

        return DnsReport(
            domain=domain,
            dns_servers=dns_servers,
            current_servers=current,
            public_servers=public,
            records=records,
            cancelled=_is_set(cancel_event),
        )

    # -- Reachability ---------------------------------------------------

    def ping_spec(self, host: str, count: Optional[int] = None) -> ProbeSpec:
        """Reachability spec whose deadline leaves room for every echo request."""
        count = count or self.config.ping_count
        return ProbeSpec(
            kind=ProbeKind.REACHABILITY,
            target=host,
            parameters={"count": count},
            timeout=self.config.timeout + count,
        )

    def ping(
        self,
        host: str,
        count: Optional[int] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> ProbeResult:
        return self.runner.run(self.ping_spec(host, count), cancel_event)

    def basic_connectivity(
        self, cancel_event: Optional[threading.Event] = None
    ) -> AggregateOutcome:
        specs = [self.ping_spec(host, 1) for host in self.config.ping_hosts]
        return self.aggregator.aggregate(
            specs, AggregationPolicy.all(), cancel_event, label="basic"
        )

    def dns_resolution(
        self, cancel_event: Optional[threading.Event] = None
    ) -> AggregateOutcome:
        specs = [
            ProbeSpec(
                kind=ProbeKind.NAME_RESOLUTION,
                target=domain,
                parameters={"record_type": "A"},
                timeout=self.config.timeout,
            )
            for domain in self.config.dns_domains
        ]
        return self.aggregator.aggregate(
            specs, AggregationPolicy.all(), cancel_event, label="dns"
        )

    def http_connectivity(
        self, cancel_event: Optional[threading.Event] = None
    ) -> AggregateOutcome:
        """Fetch the configured endpoints; at least http_min_success must answer."""
        specs = [self._http_spec(url) for url in self.config.http_endpoints]
        return self.aggregator.aggregate(
            specs,
            AggregationPolicy.at_least(self.config.http_min_success),
            cancel_event,
            label="http",
        )

    def latency(self, cancel_event: Optional[threading.Event] = None) -> AggregateOutcome:
        """Ping the DNS servers; the outcome's average latency is the headline."""
        specs = [
            self.ping_spec(server, LATENCY_PING_COUNT) for server in self.config.dns_servers
        ]
        return self.aggregator.aggregate(
            specs, AggregationPolicy.any(), cancel_event, label="latency"
        )

    def public_address(
        self, cancel_event: Optional[threading.Event] = None
    ) -> TopologyFact:
        """Public IPv4 address as reported by external services.

        Every service is asked; the first one (in configured order) whose
        response body holds a valid IPv4 address wins.

        Returns:
            TopologyFact: Address with the service URL as source, or "unknown".
        """
        specs = [self._http_spec(url) for url in self.config.public_ip_services]
        outcome = self.aggregator.aggregate(
            specs, AggregationPolicy.any(), cancel_event, label="public_address"
        )
        candidates = [
            TopologyCandidate(
                result.spec.target,
                first_ipv4(result.payload.get("body_excerpt", "")) if result.success else "",
            )
            for result in outcome.results
        ]
        fact = first_non_empty("public_address", candidates)
        log_topology_fact(fact)
        return fact

    def internet_report(
        self, quick: bool = False, cancel_event: Optional[threading.Event] = None
    ) -> InternetReport:
        """Full internet connectivity check.

        Args:
            quick: Skip the latency section.
            cancel_event: Optional cancellation signal; sections not yet
                started are skipped.

        Returns:
            InternetReport: Sections in run order plus public address.
        """
        steps = [
            ("basic", self.basic_connectivity),
            ("dns", self.dns_resolution),
            ("http", self.http_connectivity),
        ]
        if not quick:
            steps.append(("latency", self.latency))

        sections: dict[str, AggregateOutcome] = {}
        for name, step in steps:
            if _is_set(cancel_event):
                break
            sections[name] = step(cancel_event)

        public = None if _is_set(cancel_event) else self.public_address(cancel_event)
        return InternetReport(
            sections=sections, public_address=public, cancelled=_is_set(cancel_event)
        )

    # -- Router and topology ----------------------------------------------

    def router_report(
        self,
        gateway: Optional[str] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> RouterReport:
        """Reachability, open services and identity of the router.

        The interfaces and routing table of this host are listed first, so
        they are reported even when no gateway can be found.

        Args:
            gateway: Router address; discovered from the topology if omitted.
            cancel_event: Optional cancellation signal.

        Returns:
            RouterReport: FAILURE classification when the gateway is unknown.

        Raises:
            ValueError: If an explicit gateway is not an IP address.
        """
        if gateway is not None and not is_valid_ip(gateway):
            raise ValueError(f"Invalid gateway address: {gateway}")

        interfaces = self.topology.resolve_interfaces(cancel_event)
        routes = self.topology.resolve_routes(cancel_event)

        if gateway is not None:
            gateway_fact = TopologyFact(
                name="gateway",
                value=gateway,
                source_capability="argument",
                candidates=(TopologyCandidate("argument", gateway),),
            )
        else:
            gateway_fact = self.topology.resolve_gateway(cancel_event)

        if not gateway_fact.is_known:
            logger.warning("Could not determine default gateway")
            return RouterReport(
                gateway=gateway_fact,
                interfaces=interfaces,
                routes=routes,
                cancelled=_is_set(cancel_event),
            )

        address = gateway_fact.value
        reachability = self.ping(address, cancel_event=cancel_event)

        port_specs = [
            ProbeSpec(
                kind=ProbeKind.PORT_OPEN,
                target=address,
                parameters={"port": port, "service": ROUTER_SERVICES.get(port)},
                timeout=self.config.timeout,
            )
            for port in self.config.router_ports
        ]
        ports = self.aggregator.aggregate(
            port_specs, AggregationPolicy.any(), cancel_event, label="router_ports"
        )

        open_ports = {r.payload["port"] for r in ports.successes()}
        web_url = suggest_web_interface(address, open_ports)
        web_title = None
        if web_url and not _is_set(cancel_event):
            page = self.runner.run(self._http_spec(web_url), cancel_event)
            web_title = page.payload.get("title")

        mac_address = self.topology.resolve_mac_address(address, cancel_event)
        vendor = lookup_vendor(mac_address.value) if mac_address.is_known else None

        return RouterReport(
            gateway=gateway_fact,
            reachability=reachability,
            ports=ports,
            web_interface_url=web_url,
            web_title=web_title,
            mac_address=mac_address,
            vendor=vendor,
            interfaces=interfaces,
            routes=routes,
            cancelled=_is_set(cancel_event),
        )

    def topology_report(
        self, cancel_event: Optional[threading.Event] = None
    ) -> TopologyReport:
        return TopologyReport(facts=tuple(self.topology.resolve_all(cancel_event)))

    def _http_spec(self, url: str) -> ProbeSpec:
        return ProbeSpec(
            kind=ProbeKind.HTTP_FETCH,
            target=url,
            parameters={"user_agent": self.config.user_agent},
            timeout=self.config.http_timeout,
        )


def suggest_web_interface(address: str, open_ports: set[int]) -> Optional[str]:
    """Admin URL for the first open web port, default ports left implicit.

    Examples:
        >>> suggest_web_interface("192.168.1.1", {22, 443})
        'https://192.168.1.1'
        >>> suggest_web_interface("192.168.1.1", {8080})
        'http://192.168.1.1:8080'
        >>> suggest_web_interface("fe80::1", {80})
        'http://[fe80::1]'
    """
    host = f"[{address}]" if ":" in address else address
    for port, scheme in WEB_PORTS.items():
        if port in open_ports:
            if port in (80, 443):
                return f"{scheme}://{host}"
            return f"{scheme}://{host}:{port}"
    return None


def _is_set(cancel_event: Optional[threading.Event]) -> bool:
    return cancel_event is not None and cancel_event.is_set()
