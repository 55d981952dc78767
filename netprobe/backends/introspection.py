"""Local topology introspection: gateway, local network, addresses, DNS servers,
neighbors, interfaces and routes.

Each capability answers with ``payload["value"]``: a string for scalar
facts, a list for DNS servers, interface addresses and routing table rows.
An empty value is a definitive "this source does not know", which the
topology resolver treats as a blind spot.
"""

import logging
import re
import socket
from pathlib import Path
from typing import Any

import dns.resolver

from netprobe.backends.base import AttemptContext, Capability, CommandCapability
from netprobe.exceptions import BackendProcessError, ParseError
from netprobe.models.probe import Observation, ProbeKind, ProbeSpec
from netprobe.utils.ip_utils import (
    MAC_PATTERN,
    interface_address,
    is_private_ipv4,
    is_valid_cidr,
    is_valid_ip,
    is_valid_ipv4,
    network_for_interface,
    normalize_mac,
)
from netprobe.utils.platform_info import DARWIN
from netprobe.utils.process import CommandOutput


logger = logging.getLogger(__name__)

RESOLV_CONF = Path("/etc/resolv.conf")

# Destination used only to select the outbound route; no packet is sent
ROUTE_PROBE_ADDRESS = "1.1.1.1"


def fact_observation(value: Any, source: str) -> Observation:
    """Wrap an introspected value; empty values become definitive misses."""
    if value:
        return Observation(success=True, payload={"value": value}, detail=f"from {source}")
    empty = [] if isinstance(value, list) else ""
    return Observation(success=False, payload={"value": empty}, detail=f"{source} has no answer")


_VIA = re.compile(r"\bvia\s+(?P<gateway>\S+)")
_DEV = re.compile(r"\bdev\s+(?P<dev>\S+)")
_SRC = re.compile(r"\bsrc\s+(?P<src>\S+)")


class IpRouteCapability(CommandCapability):
    """Linux iproute2: `ip route show default`, `ip route show`, `ip route get`."""

    name = "ip-route"
    executable = "ip"
    supported_kinds = frozenset(
        {
            ProbeKind.GATEWAY,
            ProbeKind.LOCAL_NETWORK,
            ProbeKind.LOCAL_ADDRESS,
            ProbeKind.ROUTES,
        }
    )

    def build_command(self, spec: ProbeSpec) -> list[str]:
        if spec.kind == ProbeKind.GATEWAY:
            return [self.executable, "route", "show", "default"]
        if spec.kind == ProbeKind.LOCAL_ADDRESS:
            return [self.executable, "route", "get", ROUTE_PROBE_ADDRESS]
        return [self.executable, "route", "show"]

    def parse(self, spec: ProbeSpec, raw: CommandOutput) -> Observation:
        if raw.returncode != 0:
            if "unreachable" in raw.stderr.lower():
                return fact_observation("", self.name)
            raise BackendProcessError(f"ip route exited {raw.returncode}: {raw.stderr[:200]}")

        lines = [line.strip() for line in raw.stdout.splitlines() if line.strip()]
        if spec.kind == ProbeKind.ROUTES:
            return fact_observation(lines, self.name)
        if spec.kind == ProbeKind.GATEWAY:
            return fact_observation(_first_gateway(lines), self.name)
        if spec.kind == ProbeKind.LOCAL_ADDRESS:
            for line in lines:
                match = _SRC.search(line)
                if match and is_valid_ip(match.group("src")):
                    return fact_observation(match.group("src"), self.name)
            return fact_observation("", self.name)
        return fact_observation(_local_network(lines), self.name)


def _first_gateway(lines: list[str]) -> str:
    for line in lines:
        if not line.startswith("default"):
            continue
        match = _VIA.search(line)
        if match and is_valid_ip(match.group("gateway")):
            return match.group("gateway")
    return ""


def _local_network(lines: list[str]) -> str:
    """Pick the private network route on the default route's interface."""
    default_dev = None
    for line in lines:
        if line.startswith("default"):
            match = _DEV.search(line)
            if match:
                default_dev = match.group("dev")
                break

    fallback = ""
    for line in lines:
        destination = line.split()[0]
        if destination == "default" or not is_valid_cidr(destination):
            continue
        if not is_private_ipv4(destination.split("/")[0]):
            continue
        dev = _DEV.search(line)
        if default_dev and dev and dev.group("dev") == default_dev:
            return destination
        if not fallback:
            fallback = destination
    return fallback


_IP_ADDR = re.compile(
    r"^\d+:\s+(?P<name>[^\s@:]+)\S*\s+inet\s+(?P<address>\d+\.\d+\.\d+\.\d+/\d+)"
)


class IpAddrCapability(CommandCapability):
    """IPv4 addresses of the active interfaces via `ip -o -4 addr show up`.

    Each entry reads "NAME ADDRESS/PREFIX"; loopback is left out.
    """

    name = "ip-addr"
    executable = "ip"
    supported_kinds = frozenset({ProbeKind.INTERFACES})

    def build_command(self, spec: ProbeSpec) -> list[str]:
        return [self.executable, "-o", "-4", "addr", "show", "up"]

    def parse(self, spec: ProbeSpec, raw: CommandOutput) -> Observation:
        if raw.returncode != 0:
            raise BackendProcessError(f"ip addr exited {raw.returncode}: {raw.stderr[:200]}")

        interfaces = []
        for line in raw.stdout.splitlines():
            match = _IP_ADDR.match(line.strip())
            if not match or match.group("address").startswith("127."):
                continue
            interfaces.append(f"{match.group('name')} {match.group('address')}")
        return fact_observation(interfaces, self.name)


def _table_rows(text: str) -> list[str]:
    """IPv4 rows of a `route -n` or `netstat -rn` table, columns single-spaced."""
    rows = []
    in_table = False
    for line in text.splitlines():
        if line.startswith("Internet6"):
            break
        if line.startswith("Destination"):
            in_table = True
            continue
        if in_table and line.strip():
            rows.append(" ".join(line.split()))
    return rows


class RouteCapability(CommandCapability):
    """Default gateway via `route -n` (Linux) or `route -n get default` (macOS).

    On Linux the same table also answers ROUTES.
    """

    name = "route"
    executable = "route"
    supported_kinds = frozenset({ProbeKind.GATEWAY, ProbeKind.ROUTES})

    def supports(self, kind: ProbeKind) -> bool:
        # macOS route only answers single-destination queries
        if kind == ProbeKind.ROUTES and self.platform == DARWIN:
            return False
        return super().supports(kind)

    def build_command(self, spec: ProbeSpec) -> list[str]:
        if self.platform == DARWIN:
            return [self.executable, "-n", "get", "default"]
        return [self.executable, "-n"]

    def parse(self, spec: ProbeSpec, raw: CommandOutput) -> Observation:
        if spec.kind == ProbeKind.ROUTES:
            if "Kernel IP routing table" not in raw.stdout:
                raise ParseError("no routing table header in route output")
            return fact_observation(_table_rows(raw.stdout), self.name)

        if self.platform == DARWIN:
            match = re.search(r"gateway:\s*(?P<gateway>\S+)", raw.stdout)
            if match:
                return fact_observation(match.group("gateway"), self.name)
            if raw.returncode != 0 and "not in table" not in raw.combined:
                raise ParseError(f"route get exited {raw.returncode}")
            return fact_observation("", self.name)

        if "Kernel IP routing table" not in raw.stdout:
            raise ParseError("no routing table header in route output")
        for line in raw.stdout.splitlines():
            fields = line.split()
            if len(fields) >= 2 and fields[0] == "0.0.0.0" and is_valid_ipv4(fields[1]):
                if fields[1] != "0.0.0.0":
                    return fact_observation(fields[1], self.name)
        return fact_observation("", self.name)


class NetstatCapability(CommandCapability):
    """Default gateway and routing table from `netstat -rn`, any platform."""

    name = "netstat"
    executable = "netstat"
    supported_kinds = frozenset({ProbeKind.GATEWAY, ProbeKind.ROUTES})

    def build_command(self, spec: ProbeSpec) -> list[str]:
        return [self.executable, "-rn"]

    def parse(self, spec: ProbeSpec, raw: CommandOutput) -> Observation:
        if raw.returncode != 0:
            raise BackendProcessError(f"netstat exited {raw.returncode}")
        if spec.kind == ProbeKind.ROUTES:
            return fact_observation(_table_rows(raw.stdout), self.name)
        for line in raw.stdout.splitlines():
            fields = line.split()
            if len(fields) >= 2 and fields[0] in ("0.0.0.0", "default"):
                if is_valid_ipv4(fields[1]) and fields[1] != "0.0.0.0":
                    return fact_observation(fields[1], self.name)
        return fact_observation("", self.name)


_IFCONFIG_INET = re.compile(
    r"inet (?:addr:)?(?P<address>\d+\.\d+\.\d+\.\d+)"
    r".*?(?:netmask |Mask:)(?P<netmask>0x[0-9a-fA-F]+|\d+\.\d+\.\d+\.\d+)"
)


class IfconfigCapability(CommandCapability):
    """Local network and active interfaces from `ifconfig` (net-tools and BSD formats)."""

    name = "ifconfig"
    executable = "ifconfig"
    supported_kinds = frozenset({ProbeKind.LOCAL_NETWORK, ProbeKind.INTERFACES})

    def build_command(self, spec: ProbeSpec) -> list[str]:
        return [self.executable]

    def parse(self, spec: ProbeSpec, raw: CommandOutput) -> Observation:
        if raw.returncode != 0:
            raise BackendProcessError(f"ifconfig exited {raw.returncode}")
        if spec.kind == ProbeKind.INTERFACES:
            return fact_observation(_ifconfig_interfaces(raw.stdout), self.name)

        fallback = ""
        for match in _IFCONFIG_INET.finditer(raw.stdout):
            address = match.group("address")
            if address.startswith("127."):
                continue
            try:
                network = network_for_interface(address, match.group("netmask"))
            except ValueError:
                logger.debug("Skipping malformed ifconfig entry %s", match.group(0))
                continue
            if is_private_ipv4(address):
                return fact_observation(network, self.name)
            if not fallback:
                fallback = network
        return fact_observation(fallback, self.name)


def _ifconfig_interfaces(text: str) -> list[str]:
    """Entries "NAME ADDRESS/PREFIX" for IPv4 addresses on up, non-loopback interfaces."""
    blocks: list[str] = []
    for line in text.splitlines():
        if line and not line[0].isspace():
            blocks.append(line)
        elif blocks:
            blocks[-1] += "\n" + line

    interfaces = []
    for block in blocks:
        if not re.search(r"\bUP\b", block) or re.search(r"\bLOOPBACK\b|Loopback", block):
            continue
        name = block.split()[0].rstrip(":")
        for match in _IFCONFIG_INET.finditer(block):
            try:
                address = interface_address(match.group("address"), match.group("netmask"))
            except ValueError:
                logger.debug("Skipping malformed ifconfig entry %s", match.group(0))
                continue
            interfaces.append(f"{name} {address}")
    return interfaces


class UdpSocketCapability(Capability):
    """Local address chosen by the kernel for an outbound UDP socket."""

    name = "udp-socket"
    supported_kinds = frozenset({ProbeKind.LOCAL_ADDRESS})

    def execute(self, spec: ProbeSpec, context: AttemptContext) -> str:
        sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        try:
            sock.settimeout(context.timeout)
            sock.connect((ROUTE_PROBE_ADDRESS, 80))
            return sock.getsockname()[0]
        except OSError as e:
            logger.debug("No outbound route for local address lookup: %s", e)
            return ""
        finally:
            sock.close()

    def parse(self, spec: ProbeSpec, raw: str) -> Observation:
        if raw in ("", "0.0.0.0"):
            return fact_observation("", self.name)
        return fact_observation(raw, self.name)


_NAMESERVER = re.compile(r"^\s*nameserver\s+(?P<server>\S+)", re.MULTILINE)


class ResolvConfCapability(Capability):
    """DNS servers listed in /etc/resolv.conf."""

    name = "resolv-conf"
    supported_kinds = frozenset({ProbeKind.DNS_SERVERS})

    def __init__(self, platform: str = "linux", path: Path = RESOLV_CONF):
        super().__init__(platform)
        self.path = Path(path)

    def is_present(self) -> bool:
        return self.path.is_file()

    def execute(self, spec: ProbeSpec, context: AttemptContext) -> str:
        try:
            return self.path.read_text(encoding="utf-8", errors="replace")
        except OSError as e:
            raise BackendProcessError(f"cannot read {self.path}: {e}") from e

    def parse(self, spec: ProbeSpec, raw: str) -> Observation:
        servers = [
            m.group("server") for m in _NAMESERVER.finditer(raw) if is_valid_ip(m.group("server"))
        ]
        return fact_observation(servers, self.name)


class ScutilCapability(CommandCapability):
    """DNS servers from `scutil --dns` (macOS)."""

    name = "scutil"
    executable = "scutil"
    supported_kinds = frozenset({ProbeKind.DNS_SERVERS})

    def build_command(self, spec: ProbeSpec) -> list[str]:
        return [self.executable, "--dns"]

    def parse(self, spec: ProbeSpec, raw: CommandOutput) -> Observation:
        if raw.returncode != 0:
            raise BackendProcessError(f"scutil exited {raw.returncode}")
        servers = []
        for match in re.finditer(r"nameserver\[\d+\]\s*:\s*(?P<server>\S+)", raw.stdout):
            server = match.group("server")
            if is_valid_ip(server) and server not in servers:
                servers.append(server)
        return fact_observation(servers, self.name)


class DnspythonSystemCapability(Capability):
    """DNS servers as dnspython reads them from the system configuration."""

    name = "dnspython-system"
    supported_kinds = frozenset({ProbeKind.DNS_SERVERS})

    def execute(self, spec: ProbeSpec, context: AttemptContext) -> list[str]:
        try:
            resolver = dns.resolver.Resolver()
        except dns.resolver.NoResolverConfiguration as e:
            logger.debug("dnspython found no resolver configuration: %s", e)
            return []
        return [str(server) for server in resolver.nameservers]

    def parse(self, spec: ProbeSpec, raw: list[str]) -> Observation:
        return fact_observation([s for s in raw if is_valid_ip(s)], self.name)


def _mac_in(text: str) -> str:
    match = MAC_PATTERN.search(text)
    return normalize_mac(match.group(0)) if match else ""


class ArpCapability(CommandCapability):
    """MAC address of a LAN host from the ARP cache (`arp -n IP`)."""

    name = "arp"
    executable = "arp"
    supported_kinds = frozenset({ProbeKind.NEIGHBOR})

    def build_command(self, spec: ProbeSpec) -> list[str]:
        return [self.executable, "-n", spec.target]

    def parse(self, spec: ProbeSpec, raw: CommandOutput) -> Observation:
        return fact_observation(_mac_in(raw.stdout), self.name)


class IpNeighborCapability(CommandCapability):
    """MAC address of a LAN host from `ip neigh show IP`."""

    name = "ip-neighbor"
    executable = "ip"
    supported_kinds = frozenset({ProbeKind.NEIGHBOR})

    def build_command(self, spec: ProbeSpec) -> list[str]:
        return [self.executable, "neigh", "show", spec.target]

    def parse(self, spec: ProbeSpec, raw: CommandOutput) -> Observation:
        if raw.returncode != 0:
            raise BackendProcessError(f"ip neigh exited {raw.returncode}: {raw.stderr[:200]}")
        match = re.search(r"lladdr\s+(?P<mac>\S+)", raw.stdout)
        if match and MAC_PATTERN.fullmatch(match.group("mac")):
            return fact_observation(normalize_mac(match.group("mac")), self.name)
        return fact_observation("", self.name)
