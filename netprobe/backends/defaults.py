"""Default capability set, in priority order."""

from typing import Optional

from netprobe.backends.base import Capability
from netprobe.backends.dns import (
    DigCapability,
    DnspythonCapability,
    HostCapability,
    NslookupCapability,
)
from netprobe.backends.http import CurlCapability, RequestsCapability, WgetCapability
from netprobe.backends.introspection import (
    ArpCapability,
    DnspythonSystemCapability,
    IfconfigCapability,
    IpAddrCapability,
    IpNeighborCapability,
    IpRouteCapability,
    NetstatCapability,
    ResolvConfCapability,
    RouteCapability,
    ScutilCapability,
    UdpSocketCapability,
)
from netprobe.backends.ping import PingCapability
from netprobe.backends.ports import NetcatCapability, SocketConnectCapability
from netprobe.services.registry import BackendRegistry, PresenceCheck
from netprobe.utils.platform_info import detect_platform


def default_capabilities(platform: str) -> list[Capability]:
    """Every shipped capability, parameterized for the platform.

    Order within a kind is the fallback order: ping before a TCP connect,
    the dnspython library before dig, nslookup and host, requests before
    curl and wget.
    """
    return [
        PingCapability(platform),
        SocketConnectCapability(platform),
        DnspythonCapability(platform),
        DigCapability(platform),
        NslookupCapability(platform),
        HostCapability(platform),
        NetcatCapability(platform),
        RequestsCapability(platform),
        CurlCapability(platform),
        WgetCapability(platform),
        IpRouteCapability(platform),
        IpAddrCapability(platform),
        RouteCapability(platform),
        NetstatCapability(platform),
        IfconfigCapability(platform),
        UdpSocketCapability(platform),
        ResolvConfCapability(platform),
        ScutilCapability(platform),
        DnspythonSystemCapability(platform),
        ArpCapability(platform),
        IpNeighborCapability(platform),
    ]


def build_default_registry(
    platform: Optional[str] = None,
    presence_check: Optional[PresenceCheck] = None,
) -> BackendRegistry:
    """Build and freeze the registry for this host.

    Args:
        platform: Platform name; detected from sys.platform when omitted.
        presence_check: Optional override of each capability's is_present().

    Returns:
        BackendRegistry: Frozen registry.
    """
    return BackendRegistry.build(
        default_capabilities(platform or detect_platform()), presence_check
    )
