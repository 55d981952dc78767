"""Unit tests for local topology introspection backends."""

from unittest.mock import patch

import dns.resolver
import pytest

from netprobe.backends.base import AttemptContext
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
)
from netprobe.exceptions import BackendProcessError, ParseError
from netprobe.models.probe import LOCAL_TARGET, ProbeKind, ProbeSpec


def local(kind):
    return ProbeSpec(kind=kind, target=LOCAL_TARGET, timeout=2)


IP_ROUTE_SHOW = """default via 192.168.1.1 dev wlan0 proto dhcp metric 600
172.17.0.0/16 dev docker0 proto kernel scope link src 172.17.0.1 linkdown
192.168.1.0/24 dev wlan0 proto kernel scope link src 192.168.1.23 metric 600
"""


class TestIpRoute:
    def test_gateway(self, command_output):
        output = "default via 192.168.1.1 dev wlan0 proto dhcp metric 600\n"
        obs = IpRouteCapability().parse(local(ProbeKind.GATEWAY), command_output(output))

        assert obs.success is True
        assert obs.payload == {"value": "192.168.1.1"}

    def test_no_default_route_is_empty(self, command_output):
        obs = IpRouteCapability().parse(local(ProbeKind.GATEWAY), command_output(""))

        assert obs.success is False
        assert obs.payload == {"value": ""}

    def test_local_network_prefers_default_interface(self, command_output):
        obs = IpRouteCapability().parse(
            local(ProbeKind.LOCAL_NETWORK), command_output(IP_ROUTE_SHOW)
        )

        assert obs.payload["value"] == "192.168.1.0/24"

    def test_local_network_skips_link_local_route(self, command_output):
        output = (
            "default via 192.168.1.1 dev wlan0 proto dhcp metric 600\n"
            "169.254.0.0/16 dev wlan0 scope link metric 1000\n"
            "192.168.1.0/24 dev wlan0 proto kernel scope link src 192.168.1.23\n"
        )
        obs = IpRouteCapability().parse(local(ProbeKind.LOCAL_NETWORK), command_output(output))

        assert obs.payload["value"] == "192.168.1.0/24"

    def test_local_address(self, command_output):
        output = "1.1.1.1 via 192.168.1.1 dev wlan0 src 192.168.1.23 uid 1000\n    cache\n"
        obs = IpRouteCapability().parse(
            local(ProbeKind.LOCAL_ADDRESS), command_output(output)
        )

        assert obs.payload["value"] == "192.168.1.23"

    def test_unreachable_network_is_empty(self, command_output):
        obs = IpRouteCapability().parse(
            local(ProbeKind.LOCAL_ADDRESS),
            command_output(stderr="RTNETLINK answers: Network is unreachable", returncode=2),
        )

        assert obs.payload == {"value": ""}

    def test_other_failure_is_inconclusive(self, command_output):
        with pytest.raises(BackendProcessError):
            IpRouteCapability().parse(
                local(ProbeKind.GATEWAY), command_output(stderr="Object unknown", returncode=255)
            )

    def test_build_command_per_kind(self):
        capability = IpRouteCapability()
        assert capability.build_command(local(ProbeKind.GATEWAY)) == [
            "ip", "route", "show", "default"
        ]
        assert capability.build_command(local(ProbeKind.LOCAL_ADDRESS))[:3] == [
            "ip", "route", "get"
        ]


class TestRoute:
    def test_linux_routing_table(self, command_output):
        output = (
            "Kernel IP routing table\n"
            "Destination     Gateway         Genmask         Flags Metric Ref    Use Iface\n"
            "0.0.0.0         10.0.0.1        0.0.0.0         UG    100    0        0 eth0\n"
            "10.0.0.0        0.0.0.0         255.255.255.0   U     100    0        0 eth0\n"
        )
        obs = RouteCapability("linux").parse(local(ProbeKind.GATEWAY), command_output(output))

        assert obs.payload["value"] == "10.0.0.1"

    def test_linux_unexpected_output(self, command_output):
        with pytest.raises(ParseError):
            RouteCapability("linux").parse(local(ProbeKind.GATEWAY), command_output("???"))

    def test_darwin(self, command_output):
        output = (
            "   route to: default\n"
            "destination: default\n"
            "       mask: default\n"
            "    gateway: 192.168.0.1\n"
            "  interface: en0\n"
        )
        capability = RouteCapability("darwin")

        assert capability.build_command(local(ProbeKind.GATEWAY)) == [
            "route", "-n", "get", "default"
        ]
        obs = capability.parse(local(ProbeKind.GATEWAY), command_output(output))
        assert obs.payload["value"] == "192.168.0.1"


def test_netstat_gateway(command_output):
    output = (
        "Routing tables\n\nInternet:\n"
        "Destination        Gateway            Flags        Netif Expire\n"
        "default            192.168.0.1        UGScg          en0\n"
    )
    obs = NetstatCapability().parse(local(ProbeKind.GATEWAY), command_output(output))

    assert obs.payload["value"] == "192.168.0.1"


class TestIfconfig:
    def test_net_tools_format(self, command_output):
        output = (
            "lo: flags=73<UP,LOOPBACK,RUNNING>  mtu 65536\n"
            "        inet 127.0.0.1  netmask 255.0.0.0\n"
            "eth0: flags=4163<UP,BROADCAST,RUNNING,MULTICAST>  mtu 1500\n"
            "        inet 192.168.1.23  netmask 255.255.255.0  broadcast 192.168.1.255\n"
        )
        obs = IfconfigCapability().parse(
            local(ProbeKind.LOCAL_NETWORK), command_output(output)
        )

        assert obs.payload["value"] == "192.168.1.0/24"

    def test_bsd_hex_netmask(self, command_output):
        output = (
            "en0: flags=8863<UP,BROADCAST,SMART,RUNNING> mtu 1500\n"
            "\tinet 10.0.5.7 netmask 0xffff0000 broadcast 10.0.255.255\n"
        )
        obs = IfconfigCapability("darwin").parse(
            local(ProbeKind.LOCAL_NETWORK), command_output(output)
        )

        assert obs.payload["value"] == "10.0.0.0/16"


class TestDnsServers:
    def test_resolv_conf(self, tmp_path):
        path = tmp_path / "resolv.conf"
        path.write_text(
            "# generated\nnameserver 192.168.1.1\nnameserver 1.1.1.1\n"
            "nameserver bogus\nsearch lan\n"
        )
        capability = ResolvConfCapability(path=path)
        probe = local(ProbeKind.DNS_SERVERS)

        assert capability.is_present()
        obs = capability.parse(probe, capability.execute(probe, AttemptContext(1)))
        assert obs.payload["value"] == ["192.168.1.1", "1.1.1.1"]

    def test_missing_resolv_conf_is_not_present(self, tmp_path):
        assert not ResolvConfCapability(path=tmp_path / "absent").is_present()

    def test_scutil_dedupes(self, command_output):
        output = (
            "resolver #1\n  nameserver[0] : 192.168.1.1\n  nameserver[1] : 8.8.8.8\n"
            "resolver #2\n  nameserver[0] : 192.168.1.1\n"
        )
        obs = ScutilCapability("darwin").parse(
            local(ProbeKind.DNS_SERVERS), command_output(output)
        )

        assert obs.payload["value"] == ["192.168.1.1", "8.8.8.8"]

    @patch("netprobe.backends.introspection.dns.resolver.Resolver")
    def test_dnspython_system(self, mock_resolver_class):
        mock_resolver_class.return_value.nameservers = ["127.0.0.53"]
        capability = DnspythonSystemCapability()
        probe = local(ProbeKind.DNS_SERVERS)

        obs = capability.parse(probe, capability.execute(probe, AttemptContext(1)))

        assert obs.payload["value"] == ["127.0.0.53"]

    @patch("netprobe.backends.introspection.dns.resolver.Resolver")
    def test_dnspython_without_configuration(self, mock_resolver_class):
        mock_resolver_class.side_effect = dns.resolver.NoResolverConfiguration()
        capability = DnspythonSystemCapability()
        probe = local(ProbeKind.DNS_SERVERS)

        obs = capability.parse(probe, capability.execute(probe, AttemptContext(1)))

        assert obs.success is False
        assert obs.payload["value"] == []


class TestNeighbors:
    def neighbor(self):
        return ProbeSpec(kind=ProbeKind.NEIGHBOR, target="192.168.1.1", timeout=2)

    def test_arp(self, command_output):
        output = (
            "Address                  HWtype  HWaddress           Flags Mask  Iface\n"
            "192.168.1.1              ether   c0:4a:0:1b:2f:9e    C           wlan0\n"
        )
        obs = ArpCapability().parse(self.neighbor(), command_output(output))

        assert obs.payload["value"] == "C0:4A:00:1B:2F:9E"

    def test_arp_no_entry(self, command_output):
        output = "192.168.1.1 (192.168.1.1) -- no entry\n"
        obs = ArpCapability().parse(self.neighbor(), command_output(output, returncode=1))

        assert obs.success is False

    def test_ip_neighbor(self, command_output):
        output = "192.168.1.1 dev wlan0 lladdr 00:1b:2f:aa:bb:cc REACHABLE\n"
        obs = IpNeighborCapability().parse(self.neighbor(), command_output(output))

        assert obs.payload["value"] == "00:1B:2F:AA:BB:CC"


IP_ADDR_SHOW = (
    "1: lo    inet 127.0.0.1/8 scope host lo\\       valid_lft forever preferred_lft forever\n"
    "3: wlan0    inet 192.168.1.23/24 brd 192.168.1.255 scope global dynamic wlan0\\"
    "       valid_lft 85914sec preferred_lft 85914sec\n"
    "7: veth1@if6    inet 172.18.0.1/16 brd 172.18.255.255 scope global veth1\\"
    "       valid_lft forever preferred_lft forever\n"
)


class TestInterfaces:
    def test_ip_addr(self, command_output):
        capability = IpAddrCapability()

        obs = capability.parse(local(ProbeKind.INTERFACES), command_output(IP_ADDR_SHOW))

        assert capability.build_command(local(ProbeKind.INTERFACES)) == [
            "ip", "-o", "-4", "addr", "show", "up"
        ]
        assert obs.payload["value"] == ["wlan0 192.168.1.23/24", "veth1 172.18.0.1/16"]

    def test_ip_addr_without_addresses_is_empty(self, command_output):
        obs = IpAddrCapability().parse(local(ProbeKind.INTERFACES), command_output(""))

        assert obs.success is False
        assert obs.payload == {"value": []}

    def test_ip_addr_failure_is_inconclusive(self, command_output):
        with pytest.raises(BackendProcessError):
            IpAddrCapability().parse(
                local(ProbeKind.INTERFACES),
                command_output(stderr="Cannot open netlink socket", returncode=1),
            )

    def test_ifconfig_skips_loopback_and_down_interfaces(self, command_output):
        output = (
            "lo: flags=73<UP,LOOPBACK,RUNNING>  mtu 65536\n"
            "        inet 127.0.0.1  netmask 255.0.0.0\n"
            "eth0: flags=4099<BROADCAST,MULTICAST>  mtu 1500\n"
            "        inet 10.9.9.9  netmask 255.0.0.0\n"
            "wlan0: flags=4163<UP,BROADCAST,RUNNING,MULTICAST>  mtu 1500\n"
            "        inet 192.168.1.23  netmask 255.255.255.0  broadcast 192.168.1.255\n"
        )

        obs = IfconfigCapability().parse(local(ProbeKind.INTERFACES), command_output(output))

        assert obs.payload["value"] == ["wlan0 192.168.1.23/24"]

    def test_ifconfig_old_net_tools_format(self, command_output):
        output = (
            "eth0      Link encap:Ethernet  HWaddr 00:1c:10:aa:bb:cc\n"
            "          inet addr:10.0.0.5  Bcast:10.0.0.255  Mask:255.255.255.0\n"
            "          UP BROADCAST RUNNING MULTICAST  MTU:1500  Metric:1\n"
            "\n"
            "lo        Link encap:Local Loopback\n"
            "          inet addr:127.0.0.1  Mask:255.0.0.0\n"
            "          UP LOOPBACK RUNNING  MTU:65536  Metric:1\n"
        )

        obs = IfconfigCapability().parse(local(ProbeKind.INTERFACES), command_output(output))

        assert obs.payload["value"] == ["eth0 10.0.0.5/24"]

    def test_ifconfig_bsd_format(self, command_output):
        output = (
            "lo0: flags=8049<UP,LOOPBACK,RUNNING,MULTICAST> mtu 16384\n"
            "\tinet 127.0.0.1 netmask 0xff000000\n"
            "en0: flags=8863<UP,BROADCAST,SMART,RUNNING,SIMPLEX,MULTICAST> mtu 1500\n"
            "\tether 3c:22:fb:00:11:22\n"
            "\tinet 192.168.0.12 netmask 0xffffff00 broadcast 192.168.0.255\n"
        )

        obs = IfconfigCapability("darwin").parse(
            local(ProbeKind.INTERFACES), command_output(output)
        )

        assert obs.payload["value"] == ["en0 192.168.0.12/24"]


class TestRoutes:
    def test_ip_route(self, command_output):
        capability = IpRouteCapability()

        obs = capability.parse(local(ProbeKind.ROUTES), command_output(IP_ROUTE_SHOW))

        assert capability.build_command(local(ProbeKind.ROUTES)) == ["ip", "route", "show"]
        assert obs.payload["value"] == IP_ROUTE_SHOW.splitlines()

    def test_route_table(self, command_output):
        output = (
            "Kernel IP routing table\n"
            "Destination     Gateway         Genmask         Flags Metric Ref    Use Iface\n"
            "0.0.0.0         10.0.0.1        0.0.0.0         UG    100    0        0 eth0\n"
            "10.0.0.0        0.0.0.0         255.255.255.0   U     100    0        0 eth0\n"
        )

        obs = RouteCapability("linux").parse(local(ProbeKind.ROUTES), command_output(output))

        assert obs.payload["value"] == [
            "0.0.0.0 10.0.0.1 0.0.0.0 UG 100 0 0 eth0",
            "10.0.0.0 0.0.0.0 255.255.255.0 U 100 0 0 eth0",
        ]

    def test_route_unexpected_output(self, command_output):
        with pytest.raises(ParseError):
            RouteCapability("linux").parse(local(ProbeKind.ROUTES), command_output("usage: route"))

    def test_route_on_darwin_does_not_list_routes(self):
        assert RouteCapability("darwin").supports(ProbeKind.ROUTES) is False
        assert RouteCapability("darwin").supports(ProbeKind.GATEWAY) is True
        assert RouteCapability("linux").supports(ProbeKind.ROUTES) is True

    def test_netstat_keeps_ipv4_table(self, command_output):
        output = (
            "Routing tables\n\nInternet:\n"
            "Destination        Gateway            Flags        Netif Expire\n"
            "default            192.168.0.1        UGScg          en0\n"
            "192.168.0/24       link#4             UCS            en0      !\n"
            "\nInternet6:\n"
            "Destination        Gateway            Flags        Netif Expire\n"
            "default            fe80::1%en0        UGcg           en0\n"
        )

        obs = NetstatCapability().parse(local(ProbeKind.ROUTES), command_output(output))

        assert obs.payload["value"] == [
            "default 192.168.0.1 UGScg en0",
            "192.168.0/24 link#4 UCS en0 !",
        ]
