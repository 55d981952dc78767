"""Unit tests for BackendRegistry."""

import pytest

from netprobe.backends.defaults import build_default_registry, default_capabilities
from netprobe.models.probe import ProbeKind
from netprobe.services.registry import BackendRegistry
from tests.fakes import FakeCapability


REACH = {ProbeKind.REACHABILITY}


def test_registration_order_is_priority_order():
    registry = BackendRegistry.build(
        [
            FakeCapability("first", REACH),
            FakeCapability("second", REACH | {ProbeKind.PORT_OPEN}),
            FakeCapability("third", REACH),
        ]
    )

    assert [c.name for c in registry.capabilities_for(ProbeKind.REACHABILITY)] == [
        "first",
        "second",
        "third",
    ]
    assert [c.name for c in registry.capabilities_for(ProbeKind.PORT_OPEN)] == ["second"]
    assert registry.capabilities_for(ProbeKind.HTTP_FETCH) == []


def test_unavailable_capabilities_are_filtered():
    registry = BackendRegistry.build(
        [FakeCapability("present", REACH), FakeCapability("absent", REACH, present=False)]
    )

    assert [c.name for c in registry.capabilities_for(ProbeKind.REACHABILITY)] == ["present"]
    assert registry.is_available("present")
    assert not registry.is_available("absent")
    assert not registry.is_available("never-registered")


def test_presence_is_checked_once_at_registration():
    calls = []

    def presence_check(capability):
        calls.append(capability.name)
        return True

    registry = BackendRegistry.build([FakeCapability("a", REACH)], presence_check)
    registry.capabilities_for(ProbeKind.REACHABILITY)
    registry.capabilities_for(ProbeKind.REACHABILITY)

    assert calls == ["a"]


def test_failing_presence_check_marks_unavailable():
    def presence_check(capability):
        raise OSError("permission denied")

    registry = BackendRegistry.build([FakeCapability("a", REACH)], presence_check)

    assert not registry.is_available("a")
    assert registry.capabilities_for(ProbeKind.REACHABILITY) == []


def test_register_after_freeze_raises():
    registry = BackendRegistry.build([])

    assert registry.frozen
    with pytest.raises(RuntimeError):
        registry.register(FakeCapability("late", REACH))


def test_duplicate_name_rejected():
    registry = BackendRegistry()
    registry.register(FakeCapability("a", REACH))

    with pytest.raises(ValueError):
        registry.register(FakeCapability("a", REACH))


def test_describe():
    registry = BackendRegistry.build(
        [FakeCapability("a", REACH | {ProbeKind.PORT_OPEN}, present=False)]
    )

    assert registry.describe() == {
        "a": {"available": False, "kinds": ["reachability", "port_open"]}
    }


class TestDefaultRegistry:
    def test_default_priority_orders(self):
        registry = build_default_registry("linux", presence_check=lambda c: True)

        def names(kind):
            return [c.name for c in registry.capabilities_for(kind)]

        assert names(ProbeKind.REACHABILITY) == ["ping", "socket-connect"]
        assert names(ProbeKind.NAME_RESOLUTION) == ["dnspython", "dig", "nslookup", "host"]
        assert names(ProbeKind.PORT_OPEN) == ["socket-connect", "netcat"]
        assert names(ProbeKind.HTTP_FETCH) == ["requests", "curl", "wget"]
        assert names(ProbeKind.GATEWAY) == ["ip-route", "route", "netstat"]
        assert names(ProbeKind.LOCAL_NETWORK) == ["ip-route", "ifconfig"]
        assert names(ProbeKind.LOCAL_ADDRESS) == ["ip-route", "udp-socket"]
        assert names(ProbeKind.DNS_SERVERS) == ["resolv-conf", "scutil", "dnspython-system"]
        assert names(ProbeKind.NEIGHBOR) == ["arp", "ip-neighbor"]
        assert names(ProbeKind.INTERFACES) == ["ip-addr", "ifconfig"]
        assert names(ProbeKind.ROUTES) == ["ip-route", "route", "netstat"]

    def test_darwin_routes_skip_route_command(self):
        registry = build_default_registry("darwin", presence_check=lambda c: True)

        assert [c.name for c in registry.capabilities_for(ProbeKind.ROUTES)] == [
            "ip-route",
            "netstat",
        ]
        assert "route" in [c.name for c in registry.capabilities_for(ProbeKind.GATEWAY)]

    def test_platform_is_passed_to_capabilities(self):
        assert {c.platform for c in default_capabilities("darwin")} == {"darwin"}

    def test_capability_names_are_unique(self):
        names = [c.name for c in default_capabilities("linux")]
        assert len(names) == len(set(names))
