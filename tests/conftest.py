"""pytest fixtures for testing."""

import pytest

from netprobe.config import Config
from netprobe.models.probe import ProbeKind, ProbeSpec
from netprobe.services.registry import BackendRegistry
from netprobe.utils.process import CommandOutput


@pytest.fixture
def make_registry():
    """Build a frozen registry from capabilities, in priority order."""

    def build(*capabilities):
        return BackendRegistry.build(capabilities)

    return build


@pytest.fixture
def reachability_spec():
    return ProbeSpec(kind=ProbeKind.REACHABILITY, target="192.0.2.1", timeout=1.0)


@pytest.fixture
def command_output():
    """Factory for CommandOutput values fed to capability parsers."""

    def build(stdout="", stderr="", returncode=0, argv=("tool",)):
        return CommandOutput(
            argv=tuple(argv), returncode=returncode, stdout=stdout, stderr=stderr
        )

    return build


@pytest.fixture
def config():
    """Small configuration for workflow tests."""
    return Config(
        timeout=2,
        http_timeout=2,
        concurrency=4,
        ping_count=2,
        dns_servers=["8.8.8.8", "1.1.1.1"],
        dns_domains=["example.com", "example.org"],
        ping_hosts=["8.8.8.8", "1.1.1.1"],
        http_endpoints=["https://a.example", "https://b.example"],
        http_min_success=1,
        public_ip_services=["https://ip1.example", "https://ip2.example"],
        router_ports=[22, 80, 443],
        user_agent="netprobe-test",
        verbose=False,
    )
