"""Unit tests for the netprobe command line."""

import json
import threading
from unittest.mock import patch

import pytest
from click.testing import CliRunner

from netprobe import main as main_module
from netprobe.main import cli, exit_code_for, run_cancellable
from netprobe.models.probe import ErrorKind, ProbeKind, ProbeResult, ProbeSpec
from netprobe.services.diagnostics import NetworkDiagnostics
from tests.fakes import FakeCapability, failure, success


def answer(spec, context):
    if "192.0.2.1" in spec.target or "bad.example" in spec.target:
        return failure(reason="unreachable")
    if spec.kind == ProbeKind.PORT_OPEN:
        return success(port=spec.param("port"), open=True)
    return success(records=["93.184.216.34"], status_code=200)


@pytest.fixture
def fake_net():
    kinds = [
        ProbeKind.REACHABILITY,
        ProbeKind.NAME_RESOLUTION,
        ProbeKind.PORT_OPEN,
        ProbeKind.HTTP_FETCH,
    ]
    return FakeCapability("fake-net", kinds, answer)


@pytest.fixture
def invoke(config, make_registry, fake_net):
    """Invoke the CLI with a fixed config and scripted backends."""
    registry = make_registry(fake_net)

    def run(*args):
        with patch.object(main_module.Config, "from_env", return_value=config), patch(
            "netprobe.main.setup_logging"
        ), patch(
            "netprobe.main.NetworkDiagnostics",
            side_effect=lambda cfg: NetworkDiagnostics(cfg, registry=registry),
        ):
            return CliRunner().invoke(cli, list(args))

    return run


def test_dns_with_servers_json(invoke, fake_net):
    result = invoke("--format", "json", "dns", "example.com", "-s", "9.9.9.9", "-s", "1.1.1.1")

    assert result.exit_code == 0
    data = json.loads(result.output)
    assert data["classification"] == "FULL_SUCCESS"
    assert [r["spec"]["parameters"]["server"] for r in data["results"]] == [
        "9.9.9.9",
        "1.1.1.1",
    ]


def test_ping_failure_exit_code(invoke):
    result = invoke("ping", "192.0.2.1", "--count", "2")

    assert result.exit_code == 1
    assert "✗ reachability 192.0.2.1" in result.output


def test_internet_quick_text(invoke):
    result = invoke("internet", "--quick")

    assert result.exit_code == 0
    assert result.output.startswith("Internet connectivity: FULL_SUCCESS")
    assert "latency" not in result.output


def test_check_partial_exit_code(invoke):
    result = invoke("check", "reachability", "8.8.8.8", "192.0.2.1")

    assert result.exit_code == 2
    assert "check:reachability: PARTIAL (1/2, ALL)" in result.output


def test_check_at_least(invoke):
    result = invoke(
        "--format", "yaml", "check", "http", "https://a.example", "https://bad.example",
        "--policy", "at-least", "--k", "1",
    )

    assert result.exit_code == 0
    assert "AT_LEAST_K" in result.output


def test_check_port_requires_port(invoke):
    result = invoke("check", "port", "192.168.1.1")

    assert result.exit_code == 2
    assert "port checks require --port" in result.output


def test_check_at_least_requires_k(invoke):
    result = invoke("check", "dns", "example.com", "--policy", "at-least")

    assert result.exit_code == 2
    assert "--policy at-least requires --k" in result.output


def test_check_k_only_with_at_least(invoke):
    result = invoke("check", "dns", "example.com", "--k", "2")

    assert result.exit_code == 2


def test_router_invalid_gateway(invoke):
    result = invoke("router", "router.lan")

    assert result.exit_code == 1
    assert "Invalid gateway address" in result.output


def test_configuration_error():
    with patch.object(
        main_module.Config, "from_env", side_effect=ValueError("NETPROBE_TIMEOUT must be an integer")
    ), patch("netprobe.main.setup_logging"):
        result = CliRunner().invoke(cli, ["ping"])

    assert result.exit_code == 1
    assert "Configuration error: NETPROBE_TIMEOUT" in result.output


def test_backends_json(config):
    with patch.object(main_module.Config, "from_env", return_value=config), patch(
        "netprobe.main.setup_logging"
    ):
        result = CliRunner().invoke(cli, ["--format", "json", "backends"])

    assert result.exit_code == 0
    described = json.loads(result.output)
    assert "socket-connect" in described
    assert described["socket-connect"]["available"] is True


def test_exit_code_for_probe_result():
    spec = ProbeSpec(kind=ProbeKind.REACHABILITY, target="8.8.8.8")

    assert exit_code_for(ProbeResult(spec=spec, success=True)) == 0
    assert exit_code_for(
        ProbeResult(spec=spec, success=False, error_kind=ErrorKind.NO_BACKEND_AVAILABLE)
    ) == 1


def test_run_cancellable_returns_workflow_result():
    event = threading.Event()

    assert run_cancellable(lambda e: ("done", e is event), event) == ("done", True)


def test_main_returns_usage_error_code(monkeypatch, config):
    monkeypatch.setattr("sys.argv", ["netprobe", "check", "port", "192.168.1.1"])
    with patch.object(main_module.Config, "from_env", return_value=config), patch(
        "netprobe.main.setup_logging"
    ):
        assert main_module.main() == 2
