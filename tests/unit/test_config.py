"""Unit tests for configuration validation."""

import os

import pytest

from netprobe.config import Config


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    """Drop NETPROBE_* variables and point the config file at nothing."""
    for key in list(os.environ.keys()):
        if key.startswith("NETPROBE_"):
            monkeypatch.delenv(key, raising=False)
    monkeypatch.setenv("NETPROBE_CONFIG_FILE", str(tmp_path / "absent.yaml"))


def write_config(monkeypatch, tmp_path, content):
    path = tmp_path / "config.yaml"
    path.write_text(content)
    monkeypatch.setenv("NETPROBE_CONFIG_FILE", str(path))
    return path


def test_config_defaults():
    """Test defaults when neither file nor environment is set."""
    config = Config.from_env()

    assert config.timeout == 5
    assert config.http_timeout == 10
    assert config.concurrency == 8
    assert config.ping_count == 4
    assert config.dns_servers == ["8.8.8.8", "1.1.1.1", "208.67.222.222"]
    assert config.dns_domains == ["google.com", "github.com", "cloudflare.com"]
    assert len(config.http_endpoints) == 5
    assert config.http_min_success == 2  # Half of the endpoints
    assert config.router_ports == [22, 23, 53, 80, 443, 8080, 8443]
    assert config.verbose is False
    assert config.config_file is None


def test_config_from_env(monkeypatch):
    """Test loading configuration from environment variables."""
    env_vars = {
        "NETPROBE_TIMEOUT": "3",
        "NETPROBE_CONCURRENCY": "4",
        "NETPROBE_DNS_SERVERS": "9.9.9.9, 2620:fe::fe",
        "NETPROBE_PING_HOSTS": "1.1.1.1",
        "NETPROBE_HTTP_ENDPOINTS": "https://a.example,http://b.example",
        "NETPROBE_HTTP_MIN_SUCCESS": "2",
        "NETPROBE_ROUTER_PORTS": "80,443",
        "NETPROBE_VERBOSE": "yes",
    }
    for key, value in env_vars.items():
        monkeypatch.setenv(key, value)

    config = Config.from_env()

    assert config.timeout == 3
    assert config.concurrency == 4
    assert config.dns_servers == ["9.9.9.9", "2620:fe::fe"]
    assert config.ping_hosts == ["1.1.1.1"]
    assert config.http_endpoints == ["https://a.example", "http://b.example"]
    assert config.http_min_success == 2
    assert config.router_ports == [80, 443]
    assert config.verbose is True


def test_config_file_overrides_defaults(monkeypatch, tmp_path):
    """Test YAML file values, including YAML lists."""
    path = write_config(
        monkeypatch,
        tmp_path,
        "timeout: 7\n"
        "dns_servers:\n  - 192.168.1.1\n  - 1.1.1.1\n"
        "router_ports: [80, 8080]\n",
    )

    config = Config.from_env()

    assert config.timeout == 7
    assert config.dns_servers == ["192.168.1.1", "1.1.1.1"]
    assert config.router_ports == [80, 8080]
    assert config.config_file == str(path)


def test_env_overrides_config_file(monkeypatch, tmp_path):
    write_config(monkeypatch, tmp_path, "timeout: 7\nping_count: 2\n")
    monkeypatch.setenv("NETPROBE_TIMEOUT", "9")

    config = Config.from_env()

    assert config.timeout == 9
    assert config.ping_count == 2


def test_config_file_keys_are_case_insensitive(monkeypatch, tmp_path):
    write_config(monkeypatch, tmp_path, "TIMEOUT: 11\n")

    assert Config.from_env().timeout == 11


def test_config_invalid_yaml(monkeypatch, tmp_path):
    write_config(monkeypatch, tmp_path, "timeout: [unclosed\n")

    with pytest.raises(ValueError, match="Invalid YAML"):
        Config.from_env()


def test_config_file_must_be_mapping(monkeypatch, tmp_path):
    write_config(monkeypatch, tmp_path, "- just\n- a list\n")

    with pytest.raises(ValueError, match="must contain a mapping"):
        Config.from_env()


def test_config_invalid_integer(monkeypatch):
    monkeypatch.setenv("NETPROBE_TIMEOUT", "soon")

    with pytest.raises(ValueError, match="NETPROBE_TIMEOUT must be an integer"):
        Config.from_env()


def test_config_timeout_range(monkeypatch):
    monkeypatch.setenv("NETPROBE_TIMEOUT", "0")

    with pytest.raises(ValueError, match="NETPROBE_TIMEOUT must be between 1 and 60"):
        Config.from_env()


def test_config_invalid_dns_server(monkeypatch):
    monkeypatch.setenv("NETPROBE_DNS_SERVERS", "8.8.8.8,dns.google")

    with pytest.raises(ValueError, match="invalid IP: dns.google"):
        Config.from_env()


def test_config_http_min_success_bounded_by_endpoints(monkeypatch):
    """Test that the threshold cannot exceed the number of endpoints."""
    monkeypatch.setenv("NETPROBE_HTTP_ENDPOINTS", "https://a.example,https://b.example")
    monkeypatch.setenv("NETPROBE_HTTP_MIN_SUCCESS", "3")

    with pytest.raises(ValueError, match="NETPROBE_HTTP_MIN_SUCCESS must be between 1 and 2"):
        Config.from_env()


def test_config_rejects_non_http_urls(monkeypatch):
    monkeypatch.setenv("NETPROBE_PUBLIC_IP_SERVICES", "ftp://example.com/ip")

    with pytest.raises(ValueError, match="HTTP\\(S\\) URLs"):
        Config.from_env()


def test_config_router_port_range(monkeypatch):
    monkeypatch.setenv("NETPROBE_ROUTER_PORTS", "80,70000")

    with pytest.raises(ValueError, match="NETPROBE_ROUTER_PORTS"):
        Config.from_env()
