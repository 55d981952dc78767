"""Configuration module for netprobe.

Built-in defaults, overridden by an optional YAML file, overridden by
NETPROBE_* environment variables.
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, List, Mapping, Optional

import yaml

from netprobe.utils.ip_utils import is_valid_ip


DEFAULT_CONFIG_FILE = "~/.iot-network-tools/config.yaml"

DEFAULT_DNS_SERVERS = "8.8.8.8,1.1.1.1,208.67.222.222"
DEFAULT_DNS_DOMAINS = "google.com,github.com,cloudflare.com"
DEFAULT_PING_HOSTS = "8.8.8.8,1.1.1.1,208.67.222.222"
DEFAULT_HTTP_ENDPOINTS = (
    "https://www.google.com,https://www.cloudflare.com,https://api.github.com,"
    "https://aws.amazon.com,https://www.microsoft.com"
)
DEFAULT_PUBLIC_IP_SERVICES = "https://ipinfo.io/ip,https://icanhazip.com,https://api.ipify.org"
DEFAULT_ROUTER_PORTS = "22,23,53,80,443,8080,8443"
DEFAULT_USER_AGENT = "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36"


@dataclass
class Config:
    """Application configuration."""

    # Timeouts and concurrency
    timeout: int
    http_timeout: int
    concurrency: int
    ping_count: int

    # Probe targets
    dns_servers: List[str]
    dns_domains: List[str]
    ping_hosts: List[str]
    http_endpoints: List[str]
    http_min_success: int
    public_ip_services: List[str]
    router_ports: List[int]

    # Operational Configuration
    user_agent: str
    verbose: bool
    config_file: Optional[str] = None

    @classmethod
    def from_env(cls) -> "Config":
        """Load configuration from the YAML file and environment variables.

        Keys in the YAML file are the variable names without the NETPROBE_
        prefix, in lower case (``timeout``, ``dns_servers``...). Lists may be
        YAML sequences or comma-separated strings.

        Raises:
            ValueError: If a variable is invalid or the YAML file is malformed.

        Returns:
            Config: Validated configuration instance.
        """
        config_file = os.path.expanduser(
            os.getenv("NETPROBE_CONFIG_FILE", DEFAULT_CONFIG_FILE)
        )
        file_values = cls._load_file(config_file)

        def get(key: str, default: str) -> str:
            env_value = os.getenv(f"NETPROBE_{key.upper()}")
            if env_value is not None and env_value.strip():
                return env_value
            if key in file_values and file_values[key] is not None:
                value = file_values[key]
                if isinstance(value, (list, tuple)):
                    return ",".join(str(item) for item in value)
                return str(value)
            return default

        timeout = cls._get_int(get("timeout", "5"), "NETPROBE_TIMEOUT", 1, 60)
        http_timeout = cls._get_int(
            get("http_timeout", "10"), "NETPROBE_HTTP_TIMEOUT", 1, 120
        )
        concurrency = cls._get_int(
            get("concurrency", "8"), "NETPROBE_CONCURRENCY", 1, 64
        )
        ping_count = cls._get_int(get("ping_count", "4"), "NETPROBE_PING_COUNT", 1, 100)

        dns_servers = cls._split(get("dns_servers", DEFAULT_DNS_SERVERS))
        if not dns_servers:
            raise ValueError("NETPROBE_DNS_SERVERS must contain at least one server")
        for server in dns_servers:
            if not is_valid_ip(server):
                raise ValueError(f"NETPROBE_DNS_SERVERS contains invalid IP: {server}")

        dns_domains = cls._split(get("dns_domains", DEFAULT_DNS_DOMAINS))
        if not dns_domains:
            raise ValueError("NETPROBE_DNS_DOMAINS must contain at least one domain")

        ping_hosts = cls._split(get("ping_hosts", DEFAULT_PING_HOSTS))
        if not ping_hosts:
            raise ValueError("NETPROBE_PING_HOSTS must contain at least one host")

        http_endpoints = cls._get_urls(
            get("http_endpoints", DEFAULT_HTTP_ENDPOINTS), "NETPROBE_HTTP_ENDPOINTS"
        )
        http_min_success = cls._get_int(
            get("http_min_success", str(max(1, len(http_endpoints) // 2))),
            "NETPROBE_HTTP_MIN_SUCCESS",
            1,
            len(http_endpoints),
        )

        public_ip_services = cls._get_urls(
            get("public_ip_services", DEFAULT_PUBLIC_IP_SERVICES),
            "NETPROBE_PUBLIC_IP_SERVICES",
        )

        router_ports = [
            cls._get_int(port, "NETPROBE_ROUTER_PORTS", 1, 65535)
            for port in cls._split(get("router_ports", DEFAULT_ROUTER_PORTS))
        ]

        user_agent = get("user_agent", DEFAULT_USER_AGENT).strip()

        verbose_str = get("verbose", "false").lower()
        verbose = verbose_str in ("true", "1", "yes")

        return cls(
            timeout=timeout,
            http_timeout=http_timeout,
            concurrency=concurrency,
            ping_count=ping_count,
            dns_servers=dns_servers,
            dns_domains=dns_domains,
            ping_hosts=ping_hosts,
            http_endpoints=http_endpoints,
            http_min_success=http_min_success,
            public_ip_services=public_ip_services,
            router_ports=router_ports,
            user_agent=user_agent,
            verbose=verbose,
            config_file=config_file if file_values else None,
        )

    @staticmethod
    def _load_file(path: str) -> Mapping[str, Any]:
        """Read the optional YAML override file.

        Args:
            path: Expanded file path.

        Returns:
            Mapping[str, Any]: Lower-cased keys; empty if the file is absent.

        Raises:
            ValueError: If the file is not valid YAML or not a mapping.
        """
        file_path = Path(path)
        if not file_path.is_file():
            return {}
        try:
            data = yaml.safe_load(file_path.read_text(encoding="utf-8"))
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid YAML in config file {path}: {e}") from e
        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ValueError(f"Config file {path} must contain a mapping")
        return {str(key).lower(): value for key, value in data.items()}

    @staticmethod
    def _split(value: str) -> List[str]:
        return [item.strip() for item in value.split(",") if item.strip()]

    @staticmethod
    def _get_int(value: str, name: str, minimum: int, maximum: int) -> int:
        """Parse an integer setting and check its range.

        Raises:
            ValueError: If the value is not an integer or out of range.
        """
        try:
            number = int(str(value).strip())
        except ValueError:
            raise ValueError(f"{name} must be an integer, got {value!r}")
        if not minimum <= number <= maximum:
            raise ValueError(f"{name} must be between {minimum} and {maximum}")
        return number

    @classmethod
    def _get_urls(cls, value: str, name: str) -> List[str]:
        urls = cls._split(value)
        if not urls:
            raise ValueError(f"{name} must contain at least one URL")
        for url in urls:
            if not url.startswith(("http://", "https://")):
                raise ValueError(f"{name} must contain HTTP(S) URLs, got {url}")
        return urls
