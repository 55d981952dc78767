"""IP address utilities for probe targets and backend output."""

import ipaddress
import re


IPV4_PATTERN = re.compile(r"\b(?:\d{1,3}\.){3}\d{1,3}\b")
MAC_PATTERN = re.compile(r"\b(?:[0-9a-fA-F]{1,2}[:-]){5}[0-9a-fA-F]{1,2}\b")

# RFC 1918 private ranges
PRIVATE_NETWORKS = tuple(
    ipaddress.IPv4Network(n) for n in ("10.0.0.0/8", "172.16.0.0/12", "192.168.0.0/16")
)


def is_valid_ipv4(ip: str) -> bool:
    """Validate if string is a valid IPv4 address.

    Args:
        ip: IP address string to validate.

    Returns:
        bool: True if valid IPv4, False otherwise.

    Examples:
        >>> is_valid_ipv4("192.168.1.1")
        True
        >>> is_valid_ipv4("256.0.0.1")
        False
        >>> is_valid_ipv4("::1")
        False
    """
    try:
        addr = ipaddress.ip_address(ip)
        return isinstance(addr, ipaddress.IPv4Address)
    except ValueError:
        return False


def is_valid_ip(ip: str) -> bool:
    """Validate if string is a valid IPv4 or IPv6 address."""
    try:
        ipaddress.ip_address(ip)
        return True
    except ValueError:
        return False


def is_valid_cidr(cidr: str) -> bool:
    """Validate an IPv4 network in CIDR notation.

    Args:
        cidr: Network string such as "192.168.1.0/24".

    Returns:
        bool: True if the string has an explicit prefix and is a valid
            IPv4 network (host bits may be set).

    Examples:
        >>> is_valid_cidr("192.168.1.0/24")
        True
        >>> is_valid_cidr("192.168.1.0/33")
        False
        >>> is_valid_cidr("192.168.1.0")
        False
    """
    if "/" not in cidr:
        return False
    try:
        network = ipaddress.ip_network(cidr, strict=False)
        return isinstance(network, ipaddress.IPv4Network)
    except ValueError:
        return False


def is_private_ipv4(ip: str) -> bool:
    """Check if address is in 10/8, 172.16/12 or 192.168/16."""
    if not is_valid_ipv4(ip):
        return False
    address = ipaddress.IPv4Address(ip)
    return any(address in network for network in PRIVATE_NETWORKS)


def network_for_interface(address: str, netmask: str) -> str:
    """Compute the network CIDR for an interface address.

    Args:
        address: Interface IPv4 address.
        netmask: Dotted netmask ("255.255.255.0"), hex netmask as printed
            by BSD ifconfig ("0xffffff00") or a prefix length ("24").

    Returns:
        str: Network in CIDR notation, e.g. "192.168.1.0/24".

    Raises:
        ValueError: If address or netmask is malformed.

    Examples:
        >>> network_for_interface("192.168.1.23", "0xffffff00")
        '192.168.1.0/24'
        >>> network_for_interface("10.1.2.3", "255.255.0.0")
        '10.1.0.0/16'
    """
    return str(_ipv4_interface(address, netmask).network)


def interface_address(address: str, netmask: str) -> str:
    """Interface address with its prefix length, e.g. "192.168.1.23/24".

    Raises:
        ValueError: If address or netmask is malformed.
    """
    return _ipv4_interface(address, netmask).with_prefixlen


def _ipv4_interface(address: str, netmask: str) -> ipaddress.IPv4Interface:
    if netmask.lower().startswith("0x"):
        netmask = str(ipaddress.IPv4Address(int(netmask, 16)))
    return ipaddress.IPv4Interface(f"{address}/{netmask}")


def first_ipv4(text: str) -> str:
    """Return the first valid IPv4 address found in text, or ""."""
    for match in IPV4_PATTERN.findall(text):
        if is_valid_ipv4(match):
            return match
    return ""


def normalize_mac(mac: str) -> str:
    """Normalize a MAC address to upper-case, colon separated, zero padded.

    Examples:
        >>> normalize_mac("0:1b:2f:a:bc:de")
        '00:1B:2F:0A:BC:DE'
    """
    parts = re.split(r"[:-]", mac.strip())
    if len(parts) != 6:
        raise ValueError(f"Invalid MAC address: {mac}")
    return ":".join(part.zfill(2).upper() for part in parts)
