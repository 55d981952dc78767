"""Router manufacturer lookup by MAC address prefix (OUI)."""

from netprobe.utils.ip_utils import normalize_mac


ROUTER_VENDORS: dict[str, str] = {
    "00:1B:2F": "Cisco",
    "00:22:6B": "Cisco",
    "00:24:A5": "Cisco",
    "00:0F:B5": "Netgear",
    "00:15:6D": "Netgear",
    "00:18:4D": "Netgear",
    "00:14:BF": "Linksys",
    "00:21:29": "Linksys",
    "00:26:5A": "Linksys",
    "00:07:7D": "Belkin",
    "00:11:50": "Belkin",
    "00:15:05": "Belkin",
    "00:03:7F": "D-Link",
    "00:0A:F5": "D-Link",
    "00:13:10": "D-Link",
    "00:1D:7E": "Asus",
    "00:23:CD": "Asus",
    "00:26:82": "Asus",
    "00:1C:10": "TP-Link",
    "00:24:01": "TP-Link",
    "00:26:B8": "TP-Link",
}


def oui_prefix(mac: str) -> str:
    """Return the first three octets of a MAC address.

    Examples:
        >>> oui_prefix("00:1c:10:ab:cd:ef")
        '00:1C:10'
    """
    return ":".join(normalize_mac(mac).split(":")[:3])


def lookup_vendor(mac: str) -> str | None:
    """Return the router manufacturer for a MAC address, if known.

    Args:
        mac: MAC address in any common notation.

    Returns:
        str | None: Manufacturer name, None if the prefix is not listed or
            the MAC is malformed.
    """
    try:
        return ROUTER_VENDORS.get(oui_prefix(mac))
    except ValueError:
        return None
