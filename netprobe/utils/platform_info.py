"""Platform detection for command-line backends."""

import sys


LINUX = "linux"
DARWIN = "darwin"
WINDOWS = "windows"


def detect_platform(platform: str | None = None) -> str:
    """Map sys.platform onto the platform names backends understand.

    Args:
        platform: Override for sys.platform (tests).

    Returns:
        str: "linux", "darwin" or "windows". Other Unixes report "linux"
            since their tools accept the Linux flag set.

    Examples:
        >>> detect_platform("darwin")
        'darwin'
        >>> detect_platform("linux2")
        'linux'
    """
    value = (platform or sys.platform).lower()
    if value.startswith("darwin"):
        return DARWIN
    if value.startswith(("win32", "cygwin")):
        return WINDOWS
    return LINUX
