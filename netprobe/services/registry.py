"""Backend registry: priority-ordered capabilities per probe kind."""

import logging
from typing import Callable, Iterable, Optional

from netprobe.backends.base import Capability
from netprobe.models.probe import ProbeKind


logger = logging.getLogger(__name__)

PresenceCheck = Callable[[Capability], bool]


def default_presence_check(capability: Capability) -> bool:
    return capability.is_present()


class BackendRegistry:
    """Ordered, availability-filtered capabilities for each probe kind.

    Registration order is priority order (first registered, first tried).
    Each capability's availability is checked once, when it is registered,
    and cached for the lifetime of the registry. After freeze() the
    registry is read-only and safe to share between probe threads.

    Example:
        >>> registry = BackendRegistry.build([PingCapability(), SocketConnectCapability()])
        >>> [c.name for c in registry.capabilities_for(ProbeKind.REACHABILITY)]
        ['ping', 'socket-connect']
    """

    def __init__(self, presence_check: Optional[PresenceCheck] = None):
        """Initialize an empty registry.

        Args:
            presence_check: Callable deciding whether a capability's backing
                tool exists. Defaults to capability.is_present().
        """
        self._presence_check = presence_check or default_presence_check
        self._by_kind: dict[ProbeKind, list[Capability]] = {}
        self._availability: dict[str, bool] = {}
        self._frozen = False

    @classmethod
    def build(
        cls,
        capabilities: Iterable[Capability],
        presence_check: Optional[PresenceCheck] = None,
    ) -> "BackendRegistry":
        """Register capabilities in priority order and freeze the registry."""
        registry = cls(presence_check)
        for capability in capabilities:
            registry.register(capability)
        registry.freeze()
        return registry

    def register(self, capability: Capability) -> None:
        """Add a capability for every kind it supports.

        Args:
            capability: Capability to add; its availability is cached now.

        Raises:
            RuntimeError: If the registry is frozen.
            ValueError: If a capability with the same name is registered.
        """
        if self._frozen:
            raise RuntimeError("Cannot register capabilities after freeze()")
        if capability.name in self._availability:
            raise ValueError(f"Capability already registered: {capability.name}")

        self._availability[capability.name] = self._check_presence(capability)
        for kind in ProbeKind:
            if capability.supports(kind):
                self._by_kind.setdefault(kind, []).append(capability)

    def freeze(self) -> None:
        self._frozen = True
        logger.info(
            "Backend registry ready",
            extra={
                "available": sorted(n for n, ok in self._availability.items() if ok),
                "unavailable": sorted(n for n, ok in self._availability.items() if not ok),
            },
        )

    @property
    def frozen(self) -> bool:
        return self._frozen

    def capabilities_for(self, kind: ProbeKind) -> list[Capability]:
        """Available capabilities for a kind, in priority order.

        Returns:
            list[Capability]: Possibly empty; empty means the kind cannot be
                probed on this host.
        """
        return [
            c for c in self._by_kind.get(kind, []) if self._availability.get(c.name)
        ]

    def is_available(self, name: str) -> bool:
        return self._availability.get(name, False)

    def describe(self) -> dict[str, dict]:
        """Every registered capability with its availability and kinds."""
        described: dict[str, dict] = {}
        for kind, capabilities in self._by_kind.items():
            for capability in capabilities:
                entry = described.setdefault(
                    capability.name,
                    {"available": self._availability[capability.name], "kinds": []},
                )
                entry["kinds"].append(kind.value)
        return described

    def _check_presence(self, capability: Capability) -> bool:
        try:
            return bool(self._presence_check(capability))
        except Exception as e:
            logger.debug(
                "Presence check failed for %s, marking unavailable: %s",
                capability.name,
                e,
            )
            return False
