from __future__ import annotations

from typing import Dict, Type

from .base import Transport
from .uart import UARTTransport
from .virtual import VirtualEcuTransport
from .errors import TransportError


class TransportDriverRegistry:
    """
    Maps driver keys -> concrete transport classes (case-insensitive).
    """

    def __init__(self, drivers: Dict[str, Type[Transport]]):
        self._drivers: Dict[str, Type[Transport]] = {k.lower(): v for k, v in drivers.items()}

    @classmethod
    def default(cls) -> "TransportDriverRegistry":
        return cls(
            drivers={
                "uart": UARTTransport,
                "virtual": VirtualEcuTransport,
            }
        )

    def names(self) -> list[str]:
        return sorted(self._drivers.keys())

    def has(self, driver: str) -> bool:
        return driver.lower() in self._drivers

    def get_class(self, driver: str) -> Type[Transport]:
        key = driver.lower()
        if key not in self._drivers:
            raise TransportError(f"Transport driver '{driver}' not registered")
        return self._drivers[key]

    def create(self, driver: str, **params) -> Transport:
        """
        Instantiate a transport by driver key.
        """
        transport_cls = self.get_class(driver)
        return transport_cls(**params)
