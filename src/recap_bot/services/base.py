"""Abstract service lifecycle interface."""

from __future__ import annotations

from abc import ABC, abstractmethod


class Service(ABC):
    """Base class for long-lived collaborators that hold external resources."""

    @property
    @abstractmethod
    def service_name(self) -> str:
        ...

    @abstractmethod
    async def start(self) -> None:
        """Acquire connections or clients. Must be called before use."""
        ...

    @abstractmethod
    async def stop(self) -> None:
        """Release everything acquired in start(). Safe to call twice."""
        ...

    @abstractmethod
    async def health_check(self) -> bool:
        ...
