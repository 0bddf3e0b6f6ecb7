
from abc import ABC, abstractmethod


class BaseService(ABC):
    """
    A long-lived part of the registry process (store, HTTP gateway).
    ServiceManager starts them in registration order; a start() that raises
    aborts startup.
    """
    def __init__(self, name: str):
        self._name = name

    @property
    def name(self) -> str:
        return self._name

    @abstractmethod
    async def start(self):
        """Acquire resources; raise if the service cannot run."""

    @abstractmethod
    async def stop(self):
        """Release resources. Only called for services that started."""
