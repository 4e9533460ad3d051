"""Import dispatcher interface."""

from abc import ABC, abstractmethod
from typing import Any, Callable, Dict


class ImportDispatcher(ABC):
    """Abstract interface for running import jobs off the request path."""

    @abstractmethod
    def submit(self, job_id: str, fn: Callable[..., Any], *args: Any) -> bool:
        """Offer a job for execution. Returns False, without blocking, when full."""
        ...

    @abstractmethod
    def cancel(self, job_id: str) -> bool:
        """Withdraw a job that has not started yet. Returns False if it already started."""
        ...

    @abstractmethod
    def has_capacity(self) -> bool:
        """Whether a submit() right now would be accepted."""
        ...

    @abstractmethod
    def stats(self) -> Dict[str, int]:
        ...

    @abstractmethod
    async def start(self) -> None:
        """Start the dispatcher (e.g., create the executor)."""
        ...

    @abstractmethod
    async def stop(self) -> None:
        """Stop accepting work and drain what was already accepted."""
        ...
