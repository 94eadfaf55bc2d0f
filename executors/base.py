"""
Abstract Base Class for Command Executors.

An executor is the destination side of replication: it takes a command
name plus its byte-string arguments and runs them on the destination
store. The pipeline treats every call as opaque, so tests can swap in
any implementation of this interface.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Optional, Sequence


@dataclass
class ExecutionResult:
    """Outcome of one executor call."""
    success: bool
    reply: Any = None
    error: Optional[Exception] = None

    @classmethod
    def ok(cls, reply: Any = None) -> 'ExecutionResult':
        return cls(success=True, reply=reply)

    @classmethod
    def failed(cls, error: Exception) -> 'ExecutionResult':
        return cls(success=False, error=error)


class CommandExecutor(ABC):
    """
    Abstract base class for all command executors.

    Executors must be usable from a single consumer thread; the
    replication sink never issues concurrent calls.
    """

    @abstractmethod
    def ping(self) -> None:
        """
        Check that the destination backend is reachable.

        Raises:
            replication.exceptions.ConnectionError: If it is not
        """
        pass

    @abstractmethod
    def execute(self, name: str, args: Sequence[bytes]) -> ExecutionResult:
        """
        Run one command on the destination.

        Args:
            name: Command name, e.g. "HSET"
            args: Command arguments in source order

        Returns:
            ExecutionResult; failures are reported here, not raised
        """
        pass

    def close(self) -> None:
        """
        Release any open connections.
        Override in subclasses that need connection management.
        """
        pass
