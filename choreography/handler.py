"""The effect handler interface, its errors, and a handler that does nothing."""

from __future__ import annotations

import abc
from dataclasses import dataclass
from typing import Any, Awaitable, Hashable, Iterable, Tuple, TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class Label:
    """Names a branch of an internal or external choice."""

    name: str = ""

    def __str__(self) -> str:
        return self.name


class ChoreographyError(Exception):
    """Base class of errors raised while running a choreography."""


class _DescribedError(ChoreographyError):
    """An error whose text is a fixed prefix followed by a message."""

    prefix = "Error"

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(f"{self.prefix}: {message}")


class TransportError(_DescribedError):
    """The transport failed to carry a message or a label."""

    prefix = "Transport error"


class SerializationError(_DescribedError):
    """A message could not be encoded or decoded."""

    prefix = "Serialization error"


class ProtocolViolation(_DescribedError):
    """The protocol was not followed at run time."""

    prefix = "Protocol violation"


class TimeoutExpired(ChoreographyError):
    """An operation took longer than its allowed duration."""

    def __init__(self, duration: float) -> None:
        self.duration = duration
        super().__init__(f"Timeout after {duration}s")


class UnknownRole(ChoreographyError):
    """A role that the choreography does not declare was referenced."""

    def __init__(self, role: str) -> None:
        self.role = role
        super().__init__(f"Role {role!r} not found in this choreography")


class ChoreoHandler(abc.ABC):
    """The communication effects a choreography performs, backed by a transport."""

    @abc.abstractmethod
    async def send(self, endpoint: Any, to: Hashable, msg: Any) -> None:
        """Send ``msg`` to role ``to``."""

    @abc.abstractmethod
    async def recv(self, endpoint: Any, from_role: Hashable) -> Any:
        """Receive the next message from ``from_role``."""

    @abc.abstractmethod
    async def choose(self, endpoint: Any, who: Hashable, label: Label) -> None:
        """Announce the branch ``label`` chosen by ``who``."""

    @abc.abstractmethod
    async def offer(self, endpoint: Any, from_role: Hashable) -> Label:
        """Wait for the branch chosen by ``from_role``."""

    @abc.abstractmethod
    async def with_timeout(
        self, endpoint: Any, at: Hashable, duration: float, body: Awaitable[T]
    ) -> T:
        """Await ``body``, enforcing ``duration`` seconds at role ``at``."""

    async def broadcast(self, endpoint: Any, recipients: Iterable[Hashable], msg: Any) -> None:
        """Send the same message to each recipient in turn."""
        for recipient in recipients:
            await self.send(endpoint, recipient, msg)

    async def parallel_send(
        self, endpoint: Any, sends: Iterable[Tuple[Hashable, Any]]
    ) -> None:
        """Send each ``(role, message)`` pair in turn."""
        for recipient, msg in sends:
            await self.send(endpoint, recipient, msg)


class HandlerLifecycle(abc.ABC):
    """Setup and teardown around a protocol run."""

    @abc.abstractmethod
    async def setup(self, role: Hashable) -> Any:
        """Establish connections for ``role`` and return its endpoint."""

    @abc.abstractmethod
    async def teardown(self, endpoint: Any) -> None:
        """Close the connections held by ``endpoint``."""


class NoOpHandler(ChoreoHandler):
    """Performs no communication: sends and choices are dropped, receives fail.

    ``dropped`` counts the sends and choices discarded, ``refused`` the
    receives and offers that could not be served.
    """

    def __init__(self) -> None:
        self.dropped = 0
        self.refused = 0

    async def send(self, endpoint, to, msg):
        self.dropped += 1

    async def recv(self, endpoint, from_role):
        self.refused += 1
        raise TransportError("NoOpHandler cannot receive")

    async def choose(self, endpoint, who, label):
        self.dropped += 1

    async def offer(self, endpoint, from_role):
        self.refused += 1
        raise TransportError("NoOpHandler cannot offer")

    async def with_timeout(self, endpoint, at, duration, body):
        return await body