"""A handler that records every effect it is asked to perform."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Hashable, List, Union

from ..handler import Label, TransportError
from ..interpreter import ChoreoHandlerExt


@dataclass(frozen=True)
class RecordedSend:
    from_role: Hashable
    to: Hashable
    msg_type: str


@dataclass(frozen=True)
class RecordedRecv:
    from_role: Hashable
    to: Hashable


@dataclass(frozen=True)
class RecordedChoose:
    at: Hashable
    label: Label


@dataclass(frozen=True)
class RecordedOffer:
    from_role: Hashable
    to: Hashable


RecordedEvent = Union[RecordedSend, RecordedRecv, RecordedChoose, RecordedOffer]


class RecordingHandler(ChoreoHandlerExt):
    """Records effects for checking protocol structure; never produces values."""

    def __init__(self, role: Hashable) -> None:
        self.role = role
        self._events: List[RecordedEvent] = []

    def events(self) -> List[RecordedEvent]:
        """A copy of the events recorded so far, oldest first."""
        return list(self._events)

    def clear(self) -> None:
        self._events.clear()

    def _record(self, event: RecordedEvent) -> None:
        self._events.append(event)

    async def send(self, endpoint, to, msg):
        self._record(RecordedSend(self.role, to, type(msg).__qualname__))

    async def recv(self, endpoint, from_role):
        self._record(RecordedRecv(from_role, self.role))
        raise TransportError("RecordingHandler cannot produce values")

    async def choose(self, endpoint, who, label):
        self._record(RecordedChoose(who, label))

    async def offer(self, endpoint, from_role):
        self._record(RecordedOffer(from_role, self.role))
        raise TransportError("RecordingHandler cannot produce labels")

    async def with_timeout(self, endpoint, at, duration, body):
        return await body


__all__ = (
    "RecordedSend",
    "RecordedRecv",
    "RecordedChoose",
    "RecordedOffer",
    "RecordedEvent",
    "RecordingHandler",
)