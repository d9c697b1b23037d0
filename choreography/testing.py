"""A scripted handler that records every operation, for testing protocols."""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass
from typing import Any, Awaitable, Deque, Hashable, List, Optional, Tuple, TypeVar

from .codec import decode
from .handler import Label, TransportError
from .interpreter import ChoreoHandlerExt

T = TypeVar("T")

_OPERATION_KINDS = frozenset({"send", "recv", "choose", "offer"})
_RESPONSE_KINDS = frozenset({"message", "label", "error"})


@dataclass(frozen=True)
class MockOperation:
    """One recorded operation.

    ``kind`` is ``send``, ``recv``, ``choose`` or ``offer``; ``detail`` holds the
    message type name for sends and the label name for choices.
    """

    kind: str
    role: Hashable
    detail: Optional[str] = None

    def __post_init__(self) -> None:
        if self.kind not in _OPERATION_KINDS:
            raise ValueError(f"unknown operation kind {self.kind!r}")


@dataclass(frozen=True)
class MockResponse:
    """A scripted reply: ``message`` (encoded bytes), ``label`` or ``error`` text."""

    kind: str
    value: Any

    def __post_init__(self) -> None:
        if self.kind not in _RESPONSE_KINDS:
            raise ValueError(f"unknown response kind {self.kind!r}")


class MockHandler(ChoreoHandlerExt):
    """Records operations and answers receives and offers from a script."""

    def __init__(self, role: Hashable) -> None:
        self.role = role
        self._operations: List[MockOperation] = []
        self._responses: Deque[MockResponse] = deque()

    def add_response(self, response: MockResponse) -> None:
        self._responses.append(response)

    def operations(self) -> Tuple[MockOperation, ...]:
        return tuple(self._operations)

    def clear_operations(self) -> None:
        self._operations.clear()

    def _next_response(self) -> Optional[MockResponse]:
        return self._responses.popleft() if self._responses else None

    async def send(self, endpoint: Any, to: Hashable, msg: Any) -> None:
        self._operations.append(MockOperation("send", to, type(msg).__qualname__))

    async def recv(self, endpoint: Any, from_role: Hashable) -> Any:
        self._operations.append(MockOperation("recv", from_role))
        response = self._next_response()
        if response is None or response.kind != "message":
            raise TransportError("No scripted response available")
        return decode(response.value)

    async def choose(self, endpoint: Any, who: Hashable, label: Label) -> None:
        self._operations.append(MockOperation("choose", who, label.name))

    async def offer(self, endpoint: Any, from_role: Hashable) -> Label:
        self._operations.append(MockOperation("offer", from_role))
        response = self._next_response()
        if response is None or response.kind != "label":
            raise TransportError("No scripted label available")
        return Label(response.value)

    async def with_timeout(
        self, endpoint: Any, at: Hashable, duration: float, body: Awaitable[T]
    ) -> T:
        return await body


__all__ = ("MockOperation", "MockResponse", "MockHandler")