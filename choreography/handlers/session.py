"""A handler that talks over paired in-process channels kept per peer role."""

from __future__ import annotations

import asyncio
import logging
from contextlib import contextmanager
from dataclasses import dataclass
from typing import (
    Any,
    Awaitable,
    Callable,
    Dict,
    Hashable,
    Iterator,
    List,
    Optional,
    Tuple,
    TypeVar,
)

from ..codec import decode, encode
from ..handler import Label, SerializationError, TimeoutExpired, TransportError
from ..interpreter import ChoreoHandlerExt

T = TypeVar("T")

_log = logging.getLogger(__name__)

_CLOSED = object()


class SimpleChannel:
    """One end of a bidirectional, unbounded byte channel.

    Channels are unique per endpoint and are not copied. Closing one end lets
    the other end drain what was already sent, after which its receives fail.
    """

    def __init__(
        self, outgoing: "asyncio.Queue[Any]", incoming: "asyncio.Queue[Any]"
    ) -> None:
        self._outgoing = outgoing
        self._incoming = incoming
        self._closed = False
        self._peer: Optional[SimpleChannel] = None

    @staticmethod
    def pair() -> Tuple["SimpleChannel", "SimpleChannel"]:
        """Create two connected channel ends."""
        first_to_second: "asyncio.Queue[Any]" = asyncio.Queue()
        second_to_first: "asyncio.Queue[Any]" = asyncio.Queue()
        first = SimpleChannel(first_to_second, second_to_first)
        second = SimpleChannel(second_to_first, first_to_second)
        first._peer = second
        second._peer = first
        return first, second

    @property
    def closed(self) -> bool:
        return self._closed

    async def send(self, data: bytes) -> None:
        """Queue ``data`` for the other end; raise ConnectionError if either end is closed."""
        if self._closed:
            raise ConnectionError("channel is closed")
        if self._peer is not None and self._peer._closed:
            raise ConnectionError("receiver is gone")
        self._outgoing.put_nowait(bytes(data))

    async def recv(self) -> bytes:
        """Wait for the next message; raise ConnectionError once the channel is closed."""
        if self._closed:
            raise ConnectionError("Channel closed")
        item = await self._incoming.get()
        if item is _CLOSED:
            # Leave the marker in place so later receives fail too.
            self._incoming.put_nowait(_CLOSED)
            raise ConnectionError("Channel closed")
        return item

    def close(self) -> None:
        """Close this end; the other end sees the close after draining its messages."""
        if not self._closed:
            self._closed = True
            self._outgoing.put_nowait(_CLOSED)


@dataclass
class SessionMetadata:
    """What is known about the progress of one session."""

    state_description: str = "Initial"
    is_complete: bool = False
    operation_count: int = 0


class SessionState:
    """A channel together with its kind and the progress made on it."""

    def __init__(
        self, channel: Any, metadata: Optional[SessionMetadata] = None
    ) -> None:
        self.channel = channel
        self.kind: type = type(channel)
        self.metadata = SessionMetadata() if metadata is None else metadata

    def is_type(self, kind: type) -> bool:
        return self.kind is kind

    def downcast(self, kind: type) -> Any:
        """Return the channel if it is exactly of ``kind``; raise TypeError otherwise."""
        if self.kind is not kind:
            raise TypeError(
                f"session holds {self.kind.__qualname__}, not {kind.__qualname__}"
            )
        return self.channel

    def update_metadata(self, update: Callable[[SessionMetadata], None]) -> None:
        update(self.metadata)

    def mark_operation(self, description: str) -> None:
        self.metadata.operation_count += 1
        self.metadata.state_description = description

    def mark_complete(self) -> None:
        self.metadata.is_complete = True
        self.metadata.state_description = "Complete"


class SessionChannelBundle:
    """Channels and their session metadata, keyed by peer role."""

    def __init__(self) -> None:
        self._channels: Dict[Hashable, Any] = {}
        self._metadata: Dict[Hashable, SessionMetadata] = {}

    def register(self, role: Hashable, channel: Any) -> None:
        self.register_with_metadata(role, channel, SessionMetadata())

    def register_with_metadata(
        self, role: Hashable, channel: Any, metadata: SessionMetadata
    ) -> None:
        self._channels[role] = channel
        self._metadata[role] = metadata

    def take_channel(self, role: Hashable) -> Optional[Any]:
        """Remove and return the channel for ``role``, or None if there is none."""
        return self._channels.pop(role, None)

    def put_channel(self, role: Hashable, channel: Any) -> None:
        self._channels[role] = channel

    def get_metadata(self, role: Hashable) -> Optional[SessionMetadata]:
        return self._metadata.get(role)

    def update_metadata(
        self, role: Hashable, update: Callable[[SessionMetadata], None]
    ) -> None:
        metadata = self._metadata.get(role)
        if metadata is not None:
            update(metadata)

    def mark_operation(self, role: Hashable, description: str) -> None:
        def _mark(metadata: SessionMetadata) -> None:
            metadata.operation_count += 1
            metadata.state_description = description

        self.update_metadata(role, _mark)

    def has_channel(self, role: Hashable) -> bool:
        return role in self._channels

    def remove(self, role: Hashable) -> bool:
        """Forget ``role``; True if a channel was held for it."""
        self._metadata.pop(role, None)
        return self._channels.pop(role, None) is not None

    def all_metadata(self) -> List[Tuple[Hashable, SessionMetadata]]:
        return list(self._metadata.items())


class SessionEndpoint:
    """The channels one role holds to its peers. Usable as a context manager."""

    def __init__(self, local_role: Hashable) -> None:
        self.local_role = local_role
        self._channels = SessionChannelBundle()

    def register_channel(self, peer: Hashable, channel: Any) -> None:
        self._channels.register(peer, channel)

    def take_channel(self, peer: Hashable) -> Optional[Any]:
        return self._channels.take_channel(peer)

    def put_channel(self, peer: Hashable, channel: Any) -> None:
        self._channels.put_channel(peer, channel)

    def has_channel(self, peer: Hashable) -> bool:
        return self._channels.has_channel(peer)

    def close_channel(self, peer: Hashable) -> bool:
        """Close and forget the channel to ``peer``; True if there was one."""
        _log.debug("closing channel to %r", peer)
        channel = self._channels.take_channel(peer)
        self._channels.remove(peer)
        if isinstance(channel, SimpleChannel):
            channel.close()
        return channel is not None

    def close_all_channels(self) -> int:
        """Close every session and return how many there were."""
        peers = [peer for peer, _ in self._channels.all_metadata()]
        for peer in peers:
            self.close_channel(peer)
        _log.info("closed %d channels", len(peers))
        return len(peers)

    def is_all_closed(self) -> bool:
        return not self._channels.all_metadata()

    def active_channel_count(self) -> int:
        return len(self._channels.all_metadata())

    def mark_operation(self, peer: Hashable, operation: str) -> None:
        self._channels.mark_operation(peer, operation)

    def get_metadata(self, peer: Hashable) -> Optional[SessionMetadata]:
        return self._channels.get_metadata(peer)

    def all_metadata(self) -> List[Tuple[Hashable, SessionMetadata]]:
        return self._channels.all_metadata()

    def close(self) -> None:
        """Release every channel still open."""
        active = self.active_channel_count()
        if active:
            _log.warning("endpoint closed with %d active channels - closing them", active)
            self.close_all_channels()

    def __enter__(self) -> "SessionEndpoint":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()


@contextmanager
def _borrow(endpoint: SessionEndpoint, peer: Hashable) -> Iterator[SimpleChannel]:
    channel = endpoint.take_channel(peer)
    if channel is None:
        raise TransportError(f"No channel registered for role: {peer!r}")
    try:
        if not isinstance(channel, SimpleChannel):
            raise TransportError("Failed to downcast channel - wrong channel type")
        yield channel
    finally:
        endpoint.put_channel(peer, channel)


class SessionHandler(ChoreoHandlerExt):
    """Performs effects over the :class:`SimpleChannel` held for each peer."""

    async def send(self, endpoint: SessionEndpoint, to: Hashable, msg: Any) -> None:
        try:
            data = encode(msg)
        except SerializationError as exc:
            raise TransportError(f"Serialization failed: {exc.message}") from exc
        _log.debug("sending %d bytes to %r", len(data), to)
        with _borrow(endpoint, to) as channel:
            try:
                await channel.send(data)
            except ConnectionError as exc:
                raise TransportError(f"Send failed: {exc}") from exc
        endpoint.mark_operation(to, "Send")

    async def recv(self, endpoint: SessionEndpoint, from_role: Hashable) -> Any:
        _log.debug("receiving from %r", from_role)
        with _borrow(endpoint, from_role) as channel:
            try:
                data = await channel.recv()
            except ConnectionError as exc:
                raise TransportError(f"Receive failed: {exc}") from exc
            _log.debug("received %d bytes from %r", len(data), from_role)
            try:
                msg = decode(data)
            except SerializationError as exc:
                raise TransportError(f"Deserialization failed: {exc.message}") from exc
        endpoint.mark_operation(from_role, "Recv")
        return msg

    async def choose(self, endpoint: SessionEndpoint, who: Hashable, label: Label) -> None:
        _log.debug("choosing %r towards %r", label, who)
        with _borrow(endpoint, who) as channel:
            try:
                await channel.send(encode(label.name))
            except ConnectionError as exc:
                raise TransportError(f"Choice send failed: {exc}") from exc
        endpoint.mark_operation(who, "Choose")

    async def offer(self, endpoint: SessionEndpoint, from_role: Hashable) -> Label:
        _log.debug("offering choice from %r", from_role)
        with _borrow(endpoint, from_role) as channel:
            try:
                data = await channel.recv()
            except ConnectionError as exc:
                raise TransportError(f"Choice receive failed: {exc}") from exc
            try:
                name = decode(data)
            except SerializationError as exc:
                raise TransportError(
                    f"Label deserialization failed: {exc.message}"
                ) from exc
            if not isinstance(name, str):
                raise TransportError(
                    "Label deserialization failed: label is not a string"
                )
        _log.debug("received choice %r from %r", name, from_role)
        endpoint.mark_operation(from_role, "Offer")
        return Label(name)

    async def with_timeout(
        self, endpoint: SessionEndpoint, at: Hashable, duration: float, body: Awaitable[T]
    ) -> T:
        try:
            return await asyncio.wait_for(body, duration)
        except asyncio.TimeoutError as exc:
            raise TimeoutExpired(duration) from exc


__all__ = (
    "SimpleChannel",
    "SessionMetadata",
    "SessionState",
    "SessionChannelBundle",
    "SessionEndpoint",
    "SessionHandler",
)