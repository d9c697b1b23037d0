import pytest

from choreography.handler import (
    ChoreoHandler,
    ChoreographyError,
    HandlerLifecycle,
    Label,
    NoOpHandler,
    ProtocolViolation,
    SerializationError,
    TimeoutExpired,
    TransportError,
    UnknownRole,
)


class _Collecting(ChoreoHandler):
    def __init__(self, fail_on=None):
        self.sent = []
        self.fail_on = fail_on

    async def send(self, endpoint, to, msg):
        if to == self.fail_on:
            raise TransportError("refused")
        self.sent.append((to, msg))

    async def recv(self, endpoint, from_role):
        return None

    async def choose(self, endpoint, who, label):
        return None

    async def offer(self, endpoint, from_role):
        return Label("x")

    async def with_timeout(self, endpoint, at, duration, body):
        return await body


class _Lifecycle(_Collecting, HandlerLifecycle):
    def __init__(self):
        super().__init__()
        self.closed = []

    async def setup(self, role):
        return {"role": role}

    async def teardown(self, endpoint):
        self.closed.append(endpoint["role"])


async def _value(v):
    return v


def test_label_equality_and_hash():
    assert Label("a") == Label("a")
    assert Label("a") != Label("b")
    assert len({Label("a"), Label("a"), Label("b")}) == 2
    assert str(Label("accept")) == "accept"


def test_label_default_is_empty():
    assert Label().name == ""


def test_error_messages():
    assert str(TransportError("x")) == "Transport error: x"
    assert str(SerializationError("y")) == "Serialization error: y"
    assert str(ProtocolViolation("z")) == "Protocol violation: z"
    assert "not found in this choreography" in str(UnknownRole("Bob"))
    assert UnknownRole("Bob").role == "Bob"


def test_errors_share_base_class():
    err = TimeoutExpired(0.5)
    assert isinstance(err, ChoreographyError)
    assert err.duration == 0.5


def test_handler_is_abstract():
    with pytest.raises(TypeError):
        ChoreoHandler()


@pytest.mark.asyncio
async def test_noop_send_and_choose_succeed():
    handler = NoOpHandler()
    assert await handler.send(None, "bob", "hi") is None
    assert await handler.choose(None, "alice", Label("go")) is None


@pytest.mark.asyncio
async def test_noop_recv_fails():
    with pytest.raises(TransportError) as info:
        await NoOpHandler().recv(None, "bob")
    assert info.value.message == "NoOpHandler cannot receive"


@pytest.mark.asyncio
async def test_noop_offer_fails():
    with pytest.raises(TransportError) as info:
        await NoOpHandler().offer(None, "bob")
    assert info.value.message == "NoOpHandler cannot offer"


@pytest.mark.asyncio
async def test_noop_with_timeout_returns_body_result():
    result = await NoOpHandler().with_timeout(None, "a", 1.0, _value(42))
    assert result == 42


@pytest.mark.asyncio
async def test_broadcast_sends_in_order():
    handler = _Collecting()
    await ChoreoHandler.broadcast(handler, None, ["b", "c"], "m")
    assert handler.sent == [("b", "m"), ("c", "m")]


@pytest.mark.asyncio
async def test_parallel_send_stops_at_first_error():
    handler = _Collecting(fail_on="c")
    with pytest.raises(TransportError) as info:
        await ChoreoHandler.parallel_send(handler, None, [("b", 1), ("c", 2), ("d", 3)])
    assert info.value.message == "refused"
    assert handler.sent == [("b", 1)]


@pytest.mark.asyncio
async def test_lifecycle_setup_and_teardown():
    handler = _Lifecycle()
    endpoint = await handler.setup("alice")
    assert endpoint == {"role": "alice"}
    await ChoreoHandler.broadcast(handler, endpoint, ["bob"], "hello")
    assert handler.sent == [("bob", "hello")]
    await handler.teardown(endpoint)
    assert handler.closed == ["alice"]