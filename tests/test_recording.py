import asyncio

import pytest

from choreography.algebra import InterpreterState, Program
from choreography.handler import Label, TransportError
from choreography.handlers.recording import (
    RecordedChoose,
    RecordedOffer,
    RecordedRecv,
    RecordedSend,
    RecordingHandler,
)


@pytest.mark.asyncio
async def test_send_and_choose_are_recorded_in_order():
    handler = RecordingHandler("alice")
    await handler.send(None, "bob", "hello")
    await handler.choose(None, "alice", Label("continue"))
    assert handler.events() == [
        RecordedSend("alice", "bob", "str"),
        RecordedChoose("alice", Label("continue")),
    ]


@pytest.mark.parametrize(
    "method, match, event",
    [
        ("recv", "cannot produce values", RecordedRecv("alice", "bob")),
        ("offer", "cannot produce labels", RecordedOffer("alice", "bob")),
    ],
)
@pytest.mark.asyncio
async def test_requests_are_recorded_and_fail(method, match, event):
    handler = RecordingHandler("bob")
    with pytest.raises(TransportError, match=match):
        await getattr(handler, method)(None, "alice")
    assert handler.events() == [event]


@pytest.mark.asyncio
async def test_clear_empties_and_events_returns_a_copy():
    handler = RecordingHandler("alice")
    await handler.send(None, "bob", 1)
    snapshot = handler.events()
    snapshot.clear()
    assert handler.events() == [RecordedSend("alice", "bob", "int")]
    handler.clear()
    assert handler.events() == []


@pytest.mark.asyncio
async def test_with_timeout_awaits_body():
    handler = RecordingHandler("alice")
    result = await handler.with_timeout(None, "alice", 0.001, asyncio.sleep(0, result="ok"))
    assert result == "ok"


@pytest.mark.asyncio
async def test_run_program_records_structure():
    handler = RecordingHandler("alice")
    program = Program().send("bob", "hi").choose("alice", Label("go")).end()
    result = await handler.run_program(None, program)
    assert result.final_state is InterpreterState.COMPLETED
    assert handler.events() == [
        RecordedSend("alice", "bob", "str"),
        RecordedChoose("alice", Label("go")),
    ]


@pytest.mark.asyncio
async def test_run_program_with_recv_fails():
    handler = RecordingHandler("alice")
    result = await handler.run_program(None, Program().recv("bob", str))
    assert result.final_state is InterpreterState.FAILED
    assert "cannot produce values" in result.error