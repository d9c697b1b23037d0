# choreography

Describe a multiparty protocol once, as plain data, and run it through
an effect handler that decides how messages travel.

A protocol is a `Program`: an immutable sequence of effects (send,
receive, choose a branch, offer a choice, branch, loop, timeout,
parallel composition, end). Programs can be inspected before they run
and then executed by an interpreter that hands every effect to a
handler.

## Building and analysing programs (`choreography.algebra`)

```python
from choreography.algebra import Program
from choreography.handler import Label

program = (
    Program()
    .send("Bob", "hello")
    .recv("Bob", str)            # a type or a type name
    .choose("Alice", Label("continue"))
    .end()
)

program.send_count()      # 1
program.recv_count()      # 1
program.roles_involved()  # {"Alice", "Bob"}
program.has_timeouts()    # False
program.has_parallel()    # False
program.validate()        # raises InvalidStructure for a branch with no arms
```

Every builder method returns a new program. Nested programs go into
`branch(choosing_role, [(label, program), ...])`, `loop_n(n, body)`
(a negative count raises `ValueError`), `loop_inf(body)`,
`with_timeout(at, seconds, body)` and `parallel([...])`;
`Program.par([...])` builds a program that holds only a parallel
block, and `then` concatenates two programs. `len(program)`,
iteration and `is_empty()` work on the top-level effects.

`send_count` and `recv_count` follow the longest branch, count loop
and timeout bodies once and add up parallel programs. `has_timeouts`
and `has_parallel` look at the top level only.

The effect classes (`Send`, `Recv`, `Choose`, `Offer`, `Branch`,
`Loop`, `Timeout`, `Parallel`, `End`) are frozen dataclasses, so
programs can be compared and pattern-matched.

## Running a program (`choreography.interpreter`)

`interpret(handler, endpoint, program)` is a coroutine that walks the
program and returns an `InterpretResult` with the values received, a
final `InterpreterState` (`COMPLETED`, `TIMEOUT` or `FAILED`) and, on
failure, the error text in `error`. Handler errors do not escape; they
end up in the result.

- A `Branch` follows the label of the most recent `Choose` or `Offer`;
  without one, or with no matching arm, the run fails with a protocol
  violation.
- `Loop` runs its body the given number of times; an unbounded loop
  runs its body once.
- `Timeout` bounds its body with `asyncio.wait_for`.
- `Parallel` programs run one after another, since they share the
  handler's endpoint.

```python
import asyncio

from choreography.algebra import Program
from choreography.codec import encode
from choreography.interpreter import interpret
from choreography.testing import MockHandler, MockResponse


async def main():
    handler = MockHandler("Alice")
    handler.add_response(MockResponse("message", encode("reply")))
    program = Program().send("Bob", "hello").recv("Bob", str).end()
    result = await interpret(handler, None, program)
    print(result.final_state, result.received_values)
    print(handler.operations())


asyncio.run(main())
```

Handlers that derive from `ChoreoHandlerExt` can also run a program
themselves with `await handler.run_program(endpoint, program)`.

## Handlers

`choreography.handler.ChoreoHandler` is the abstract interface:
`send`, `recv`, `choose`, `offer` and `with_timeout`, plus `broadcast`
and `parallel_send`, which send in turn. `HandlerLifecycle` describes
`setup` and `teardown` around a run. Handlers in the package:

- `handler.NoOpHandler` drops sends and choices and refuses receives
  and offers; `dropped` and `refused` count them.
- `testing.MockHandler` records each operation as a `MockOperation`
  and answers receives and offers from a queue of `MockResponse`
  values (`"message"` with encoded bytes, `"label"` with a name, or
  `"error"`).
- `handlers.recording.RecordingHandler` keeps a list of
  `RecordedSend`, `RecordedRecv`, `RecordedChoose` and `RecordedOffer`
  events for checking a protocol's shape; it never produces values.
- `handlers.session.SessionHandler` talks through `SimpleChannel`
  pairs registered on a `SessionEndpoint`, keeping per-peer
  `SessionMetadata` (operation count, last operation, completion).

```python
from choreography.handler import Label
from choreography.handlers.session import SessionEndpoint, SessionHandler, SimpleChannel


async def ping():
    alice_side, bob_side = SimpleChannel.pair()
    with SessionEndpoint("Alice") as alice, SessionEndpoint("Bob") as bob:
        alice.register_channel("Bob", alice_side)
        bob.register_channel("Alice", bob_side)

        handler = SessionHandler()
        await handler.send(alice, "Bob", {"content": "ping"})
        message = await handler.recv(bob, "Alice")

        await handler.choose(alice, "Bob", Label("option_a"))
        label = await handler.offer(bob, "Alice")
        return message, label, alice.get_metadata("Bob").operation_count
```

Leaving the `with` block (or calling `close()`) closes every channel
still registered. `SessionChannelBundle` and `SessionState` are the
building blocks the endpoint uses and can be used on their own.

Failures are raised as subclasses of `ChoreographyError`:
`TransportError`, `SerializationError`, `TimeoutExpired`,
`ProtocolViolation` and `UnknownRole`.

## Encoding (`choreography.codec`)

`encode(value)` turns `None`, booleans, integers, floats, strings,
bytes, lists, tuples and dictionaries of these into bytes, and
`decode(data)` reverses it. Anything else, or malformed input, raises
`SerializationError`. `SessionHandler` and `MockHandler` use this
encoding for messages.

## Running tasks (`choreography.runtime`)

`spawn(coro)` and `spawn_local(coro)` schedule a coroutine on the
running event loop and return its task, keeping a reference until it
finishes, so each role of a protocol can run as its own task. Without
a running loop they raise `RuntimeError`.

## What this package does not do

- There is no networked transport: messages only travel between
  channels in the same process.
- There are no handler wrappers for tracing, metrics, retries or fault
  injection; the `choreography.middleware` package holds no modules.
- There is no handler that routes messages through shared queues keyed
  by sender and receiver; use `SimpleChannel` pairs instead.
- Protocols are built in Python with `Program`; there is no protocol
  language to parse and no projection of a global protocol onto roles.
- There is no command-line program.