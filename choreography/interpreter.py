"""Run choreographic programs against a concrete effect handler."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, List, Optional

from .algebra import (
    Branch,
    Choose,
    Effect,
    End,
    InterpreterState,
    InterpretResult,
    Loop,
    Offer,
    Parallel,
    Program,
    Recv,
    Send,
    Timeout,
)
from .handler import (
    ChoreoHandler,
    ChoreographyError,
    Label,
    ProtocolViolation,
    TimeoutExpired,
    TransportError,
)

_log = logging.getLogger(__name__)


class _Interpreter:
    """Walks a program, performing each effect through a handler."""

    def __init__(self) -> None:
        self.received_values: List[Any] = []
        self.last_label: Optional[Label] = None

    async def run(self, handler: ChoreoHandler, endpoint: Any, program: Program) -> InterpretResult:
        try:
            await self._run(handler, endpoint, program)
        except TimeoutExpired:
            return InterpretResult(list(self.received_values), InterpreterState.TIMEOUT)
        except ChoreographyError as exc:
            return InterpretResult(
                list(self.received_values), InterpreterState.FAILED, error=str(exc)
            )
        return InterpretResult(list(self.received_values), InterpreterState.COMPLETED)

    async def _run(self, handler: ChoreoHandler, endpoint: Any, program: Program) -> None:
        for effect in program:
            await self._execute(handler, endpoint, effect)

    async def _run_nested(
        self,
        handler: ChoreoHandler,
        endpoint: Any,
        program: Program,
        timeout_duration: float = 0.0,
    ) -> None:
        """Run a sub-program; its failure surfaces as a transport error."""
        try:
            await self._run(handler, endpoint, program)
        except TimeoutExpired as exc:
            raise TimeoutExpired(timeout_duration) from exc
        except ChoreographyError as exc:
            raise TransportError(str(exc)) from exc

    async def _execute(self, handler: ChoreoHandler, endpoint: Any, effect: Effect) -> None:
        match effect:
            case Send(to=to, msg=msg):
                await handler.send(endpoint, to, msg)

            case Recv(from_role=from_role, msg_type=msg_type):
                _log.debug("recv from %r expecting %s", from_role, msg_type)
                value = await handler.recv(endpoint, from_role)
                self.received_values.append(value)

            case Choose(at=at, label=label):
                await handler.choose(endpoint, at, label)
                self.last_label = label

            case Offer(from_role=from_role):
                label = await handler.offer(endpoint, from_role)
                _log.debug("received offer label %r from %r", label, from_role)
                self.last_label = label

            case Branch(choosing_role=choosing_role, branches=branches):
                _log.debug("branch at %r over %d branches", choosing_role, len(branches))
                label = self.last_label
                if label is None:
                    raise ProtocolViolation(
                        "Branch effect requires a preceding Choose or Offer effect"
                    )
                selected = next((prog for lbl, prog in branches if lbl == label), None)
                if selected is None:
                    raise ProtocolViolation(f"No branch found for label {label!r}")
                await self._run_nested(handler, endpoint, selected)
                self.last_label = None

            case Loop(iterations=iterations, body=body):
                count = 1 if iterations is None else iterations
                for iteration in range(count):
                    _log.debug("loop iteration %d", iteration)
                    await self._run_nested(handler, endpoint, body)

            case Timeout(at=at, duration=duration, body=body):
                _log.debug("timeout at %r for %ss", at, duration)
                try:
                    await asyncio.wait_for(
                        self._run_nested(handler, endpoint, body, duration), duration
                    )
                except asyncio.TimeoutError as exc:
                    raise TimeoutExpired(duration) from exc

            case Parallel(programs=programs):
                # Handlers hold exclusive endpoint state, so the programs run in turn.
                for prog in programs:
                    await self._run_nested(handler, endpoint, prog)

            case End():
                pass


async def interpret(handler: ChoreoHandler, endpoint: Any, program: Program) -> InterpretResult:
    """Interpret ``program`` with ``handler``; failures end up in the result's state."""
    return await _Interpreter().run(handler, endpoint, program)


class ChoreoHandlerExt(ChoreoHandler):
    """A handler that can run whole programs itself."""

    async def run_program(self, endpoint: Any, program: Program) -> InterpretResult:
        """Interpret ``program`` using this handler."""
        return await interpret(self, endpoint, program)


__all__ = ("interpret", "ChoreoHandlerExt")