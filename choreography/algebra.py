"""Choreographic programs as data: effects, a fluent builder and static analysis."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any, Hashable, Iterable, Iterator, Optional, Sequence, Tuple, Union

from .handler import Label


@dataclass(frozen=True)
class Send:
    """Send ``msg`` to role ``to``."""

    to: Hashable
    msg: Any


@dataclass(frozen=True)
class Recv:
    """Receive a message of the named type from ``from_role``."""

    from_role: Hashable
    msg_type: str


@dataclass(frozen=True)
class Choose:
    """Make an internal choice at ``at`` and announce ``label``."""

    at: Hashable
    label: Label


@dataclass(frozen=True)
class Offer:
    """Wait for the choice made by ``from_role``."""

    from_role: Hashable


@dataclass(frozen=True)
class Branch:
    """Continue with the program whose label matches the last choice."""

    choosing_role: Hashable
    branches: Tuple[Tuple[Label, "Program"], ...]


@dataclass(frozen=True)
class Loop:
    """Run ``body`` ``iterations`` times; ``None`` means until broken off."""

    iterations: Optional[int]
    body: "Program"


@dataclass(frozen=True)
class Timeout:
    """Run ``body`` at role ``at`` within ``duration`` seconds."""

    at: Hashable
    duration: float
    body: "Program"


@dataclass(frozen=True)
class Parallel:
    """Run several programs side by side."""

    programs: Tuple["Program", ...]


@dataclass(frozen=True)
class End:
    """End of the program."""


Effect = Union[Send, Recv, Choose, Offer, Branch, Loop, Timeout, Parallel, End]


def _type_name(msg_type: Union[str, type]) -> str:
    if isinstance(msg_type, str):
        return msg_type
    return msg_type.__qualname__


@dataclass(frozen=True)
class Program:
    """An immutable sequence of effects; every builder returns a new program."""

    effects: Tuple[Effect, ...] = field(default=())

    def _append(self, effect: Effect) -> "Program":
        return Program(self.effects + (effect,))

    def send(self, to: Hashable, msg: Any) -> "Program":
        return self._append(Send(to, msg))

    def recv(self, from_role: Hashable, msg_type: Union[str, type]) -> "Program":
        return self._append(Recv(from_role, _type_name(msg_type)))

    def choose(self, at: Hashable, label: Label) -> "Program":
        return self._append(Choose(at, label))

    def offer(self, from_role: Hashable) -> "Program":
        return self._append(Offer(from_role))

    def with_timeout(self, at: Hashable, duration: float, body: "Program") -> "Program":
        return self._append(Timeout(at, duration, body))

    def parallel(self, programs: Iterable["Program"]) -> "Program":
        return self._append(Parallel(tuple(programs)))

    def branch(
        self,
        choosing_role: Hashable,
        branches: Iterable[Tuple[Label, "Program"]],
    ) -> "Program":
        return self._append(
            Branch(choosing_role, tuple((label, prog) for label, prog in branches))
        )

    def loop_n(self, iterations: int, body: "Program") -> "Program":
        if iterations < 0:
            raise ValueError("loop iteration count cannot be negative")
        return self._append(Loop(iterations, body))

    def loop_inf(self, body: "Program") -> "Program":
        return self._append(Loop(None, body))

    def end(self) -> "Program":
        return self._append(End())

    def then(self, other: "Program") -> "Program":
        return Program(self.effects + other.effects)

    @staticmethod
    def par(programs: Iterable["Program"]) -> "Program":
        return Program().parallel(programs)

    def is_empty(self) -> bool:
        return not self.effects

    def __len__(self) -> int:
        return len(self.effects)

    def __iter__(self) -> Iterator[Effect]:
        return iter(self.effects)

    # Analysis

    def _roles(self) -> Iterator[Hashable]:
        for effect in self.effects:
            match effect:
                case Send(to=role) | Recv(from_role=role) | Choose(at=role) | Offer(from_role=role):
                    yield role
                case Branch(choosing_role=role, branches=branches):
                    yield role
                    for _, prog in branches:
                        yield from prog._roles()
                case Loop(body=body):
                    yield from body._roles()
                case Timeout(at=role, body=body):
                    yield role
                    yield from body._roles()
                case Parallel(programs=programs):
                    for prog in programs:
                        yield from prog._roles()

    def roles_involved(self) -> set:
        """Every role mentioned anywhere in the program."""
        return set(self._roles())

    def _count(self, kind: type) -> int:
        total = 0
        for effect in self.effects:
            match effect:
                case Branch(branches=branches):
                    total += max((prog._count(kind) for _, prog in branches), default=0)
                case Loop(body=body) | Timeout(body=body):
                    total += body._count(kind)
                case Parallel(programs=programs):
                    total += sum(prog._count(kind) for prog in programs)
                case _ if isinstance(effect, kind):
                    total += 1
        return total

    def send_count(self) -> int:
        """Sends on the longest path; loop bodies are counted once."""
        return self._count(Send)

    def recv_count(self) -> int:
        """Receives on the longest path; loop bodies are counted once."""
        return self._count(Recv)

    def has_timeouts(self) -> bool:
        return any(isinstance(effect, Timeout) for effect in self.effects)

    def has_parallel(self) -> bool:
        return any(isinstance(effect, Parallel) for effect in self.effects)

    def validate(self) -> None:
        """Raise :class:`InvalidStructure` if the program is malformed."""
        for effect in self.effects:
            match effect:
                case Branch(branches=branches):
                    if not branches:
                        raise InvalidStructure("Branch must have at least one branch")
                    for _, prog in branches:
                        prog.validate()
                case Loop(body=body) | Timeout(body=body):
                    body.validate()
                case Parallel(programs=programs):
                    for prog in programs:
                        prog.validate()


class ProgramError(Exception):
    """Raised when a program is built or analysed incorrectly."""


class InvalidStructure(ProgramError):
    def __init__(self, detail: str) -> None:
        self.detail = detail
        super().__init__(f"Invalid program structure: {detail}")


class UnbalancedCommunication(ProgramError):
    def __init__(self) -> None:
        super().__init__("Unbalanced send/receive operations")


class UnreachableCode(ProgramError):
    def __init__(self) -> None:
        super().__init__("Program contains unreachable code")


class InterpreterState(enum.Enum):
    """How the interpretation of a program ended."""

    COMPLETED = "completed"
    TIMEOUT = "timeout"
    FAILED = "failed"


@dataclass
class InterpretResult:
    """Values received while interpreting a program, and how it ended."""

    received_values: list
    final_state: InterpreterState
    error: Optional[str] = None

    @property
    def completed(self) -> bool:
        return self.final_state is InterpreterState.COMPLETED


__all__: Sequence[str] = (
    "Send",
    "Recv",
    "Choose",
    "Offer",
    "Branch",
    "Loop",
    "Timeout",
    "Parallel",
    "End",
    "Effect",
    "Program",
    "ProgramError",
    "InvalidStructure",
    "UnbalancedCommunication",
    "UnreachableCode",
    "InterpreterState",
    "InterpretResult",
)