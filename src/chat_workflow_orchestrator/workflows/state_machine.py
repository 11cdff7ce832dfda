from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class ExecutionPhase(str, Enum):
    IDLE = "idle"
    TRIGGERED = "triggered"
    TOOL_SELECTING = "tool_selecting"
    VALIDATING = "validating"
    EXECUTING = "executing"
    TERMINAL_SUCCESS = "terminal_success"
    TERMINAL_FAILURE = "terminal_failure"
    AWAITING_FOLLOW_UP = "awaiting_follow_up"


TERMINAL_PHASES: frozenset[ExecutionPhase] = frozenset(
    {
        ExecutionPhase.TERMINAL_SUCCESS,
        ExecutionPhase.TERMINAL_FAILURE,
        ExecutionPhase.AWAITING_FOLLOW_UP,
    }
)

_ENDINGS = set(TERMINAL_PHASES)

# A continuation turn may go straight from TRIGGERED to EXECUTING.
ALLOWED_TRANSITIONS: dict[ExecutionPhase, set[ExecutionPhase]] = {
    ExecutionPhase.IDLE: {ExecutionPhase.TRIGGERED},
    ExecutionPhase.TRIGGERED: {
        ExecutionPhase.TOOL_SELECTING,
        ExecutionPhase.EXECUTING,
        *_ENDINGS,
    },
    ExecutionPhase.TOOL_SELECTING: {ExecutionPhase.VALIDATING, ExecutionPhase.TERMINAL_FAILURE},
    ExecutionPhase.VALIDATING: {ExecutionPhase.EXECUTING, *_ENDINGS},
    ExecutionPhase.EXECUTING: {ExecutionPhase.EXECUTING, *_ENDINGS},
    ExecutionPhase.TERMINAL_SUCCESS: set(),
    ExecutionPhase.TERMINAL_FAILURE: set(),
    ExecutionPhase.AWAITING_FOLLOW_UP: set(),
}


class IllegalTransitionError(ValueError):
    pass


def transition(*, current: ExecutionPhase, to: ExecutionPhase) -> ExecutionPhase:
    allowed = ALLOWED_TRANSITIONS.get(current, set())
    if to not in allowed:
        raise IllegalTransitionError(f"Illegal transition: {current.value} -> {to.value}")
    return to


@dataclass(slots=True)
class TurnTrace:
    """The phases one message went through, in order.

    One trace is created per message by the executor and handed to the
    workflow, which advances it as it selects, validates and executes.
    """

    phase: ExecutionPhase = ExecutionPhase.IDLE
    history: list[ExecutionPhase] = field(default_factory=lambda: [ExecutionPhase.IDLE])

    @property
    def finished(self) -> bool:
        return self.phase in TERMINAL_PHASES

    def advance(self, to: ExecutionPhase) -> ExecutionPhase:
        self.phase = transition(current=self.phase, to=to)
        self.history.append(self.phase)
        return self.phase

    def finish(self, *, success: bool, follow_up: bool = False) -> ExecutionPhase:
        if follow_up:
            return self.advance(ExecutionPhase.AWAITING_FOLLOW_UP)
        if success:
            return self.advance(ExecutionPhase.TERMINAL_SUCCESS)
        return self.fail()

    def fail(self) -> ExecutionPhase:
        """Move to TERMINAL_FAILURE from whatever non-terminal phase we are in."""
        if self.finished:
            return self.phase
        if self.phase is ExecutionPhase.IDLE:
            self.advance(ExecutionPhase.TRIGGERED)
        return self.advance(ExecutionPhase.TERMINAL_FAILURE)

    def to_json(self) -> list[str]:
        return [p.value for p in self.history]
