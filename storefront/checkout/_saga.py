"""
Compensating steps.

A step is a lazy action plus the undo for its result. When a later step
fails, recorded undos run in reverse:

    capture = Step(
        action=L.catching_async(lambda: gateway.capture(ref), on_error=...),
        compensate=gateway.refund,
    )
    result = await run(capture.then(lambda payment: Step(create_order(payment))))
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

from kungfu import Result, Ok, Error

from storefront._types import Lazy

logger = logging.getLogger(__name__)

type Compensator[T] = Callable[[T], Awaitable[None]]


@dataclass(frozen=True, slots=True)
class Step[T, E]:
    action: Lazy[T, E]
    compensate: Compensator[T] | None = None

    def then[U](self, f: Callable[[T], Step[U, E]]) -> Then[T, U, E]:
        return Then(self, f)


@dataclass(frozen=True, slots=True)
class Then[T, U, E]:
    inner: Step[T, E]
    f: Callable[[T], Step[U, E]]


@dataclass(frozen=True, slots=True)
class SagaFailure[E]:
    """The error that stopped the chain, plus how the rollback went."""

    error: E
    compensators_run: int
    compensators_failed: int

    @property
    def rollback_complete(self) -> bool:
        return self.compensators_failed == 0


type _Recorded = list[tuple[Any, Compensator[Any]]]


async def _run_step[T, E](step: Step[T, E], recorded: _Recorded) -> Result[T, E]:
    match await step.action:
        case Ok(value):
            if step.compensate is not None:
                recorded.append((value, step.compensate))
            return Ok(value)
        case Error(e):
            return Error(e)


async def _compensate(recorded: _Recorded) -> tuple[int, int]:
    run_count = 0
    failed = 0
    for value, undo in reversed(recorded):
        try:
            await undo(value)
            run_count += 1
        except Exception:
            # keep going, every remaining undo still gets its chance
            logger.exception("Compensation failed for %r", value)
            failed += 1
    return run_count, failed


async def run[T, U, E](saga: Step[T, E] | Then[T, U, E]) -> Result[T | U, SagaFailure[E]]:
    """Execute one step or a two-step chain, compensating on failure."""
    recorded: _Recorded = []

    first = saga if isinstance(saga, Step) else saga.inner
    match await _run_step(first, recorded):
        case Error(e):
            return Error(SagaFailure(e, *await _compensate(recorded)))
        case Ok(value):
            if isinstance(saga, Step):
                return Ok(value)

    match await _run_step(saga.f(value), recorded):
        case Ok(final):
            return Ok(final)
        case Error(e):
            return Error(SagaFailure(e, *await _compensate(recorded)))


__all__ = ("Step", "Then", "SagaFailure", "run")
