"""One-level dispatch of deferred steps named by a step's output."""

from __future__ import annotations

import enum
import logging
from typing import Awaitable, Callable, Mapping

from stepflow.json_utils import parse_dispatch_payload
from stepflow.models.dispatch_payload import DispatchPayload
from stepflow.models.step import Step
from stepflow.models.step_config import StepConfig
from stepflow.state import ExecutionState


logger = logging.getLogger(__name__)

RunStep = Callable[[Step, ExecutionState], Awaitable[str]]


class DispatchState(enum.Enum):
    IDLE = "idle"
    INSPECTING = "inspecting"
    DISPATCHED = "dispatched"
    TERMINAL = "terminal"


class DeferDispatcher:
    """
    Inspects a finished step's output for {"step": ..., "input": ...}.

    When the named step is in the defer table its payload becomes the last
    output and the step runs once. Anything else ends in TERMINAL with the
    state untouched. Deferred steps are never inspected for further dispatch.
    """

    def __init__(self, defer_table: Mapping[str, StepConfig]) -> None:
        self._table = defer_table
        self.state = DispatchState.IDLE
        self.payload: DispatchPayload | None = None

    def inspect(self, output: str) -> Step | None:
        self.state = DispatchState.INSPECTING
        payload = parse_dispatch_payload(output)
        if payload is None:
            self.state = DispatchState.TERMINAL
            return None
        config = self._table.get(payload.step)
        if config is None:
            logger.debug("Output names step %r which is not in the defer table", payload.step)
            self.state = DispatchState.TERMINAL
            return None
        self.payload = payload
        self.state = DispatchState.DISPATCHED
        return Step(name=payload.step, config=config)

    async def dispatch(self, state: ExecutionState, run_step: RunStep) -> str | None:
        """Run the deferred step named by the last output; None when nothing was dispatched."""
        step = self.inspect(state.last_output)
        if step is None or self.payload is None:
            return None
        logger.info("Dispatching deferred step: %s", step.name)
        state.set_last_output(self.payload.input_text)
        try:
            return await run_step(step, state)
        finally:
            self.state = DispatchState.TERMINAL
