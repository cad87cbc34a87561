"""Workflow execution."""

from __future__ import annotations

import logging
import sys
import time
from contextlib import AsyncExitStack
from functools import partial
from typing import TextIO

import httpx

from stepflow.chunking import combine_chunk_results, needs_chunking, split_into_chunks
from stepflow.concurrency import run_in_order
from stepflow.defer import DeferDispatcher
from stepflow.dependency_resolver import (
    STDIN,
    STDOUT,
    DependencyResolver,
    is_glob,
    is_memory_target,
    is_no_input,
    is_url,
    memory_section,
    resolve_path,
)
from stepflow.errors import ConfigValidationError, DependencyError, MemoryStoreError, StepflowError
from stepflow.input_adaptors import FileInput, TextInput
from stepflow.io_utils import expand_pattern, fetched_url, write_output
from stepflow.json_utils import extract_fenced_block
from stepflow.memory import MemoryManager
from stepflow.models.chunk_config import ChunkConfig
from stepflow.models.performance_metrics import PerformanceMetrics
from stepflow.models.processed_input import ProcessedInput
from stepflow.models.prompt_options import PromptOptions
from stepflow.models.provider_settings import ProviderSettings
from stepflow.models.step import Step
from stepflow.models.workflow_plan import ParallelGroup, WorkflowPlan
from stepflow.prompting import make_generation_prompt, make_step_prompt
from stepflow.providers import ProviderGateway
from stepflow.state import ExecutionState
from stepflow.workflow_loader import load_workflow, parse_workflow


logger = logging.getLogger(__name__)

MAX_NESTING_DEPTH = 8


def _elapsed_ms(since: float) -> int:
    return int((time.perf_counter() - since) * 1000)


class WorkflowProcessor:
    """
    Runs a WorkflowPlan entry by entry in declaration order.

    Sequential steps share one ExecutionState. Members of a parallel group
    each get a snapshot of it, run as concurrent tasks, and their results are
    folded back in declared order. After every sequential step the defer
    table, if any, gets one chance to dispatch.
    """

    def __init__(
        self,
        plan: WorkflowPlan,
        gateway: ProviderGateway,
        *,
        memory: MemoryManager | None = None,
        settings: ProviderSettings | None = None,
        stdout: TextIO | None = None,
        http_client: httpx.AsyncClient | None = None,
        depth: int = 0,
    ) -> None:
        self.plan = plan
        self._gateway = gateway
        self._memory = memory if memory is not None else MemoryManager(None)
        self._settings = settings or ProviderSettings()
        self._stdout = stdout
        self._http_client = http_client
        self._depth = depth
        self.state = ExecutionState()

    @property
    def last_output(self) -> str:
        return self.state.last_output

    def set_last_output(self, value: str) -> None:
        self.state.set_last_output(value)

    @property
    def metrics(self) -> dict[str, PerformanceMetrics]:
        return self.state.metrics

    def validate(self) -> None:
        if not self.plan.entries:
            raise ConfigValidationError("workflow has no steps")
        DependencyResolver(self.plan).validate()

    async def process(self) -> str:
        self.validate()
        for entry in self.plan.entries:
            if isinstance(entry, ParallelGroup):
                await self._run_parallel_group(entry)
                continue
            await self.run_step(entry, self.state)
            if self.plan.defer:
                await DeferDispatcher(self.plan.defer).dispatch(self.state, self.run_step)
        return self.state.last_output

    async def run_step(self, step: Step, state: ExecutionState) -> str:
        logger.info("Processing step: %s", step.name)
        try:
            result = await self._execute(step, state)
        except (StepflowError, OSError) as exc:
            if not step.config.skip_errors:
                raise
            logger.warning("Step %s failed; continuing because skip_errors is set: %s", step.name, exc)
            result = ""
        state.set_last_output(result)
        return result

    async def _execute(self, step: Step, state: ExecutionState) -> str:
        kind = step.config.kind
        if kind == "standard":
            return await self._run_standard_step(step, state)

        started = time.perf_counter()
        if kind == "generate":
            result = await self._run_generate_step(step)
        else:
            result = await self._run_process_step(step, state)
        self._write_outputs(step, result)
        state.record_metrics(step.name, PerformanceMetrics(total_processing_ms=_elapsed_ms(started)))
        return result

    async def _run_parallel_group(self, group: ParallelGroup) -> None:
        logger.info("Running %d steps in parallel group %s", len(group.steps), group.key)
        snapshots = [self.state.snapshot() for _ in group.steps]
        calls = [partial(self.run_step, step, snapshot) for step, snapshot in zip(group.steps, snapshots)]
        results = await run_in_order(calls, self._settings.max_parallel)
        for snapshot in snapshots:
            self.state.merge_metrics(snapshot)
        self.state.set_last_output(self._settings.result_separator.join(result for result in results if result))

    async def _run_standard_step(self, step: Step, state: ExecutionState) -> str:
        metrics = PerformanceMetrics()
        started = time.perf_counter()
        async with AsyncExitStack() as stack:
            mark = time.perf_counter()
            inputs = await self._resolve_inputs(step, state, stack)
            memory_text = self._memory_context(step)
            metrics.input_processing_ms = _elapsed_ms(mark)

            mark = time.perf_counter()
            result = await self._run_models(step, inputs, memory_text)
            metrics.model_processing_ms = _elapsed_ms(mark)

            mark = time.perf_counter()
            result = await self._run_next_actions(step, result)
            metrics.action_processing_ms = _elapsed_ms(mark)

            mark = time.perf_counter()
            self._write_outputs(step, result)
            metrics.output_processing_ms = _elapsed_ms(mark)
        metrics.total_processing_ms = _elapsed_ms(started)
        state.record_metrics(step.name, metrics)
        logger.debug("Step %s timings: %s", step.name, metrics)
        return result

    async def _resolve_inputs(self, step: Step, state: ExecutionState, stack: AsyncExitStack) -> list[ProcessedInput]:
        config = step.config
        values = config.input or []
        if not values:
            last_output = state.last_output
            return [TextInput(last_output).load()] if last_output else []

        skip_bad_files = config.skip_errors and config.batch_mode == "individual"
        inputs: list[ProcessedInput] = []
        for value in values:
            if is_no_input(value):
                continue
            if value == STDIN:
                inputs.append(TextInput(state.last_output).load())
                continue
            try:
                if is_url(value):
                    inputs.append(await stack.enter_async_context(fetched_url(value, self._http_client)))
                elif is_glob(value):
                    paths = expand_pattern(resolve_path(value, self.plan.base_dir))
                    inputs.extend(FileInput(path).load() for path in paths)
                else:
                    inputs.append(FileInput(resolve_path(value, self.plan.base_dir)).load())
            except DependencyError as exc:
                if not skip_bad_files:
                    raise
                logger.warning("Skipping input %s for step %s: %s", value, step.name, exc)
        return inputs

    def _memory_context(self, step: Step) -> str:
        if not step.config.memory:
            return ""
        if not self._memory.has_memory:
            logger.warning("Step %s asks for memory but no memory file is configured", step.name)
            return ""
        return self._memory.read()

    async def _run_models(self, step: Step, inputs: list[ProcessedInput], memory_text: str) -> str:
        config = step.config
        action = "\n".join(item for item in config.action if item)
        options = PromptOptions.from_step_config(config)
        models = [model for model in config.model if model]
        results = [await self._run_action(step, model, action, inputs, memory_text, options) for model in models]
        if len(results) == 1:
            return results[0]
        return "\n\n".join(f"Response from {model}:\n{result}" for model, result in zip(models, results))

    async def _run_action(
        self,
        step: Step,
        model: str,
        action: str,
        inputs: list[ProcessedInput],
        memory_text: str,
        options: PromptOptions,
    ) -> str:
        config = step.config
        if config.batch_mode == "individual" and inputs:
            results: list[str] = []
            for item in inputs:
                try:
                    results.append(await self._prompt_one(step, model, action, item, memory_text, options))
                except StepflowError as exc:
                    if not config.skip_errors:
                        raise
                    logger.warning("Skipping input %s for step %s: %s", item.path, step.name, exc)
            return self._settings.result_separator.join(results)

        combined = _merge_inputs(inputs)
        if combined is not None and config.chunk is not None and needs_chunking(combined.text, config.chunk):
            return await self._run_chunked(step, model, action, combined, config.chunk, memory_text, options)
        prompt = make_step_prompt(action, inputs, memory=memory_text)
        return await self._gateway.send_prompt(model, prompt, options)

    async def _prompt_one(
        self,
        step: Step,
        model: str,
        action: str,
        item: ProcessedInput,
        memory_text: str,
        options: PromptOptions,
    ) -> str:
        chunk_config = step.config.chunk
        if chunk_config is not None and needs_chunking(item.text, chunk_config):
            return await self._run_chunked(step, model, action, item, chunk_config, memory_text, options)
        prompt = make_step_prompt(action, [], memory=memory_text)
        return await self._gateway.send_prompt_with_file(model, prompt, item, options)

    async def _run_chunked(
        self,
        step: Step,
        model: str,
        action: str,
        source: ProcessedInput,
        chunk_config: ChunkConfig,
        memory_text: str,
        options: PromptOptions,
    ) -> str:
        chunks = split_into_chunks(source.text, chunk_config)
        logger.info("Step %s: processing %s in %d chunks", step.name, source.path, chunks.total)
        calls = []
        for chunk in chunks:
            piece = source.model_copy(update={"text": chunk.text})
            prompt = make_step_prompt(action, [piece], memory=memory_text, chunk=chunk)
            calls.append(partial(self._gateway.send_prompt, model, prompt, options))
        results = await run_in_order(calls, self._settings.max_parallel)
        return combine_chunk_results(results, self._settings.result_separator)

    async def _run_next_actions(self, step: Step, result: str) -> str:
        follow_ups = [action for action in step.config.next_action if action]
        if not follow_ups:
            return result
        model = next(model for model in step.config.model if model)
        options = PromptOptions.from_step_config(step.config)
        for follow_up in follow_ups:
            prompt = make_step_prompt(follow_up, [TextInput(result, label=step.name).load()])
            result = await self._gateway.send_prompt(model, prompt, options)
        return result

    def _write_outputs(self, step: Step, result: str) -> None:
        for target in step.config.output:
            if not target:
                continue
            if target == STDOUT:
                self._print(result)
            elif is_memory_target(target):
                self._write_memory(step, target, result)
            else:
                path = resolve_path(target, self.plan.base_dir)
                write_output(path, result)
                logger.info("Step %s wrote %s", step.name, path)

    def _print(self, text: str) -> None:
        stream = self._stdout or sys.stdout
        stream.write(text.rstrip("\n") + "\n")
        stream.flush()

    def _write_memory(self, step: Step, target: str, result: str) -> None:
        section = memory_section(target)
        try:
            if section is None:
                self._memory.append(result)
            else:
                self._memory.write_section(section, result)
        except MemoryStoreError as exc:
            logger.warning("Memory not updated by step %s: %s", step.name, exc)

    async def _run_generate_step(self, step: Step) -> str:
        generate = step.config.generate
        if generate is None:
            raise ConfigValidationError(f"step {step.name!r} has no generate configuration")
        context = [FileInput(resolve_path(path, self.plan.base_dir)).load() for path in generate.context_files]
        prompt = make_generation_prompt(generate.action, context)
        reply = await self._gateway.send_prompt(generate.model[0], prompt, PromptOptions.from_step_config(step.config))
        document = extract_fenced_block(reply)
        # Refuse to write a workflow that would not load.
        parse_workflow(document)
        path = resolve_path(generate.output, self.plan.base_dir)
        write_output(path, document)
        logger.info("Step %s generated workflow %s", step.name, path)
        return document

    async def _run_process_step(self, step: Step, state: ExecutionState) -> str:
        process = step.config.process
        if process is None:
            raise ConfigValidationError(f"step {step.name!r} has no process configuration")
        if self._depth >= MAX_NESTING_DEPTH:
            raise ConfigValidationError(f"sub-workflows nested deeper than {MAX_NESTING_DEPTH} levels")
        sub_plan = load_workflow(resolve_path(process.workflow_file, self.plan.base_dir))
        child = WorkflowProcessor(
            sub_plan,
            self._gateway,
            memory=self._memory,
            settings=self._settings,
            stdout=self._stdout,
            http_client=self._http_client,
            depth=self._depth + 1,
        )
        child.set_last_output(process.input if process.input is not None else state.last_output)
        logger.info("Step %s running sub-workflow %s", step.name, process.workflow_file)
        result = await child.process()
        for name, metrics in child.metrics.items():
            state.record_metrics(f"{step.name}/{name}", metrics)
        return result


def _merge_inputs(inputs: list[ProcessedInput]) -> ProcessedInput | None:
    if not inputs:
        return None
    if len(inputs) == 1:
        return inputs[0]
    return ProcessedInput(
        path=", ".join(item.path for item in inputs),
        source="file",
        text="\n\n".join(item.text for item in inputs),
    )
