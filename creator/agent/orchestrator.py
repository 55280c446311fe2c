# Copyright 2025 Creator Contributors
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""TaskOrchestrator - the multi-step AI task loop.

One ``run`` turns a user request into a terminal step message. Each
iteration:

1. Builds the effective context (base context, last result, accumulated
   checkpoint values)
2. Sends the current message, history, context and documentation to the
   AI backend
3. Decodes the reply into a step and records it in the step trace
4. Hands non-terminal steps to the StepDispatcher, which either answers
   with a continuation (loop again) or ends the run

The loop stops on a terminal step (``complete``, ``error``, ``question``,
``plan``), on a step that does not ask to continue, on a transport failure
or when ``max_loop_iterations`` is reached. Every returned message carries
the full step trace.

Usage:
    orchestrator = TaskOrchestrator(backend=proxy, executor=executor, docs_provider=proxy)
    final = await orchestrator.run("Create a landing page", context=site_context)
    for record in final.steps:
        print(record.iteration, record.display_message)
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Sequence, Union

from creator.agent.context_accumulator import ContextAccumulator
from creator.agent.debug_logger import DebugLogger
from creator.agent.dispatch import StepDispatcher
from creator.agent.history_compressor import HistoryCompressor
from creator.agent.loop_state import LoopOutcome, LoopState
from creator.agent.messages import BackendResponse, ChatTurn, StepMessage
from creator.agent.progress import ProgressEventType, build_progress_payload, describe_step, emit
from creator.agent.protocols import (
    AIBackendProtocol,
    DocumentationProviderProtocol,
    ExecutorProtocol,
    ProgressSinkProtocol,
)
from creator.agent.response_parser import ResponseParser
from creator.agent.retry_policy import RetryPolicy
from creator.config.orchestrator_constants import LOOP_LIMITS
from creator.config.settings import RoadmapPolicy, Settings
from creator.core.errors import CreatorError, LoopExhaustedError, MalformedContentError

logger = logging.getLogger(__name__)


class TaskOrchestrator:
    """Drives the AI backend through a multi-step task."""

    def __init__(
        self,
        backend: AIBackendProtocol,
        executor: Optional[ExecutorProtocol] = None,
        docs_provider: Optional[DocumentationProviderProtocol] = None,
        cli_executor: Optional[ExecutorProtocol] = None,
        max_loop_iterations: int = LOOP_LIMITS.max_loop_iterations,
        retry_policy: Optional[RetryPolicy] = None,
        compressor: Optional[HistoryCompressor] = None,
        roadmap_policy: RoadmapPolicy = RoadmapPolicy.CONFIRM,
        parser: Optional[ResponseParser] = None,
        debug_logger: Optional[DebugLogger] = None,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            backend: AI backend producing step messages
            executor: Execution engine for code payloads
            docs_provider: Documentation lookups for ``request_docs``
            cli_executor: Execution engine for ``wp_cli`` commands
            max_loop_iterations: AI requests allowed per run
            retry_policy: Retry rules for failed executions
            compressor: History compressor for ``compress_history``
            roadmap_policy: Default handling of roadmaps
            parser: Reply decoder
            debug_logger: One-line event logging
        """
        if max_loop_iterations < 1:
            raise ValueError(f"max_loop_iterations must be positive, got {max_loop_iterations}")

        self.backend = backend
        self.max_loop_iterations = max_loop_iterations
        self.roadmap_policy = roadmap_policy
        self.parser = parser or ResponseParser()
        self.accumulator = ContextAccumulator()
        self.debug_logger = debug_logger or DebugLogger()
        self.dispatcher = StepDispatcher(
            executor=executor,
            docs_provider=docs_provider,
            cli_executor=cli_executor,
            retry_policy=retry_policy or RetryPolicy(),
            accumulator=self.accumulator,
            compressor=compressor or HistoryCompressor(),
            debug_logger=self.debug_logger,
        )

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        backend: AIBackendProtocol,
        executor: Optional[ExecutorProtocol] = None,
        docs_provider: Optional[DocumentationProviderProtocol] = None,
        cli_executor: Optional[ExecutorProtocol] = None,
    ) -> "TaskOrchestrator":
        """Build an orchestrator with limits taken from settings."""
        return cls(
            backend=backend,
            executor=executor,
            docs_provider=docs_provider,
            cli_executor=cli_executor,
            max_loop_iterations=settings.max_loop_iterations,
            retry_policy=RetryPolicy(max_retries=settings.max_retry_attempts),
            compressor=HistoryCompressor(preserve_last_messages=settings.preserve_last_messages),
            roadmap_policy=settings.roadmap_policy,
        )

    async def run(
        self,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        history: Optional[Sequence[Union[ChatTurn, Dict[str, Any]]]] = None,
        documentation: Optional[Dict[str, Any]] = None,
        files: Optional[List[Dict[str, Any]]] = None,
        progress_sink: Optional[ProgressSinkProtocol] = None,
        roadmap_policy: Optional[RoadmapPolicy] = None,
    ) -> StepMessage:
        """Run the loop and return the terminal step with its trace."""
        outcome = await self.run_with_state(
            message,
            context=context,
            history=history,
            documentation=documentation,
            files=files,
            progress_sink=progress_sink,
            roadmap_policy=roadmap_policy,
        )
        return outcome.message

    async def run_with_state(
        self,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        history: Optional[Sequence[Union[ChatTurn, Dict[str, Any]]]] = None,
        documentation: Optional[Dict[str, Any]] = None,
        files: Optional[List[Dict[str, Any]]] = None,
        progress_sink: Optional[ProgressSinkProtocol] = None,
        roadmap_policy: Optional[RoadmapPolicy] = None,
    ) -> LoopOutcome:
        """Run the loop and return the terminal step plus the final loop state.

        Never raises: transport failures, configuration problems and
        unexpected exceptions all become a terminal error step.
        """
        state = LoopState.start(
            message,
            context=context,
            history=history,
            documentation=documentation,
            files=files,
            roadmap_policy=roadmap_policy or self.roadmap_policy,
        )
        self.debug_logger.start_run(message)

        try:
            final = await self._drive(state, progress_sink)
        except CreatorError as e:
            logger.error(f"Run failed: {e}")
            final = self._terminal_error(e.message, state, data={"error": e.to_dict()})
        except Exception as e:
            logger.exception(f"Unexpected error in orchestration loop: {e}")
            final = self._terminal_error(f"Internal error: {e}", state)

        self.debug_logger.end_run(final.type.value, final.message)
        return LoopOutcome(message=final, state=state)

    async def _drive(self, state: LoopState, progress_sink: Optional[ProgressSinkProtocol]) -> StepMessage:
        while state.iteration < self.max_loop_iterations:
            state.iteration += 1
            self.debug_logger.log_iteration_start(state.iteration)

            effective_context = self.accumulator.build(
                state.base_context, state.last_result, state.accumulated
            )
            response = await self._call_backend(state, effective_context)

            if not response.success:
                error = response.error or "Unknown error from AI service."
                logger.error(f"AI backend returned an error: {error}")
                return self._terminal_error(error, state)

            if not response.content.strip():
                return self._terminal_error("Empty response from AI service.", state)

            step = self._decode(response.content)
            display = describe_step(step)
            state.record_step(step, display)
            self.debug_logger.log_step(step.type.value, display)
            emit(progress_sink, ProgressEventType.PROGRESS.value, build_progress_payload(state.iteration, step))

            outcome = await self.dispatcher.dispatch(step, state, effective_context)
            if outcome.continuation is None:
                return self._finish(outcome.step, state)

            state.append_exchange(outcome.step, outcome.continuation)

        exhausted = LoopExhaustedError(state.iteration)
        logger.warning(f"{exhausted.message} ({state.iteration} iterations)")
        return self._terminal_error(exhausted.message, state, data={"error": exhausted.to_dict()})

    async def _call_backend(self, state: LoopState, context: Dict[str, Any]) -> BackendResponse:
        prompt = state.render_current_message()
        self.debug_logger.log_request(prompt, context.keys(), len(state.history))
        return await self.backend.send(
            prompt,
            context,
            list(state.history),
            documentation=dict(state.documentation) or None,
            files=state.take_files() or None,
        )

    def _decode(self, content: str) -> StepMessage:
        try:
            return self.parser.parse(content)
        except MalformedContentError as e:
            logger.warning(f"{e.message}; returning the reply as plain text")
            return self.parser.degrade(content)

    @staticmethod
    def _finish(step: StepMessage, state: LoopState) -> StepMessage:
        step.steps = list(state.steps)
        return step

    @staticmethod
    def _terminal_error(
        message: str, state: LoopState, data: Optional[Dict[str, Any]] = None
    ) -> StepMessage:
        return StepMessage.error(message, data=data, steps=state.steps)
