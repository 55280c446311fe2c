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

"""StepDispatcher - handles one non-terminal step per loop iteration.

Every step type has exactly one handler; the table is checked for
completeness when the dispatcher is built. A handler performs the step's
side effects (documentation lookups, executions, history compression,
checkpoint merges) and decides how the loop goes on:

- ``DispatchOutcome.continuation`` set: send it back to the AI and iterate
- ``continuation`` is None: the run ends with ``DispatchOutcome.step``

Execution failures go through the RetryPolicy. A retry answers the AI with
the error and the error memory of the current unit of work; a sandbox
rejection ends the run; an exhausted retry budget moves on as if the step
had completed, with the failure as the last result.

Example:
    dispatcher = StepDispatcher(executor=executor, docs_provider=proxy)
    outcome = await dispatcher.dispatch(step, state, effective_context)
    if outcome.continuation is None:
        return outcome.step
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

from creator.agent.context_accumulator import ContextAccumulator
from creator.agent.debug_logger import DebugLogger
from creator.agent.history_compressor import HistoryCompressor
from creator.agent.loop_state import LoopState
from creator.agent.messages import (
    Checkpoint,
    ContinuationMessage,
    ExecutionResult,
    RoadmapStep,
    StepMessage,
    StepType,
)
from creator.agent.protocols import DocumentationProviderProtocol, ExecutorProtocol
from creator.agent.retry_policy import RetryDecision, RetryPolicy
from creator.config.orchestrator_constants import CLI_UNAVAILABLE_PATTERN
from creator.config.settings import RoadmapPolicy
from creator.core.errors import ConfigurationError, SecurityViolationError

logger = logging.getLogger(__name__)

Handler = Callable[[StepMessage, LoopState, Dict[str, Any]], Awaitable["DispatchOutcome"]]


@dataclass
class DispatchOutcome:
    """What the loop does after a step was handled."""

    step: StepMessage
    continuation: Optional[ContinuationMessage] = None

    @property
    def ends_run(self) -> bool:
        return self.continuation is None


@dataclass(frozen=True)
class _ExecutionKind:
    """Per-type wording of execution continuations."""

    payload_key: str
    missing_message: str
    success_type: str
    failure_type: str
    label: str


_EXECUTION_KINDS: Dict[StepType, _ExecutionKind] = {
    StepType.EXECUTE: _ExecutionKind(
        "code", "No code provided for execution.", "execution_result", "execution_failed", "code"
    ),
    StepType.EXECUTE_STEP: _ExecutionKind(
        "code", "No code provided for execution.", "step_execution_result", "step_execution_failed", "step"
    ),
    StepType.WP_CLI: _ExecutionKind(
        "command", "No command provided for execution.", "wp_cli_result", "wp_cli_failed", "WP-CLI command"
    ),
}


class StepDispatcher:
    """Maps each step type to its handler."""

    def __init__(
        self,
        executor: Optional[ExecutorProtocol] = None,
        docs_provider: Optional[DocumentationProviderProtocol] = None,
        cli_executor: Optional[ExecutorProtocol] = None,
        retry_policy: Optional[RetryPolicy] = None,
        accumulator: Optional[ContextAccumulator] = None,
        compressor: Optional[HistoryCompressor] = None,
        debug_logger: Optional[DebugLogger] = None,
    ) -> None:
        """Initialize the dispatcher.

        Args:
            executor: Runs ``execute``/``execute_step``/``verify`` payloads
            docs_provider: Resolves ``request_docs`` identifiers
            cli_executor: Runs ``wp_cli`` commands (defaults to ``executor``)
            retry_policy: Retry rules for failed executions
            accumulator: Merges checkpoint values
            compressor: Compresses history on request
            debug_logger: One-line event logging
        """
        self.executor = executor
        self.docs_provider = docs_provider
        self.cli_executor = cli_executor
        self.retry_policy = retry_policy or RetryPolicy()
        self.accumulator = accumulator or ContextAccumulator()
        self.compressor = compressor or HistoryCompressor()
        self.debug_logger = debug_logger or DebugLogger(enabled=False)

        self._handlers: Dict[StepType, Handler] = {
            StepType.REQUEST_DOCS: self._handle_request_docs,
            StepType.ROADMAP: self._handle_roadmap,
            StepType.EXECUTE: self._handle_execution,
            StepType.EXECUTE_STEP: self._handle_execution,
            StepType.WP_CLI: self._handle_execution,
            StepType.CHECKPOINT: self._handle_checkpoint,
            StepType.VERIFY: self._handle_verify,
            StepType.COMPRESS_HISTORY: self._handle_compress_history,
            StepType.COMPLETE: self._handle_terminal,
            StepType.ERROR: self._handle_terminal,
            StepType.QUESTION: self._handle_terminal,
            StepType.PLAN: self._handle_terminal,
        }
        missing = set(StepType) - set(self._handlers)
        if missing:
            raise ValueError(f"No handler for step types: {sorted(t.value for t in missing)}")

    async def dispatch(
        self, step: StepMessage, state: LoopState, effective_context: Dict[str, Any]
    ) -> DispatchOutcome:
        """Handle ``step`` and decide whether the loop continues."""
        outcome = await self._handlers[step.type](step, state, effective_context)
        if outcome.continuation is not None:
            self.debug_logger.log_continuation(outcome.continuation.type)
        return outcome

    # ========================================================================
    # Terminal and default handling
    # ========================================================================

    async def _handle_terminal(
        self, step: StepMessage, state: LoopState, context: Dict[str, Any]
    ) -> DispatchOutcome:
        return DispatchOutcome(step)

    def _default_continuation(self, step: StepMessage, state: LoopState) -> DispatchOutcome:
        if not step.continue_automatically:
            return DispatchOutcome(step)
        payload: Dict[str, Any] = {}
        if state.last_result is not None:
            payload["result"] = state.last_result.to_payload()
        return DispatchOutcome(
            step,
            ContinuationMessage(
                type="execution_result",
                instruction="Continue with the task.",
                payload=payload,
            ),
        )

    # ========================================================================
    # Documentation
    # ========================================================================

    async def _handle_request_docs(
        self, step: StepMessage, state: LoopState, context: Dict[str, Any]
    ) -> DispatchOutcome:
        resolved: Dict[str, Any] = {}
        for identifier in step.data.get("plugins_needed") or []:
            slug, version, name = _normalize_identifier(identifier)
            if not slug:
                continue
            if slug in state.documentation:
                logger.debug(f"Documentation for '{slug}' already resolved")
                resolved[slug] = state.documentation[slug]
                continue
            docs = await self._fetch_docs(slug, version, name)
            if docs:
                state.documentation[slug] = docs
                resolved[slug] = docs

        step.documentation = resolved
        task = step.data.get("task") or step.data.get("reason") or ""
        return DispatchOutcome(
            step,
            ContinuationMessage(
                type="documentation_provided",
                instruction=(
                    "Documentation has been loaded. Use it to continue with the task."
                    if resolved
                    else "No documentation could be found. Continue with the task using what you know."
                ),
                payload={"docs": list(resolved.keys()), "task": task},
            ),
        )

    async def _fetch_docs(
        self, slug: str, version: Optional[str], name: Optional[str]
    ) -> Optional[Dict[str, Any]]:
        if self.docs_provider is None:
            logger.warning(f"No documentation provider configured, skipping '{slug}'")
            return None
        try:
            return await self.docs_provider.get_docs(slug, version, name)
        except Exception as e:
            logger.warning(f"Documentation lookup for '{slug}' failed: {e}")
            return None

    # ========================================================================
    # Roadmaps and checkpoints
    # ========================================================================

    async def _handle_roadmap(
        self, step: StepMessage, state: LoopState, context: Dict[str, Any]
    ) -> DispatchOutcome:
        state.roadmap = _parse_roadmap(step.data.get("roadmap") or step.data.get("steps") or [])

        if state.roadmap_policy is RoadmapPolicy.CONFIRM:
            step.requires_confirmation = True
            return DispatchOutcome(step)

        if not state.roadmap:
            return self._default_continuation(step, state)

        total = len(state.roadmap)
        return DispatchOutcome(
            step,
            ContinuationMessage(
                type="execute_roadmap",
                instruction=f"Now execute step 1 of {total}. Generate the code for this step only.",
                payload={
                    "step_index": 1,
                    "total_steps": total,
                    "current_step": state.roadmap[0].model_dump(),
                    "full_roadmap": [s.model_dump() for s in state.roadmap],
                },
            ),
        )

    async def _handle_checkpoint(
        self, step: StepMessage, state: LoopState, context: Dict[str, Any]
    ) -> DispatchOutcome:
        checkpoint = Checkpoint.model_validate(step.data)
        added = self.accumulator.merge(state.accumulated, checkpoint.accumulated_context)
        if added:
            logger.debug(f"Checkpoint added context keys: {added}")

        if checkpoint.has_next_step:
            next_index = int(checkpoint.next_step or 0)
            current = checkpoint.next_step_data or self._roadmap_entry(state, next_index)
            return DispatchOutcome(
                step,
                ContinuationMessage(
                    type="execute_roadmap",
                    instruction=(
                        f"Step {checkpoint.completed_step} completed. "
                        f"Now execute step {next_index} of {checkpoint.total_steps}."
                    ),
                    payload={
                        "step_index": next_index,
                        "total_steps": checkpoint.total_steps,
                        "current_step": current,
                        "accumulated_context": dict(state.accumulated),
                    },
                ),
            )

        if not step.continue_automatically:
            return DispatchOutcome(step)
        return DispatchOutcome(
            step,
            ContinuationMessage(
                type="checkpoint_confirmed",
                instruction="Checkpoint confirmed. Continue with the task.",
                payload={
                    "completed_step": checkpoint.completed_step,
                    "total_steps": checkpoint.total_steps,
                    "accumulated_context": dict(state.accumulated),
                },
            ),
        )

    @staticmethod
    def _roadmap_entry(state: LoopState, index: int) -> Dict[str, Any]:
        for entry in state.roadmap:
            if entry.index == index:
                return entry.model_dump()
        return {}

    # ========================================================================
    # Execution
    # ========================================================================

    async def _handle_execution(
        self, step: StepMessage, state: LoopState, context: Dict[str, Any]
    ) -> DispatchOutcome:
        kind = _EXECUTION_KINDS[step.type]
        payload = step.data.get(kind.payload_key) or ""
        if not isinstance(payload, str) or not payload.strip():
            return DispatchOutcome(
                StepMessage.error(kind.missing_message, data={"ai_response": step.to_payload(False)})
            )

        executor = self.cli_executor if step.type is StepType.WP_CLI and self.cli_executor else self.executor
        result = await self._execute(executor, payload, context, step.type.value)
        step.execution_result = result

        if not result.success and step.type is StepType.WP_CLI and _cli_unavailable(result.error):
            self.retry_policy.reset(state)
            state.last_result = result
            return DispatchOutcome(
                step,
                ContinuationMessage(
                    type="wp_cli_not_available",
                    instruction=(
                        "WP-CLI is not available on this site. Do not use wp_cli again; "
                        "achieve the same result with an execute step instead."
                    ),
                    payload={"command": payload, "error": result.error},
                ),
            )

        step_index = _step_index(step.data)
        self.retry_policy.begin_unit(state, step_index)
        decision = self.retry_policy.decide(result, state.retry_count)

        if decision is RetryDecision.NON_RETRYABLE:
            pattern = self.retry_policy.match_non_retryable(result.error)
            logger.warning(f"Execution blocked by sandbox policy ({pattern}), not retrying")
            self.retry_policy.reset(state)
            state.last_result = result
            violation = SecurityViolationError(
                f"Execution blocked by sandbox security policy: {result.error}",
                payload=payload,
                pattern=pattern,
            )
            return DispatchOutcome(
                StepMessage.error(
                    violation.message,
                    data={
                        "error": violation.to_dict(),
                        "execution_result": result.to_payload(),
                        "recoverable": False,
                    },
                )
            )

        if decision is RetryDecision.RETRY:
            self.retry_policy.record_failure(state, result, payload, step_index)
            self.debug_logger.log_retry(state.retry_count, self.retry_policy.max_retries)
            return DispatchOutcome(step, self._retry_continuation(step, kind, state, result, payload))

        exhausted = decision is RetryDecision.EXHAUSTED
        if exhausted:
            logger.warning(
                f"Retries exhausted after {state.retry_count} attempts, moving on"
            )
        self.retry_policy.reset(state)
        state.last_result = result

        if not step.continue_automatically:
            return DispatchOutcome(step)
        return DispatchOutcome(step, self._result_continuation(step, kind, result, payload, exhausted))

    async def _execute(
        self,
        executor: Optional[ExecutorProtocol],
        payload: str,
        context: Dict[str, Any],
        label: str,
    ) -> ExecutionResult:
        if executor is None:
            raise ConfigurationError(
                "No execution engine configured", config_key="executor_url"
            )
        started = time.monotonic()
        result = await executor.execute(payload, context)
        elapsed_ms = (time.monotonic() - started) * 1000
        self.debug_logger.log_execution(label, result.success, elapsed_ms, result.error)
        return result

    def _retry_continuation(
        self,
        step: StepMessage,
        kind: _ExecutionKind,
        state: LoopState,
        result: ExecutionResult,
        payload: str,
    ) -> ContinuationMessage:
        body: Dict[str, Any] = {
            "error": result.error or "Unknown error",
            "output": result.output or "",
            "retry_count": state.retry_count,
            "max_retries": self.retry_policy.max_retries,
            "error_memory": [entry.to_payload() for entry in state.error_memory],
        }
        if step.type is StepType.EXECUTE_STEP:
            body["step_index"] = step.data.get("step_index")
            body["total_steps"] = step.data.get("total_steps")
            body["step_title"] = step.data.get("step_title") or step.data.get("title")
        elif step.type is StepType.WP_CLI:
            body["command"] = payload

        return ContinuationMessage(
            type=kind.failure_type,
            instruction=(
                f"The {kind.label} failed (attempt {state.retry_count} of "
                f"{self.retry_policy.max_retries}). Review error_memory to see every failed "
                "attempt so far. DO NOT repeat any of those approaches. "
                f"Try a DIFFERENT approach and send a corrected {step.type.value} step."
            ),
            payload=body,
        )

    def _result_continuation(
        self,
        step: StepMessage,
        kind: _ExecutionKind,
        result: ExecutionResult,
        payload: str,
        exhausted: bool,
    ) -> ContinuationMessage:
        body: Dict[str, Any] = {"execution_result": result.to_payload()}
        if step.type is StepType.EXECUTE_STEP:
            index = step.data.get("step_index")
            body["step_index"] = index
            body["total_steps"] = step.data.get("total_steps")
            instruction = (
                f"Step {index} executed. Send a checkpoint with the accumulated context, "
                "then continue with the next step."
            )
        elif step.type is StepType.WP_CLI:
            body["command"] = payload
            instruction = "WP-CLI command finished. Continue with the task."
        else:
            instruction = "Code executed. Verify the result or respond to the user."

        if exhausted:
            body["retry_exhausted"] = True
            instruction = f"Retries exhausted for this {kind.label}. " + instruction
        return ContinuationMessage(type=kind.success_type, instruction=instruction, payload=body)

    # ========================================================================
    # Verification and compression
    # ========================================================================

    async def _handle_verify(
        self, step: StepMessage, state: LoopState, context: Dict[str, Any]
    ) -> DispatchOutcome:
        passed = bool(step.data.get("passed", True))
        issues: List[Any] = list(step.data.get("issues") or [])

        code = step.data.get("code")
        if isinstance(code, str) and code.strip():
            result = await self._execute(self.executor, code, context, "verify")
            step.verification_result = result
            state.last_result = result
            if not result.success:
                passed = False
                if result.error:
                    issues.append(result.error)

        if not step.continue_automatically:
            return DispatchOutcome(step)

        if passed:
            continuation = ContinuationMessage(
                type="verification_passed",
                instruction="Verification passed. Report the outcome to the user.",
            )
        else:
            continuation = ContinuationMessage(
                type="verification_failed",
                instruction="Verification failed. Fix the issues listed and verify again.",
                payload={"issues": issues},
            )
        return DispatchOutcome(step, continuation)

    async def _handle_compress_history(
        self, step: StepMessage, state: LoopState, context: Dict[str, Any]
    ) -> DispatchOutcome:
        preserve = step.data.get("preserve_last_messages")
        state.history = self.compressor.compress(
            state.history,
            summary=str(step.data.get("summary") or ""),
            key_facts=step.data.get("key_facts") or [],
            preserve_last_n=_optional_int(preserve),
        )
        if not step.continue_automatically:
            return DispatchOutcome(step)
        return DispatchOutcome(
            step,
            ContinuationMessage(
                type="history_compressed",
                instruction="Conversation history has been compressed. Continue with the current task.",
                payload={"history_length": len(state.history)},
            ),
        )


def _normalize_identifier(identifier: Any) -> Tuple[str, Optional[str], Optional[str]]:
    """Return ``(slug, version, name)`` for a documentation identifier."""
    if isinstance(identifier, dict):
        slug = str(identifier.get("slug") or identifier.get("name") or "")
        version = identifier.get("version")
        name = identifier.get("name")
        return slug, str(version) if version else None, str(name) if name else None
    return str(identifier or ""), None, None


def _parse_roadmap(entries: List[Any]) -> List[RoadmapStep]:
    steps = []
    if not isinstance(entries, list):
        return steps
    for position, entry in enumerate(entries, start=1):
        if isinstance(entry, dict):
            steps.append(
                RoadmapStep(
                    index=_optional_int(entry.get("index") or entry.get("step")) or position,
                    title=str(entry.get("title") or ""),
                    description=str(entry.get("description") or ""),
                    atomic=bool(entry.get("atomic", True)),
                )
            )
        else:
            steps.append(RoadmapStep(index=position, title=str(entry)))
    return steps


def _optional_int(value: Any) -> Optional[int]:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _step_index(data: Dict[str, Any]) -> Optional[int]:
    return _optional_int(data.get("step_index"))


def _cli_unavailable(error: Optional[str]) -> bool:
    return bool(error) and CLI_UNAVAILABLE_PATTERN in (error or "").lower()
