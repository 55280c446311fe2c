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

"""Retry policy for failed executions.

Classifies execution failures as retryable or non-retryable and keeps the
error memory that is sent back to the AI so it does not repeat a failed
approach.

A failure is retried while:
- the error matches none of the non-retryable sandbox patterns, and
- fewer than ``max_retries`` retries were spent on the current unit of work.

Retry state (counter and error memory) belongs to one unit of work. It is
reset on success, on exhaustion, on a non-retryable failure and when an
execution for a different roadmap step arrives.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import TYPE_CHECKING, Optional, Sequence

from creator.agent.messages import ErrorMemoryEntry, ExecutionResult
from creator.config.orchestrator_constants import LOOP_LIMITS, NON_RETRYABLE_PATTERNS

if TYPE_CHECKING:
    from creator.agent.loop_state import LoopState

logger = logging.getLogger(__name__)


class RetryDecision(Enum):
    """What to do with an execution result."""

    SUCCEEDED = "succeeded"
    """Nothing to retry."""

    RETRY = "retry"
    """Send the error back to the AI for another attempt."""

    EXHAUSTED = "exhausted"
    """Retry budget spent; move on."""

    NON_RETRYABLE = "non_retryable"
    """Sandbox policy rejection; retrying can never succeed."""


class RetryPolicy:
    """Decides whether a failed execution is retried and tracks error memory."""

    def __init__(
        self,
        max_retries: int = LOOP_LIMITS.max_retry_attempts,
        non_retryable_patterns: Sequence[str] = NON_RETRYABLE_PATTERNS,
        payload_chars: int = LOOP_LIMITS.error_payload_chars,
    ) -> None:
        """Initialize the policy.

        Args:
            max_retries: Retries allowed per unit of work
            non_retryable_patterns: Error substrings (case-insensitive) that
                are never retried
            payload_chars: Characters of the failed payload kept in memory
        """
        self.max_retries = max_retries
        self.non_retryable_patterns = tuple(non_retryable_patterns)
        self.payload_chars = payload_chars
        self._lowered = tuple(p.lower() for p in self.non_retryable_patterns)

    def match_non_retryable(self, error: Optional[str]) -> Optional[str]:
        """Return the non-retryable pattern found in ``error``, if any."""
        if not error:
            return None
        lowered = error.lower()
        for pattern, needle in zip(self.non_retryable_patterns, self._lowered):
            if needle in lowered:
                return pattern
        return None

    def decide(self, result: ExecutionResult, retry_count: int) -> RetryDecision:
        """Classify an execution result.

        Args:
            result: Result from the execution engine
            retry_count: Retries already spent on the current unit of work
        """
        if result.success:
            return RetryDecision.SUCCEEDED
        if self.match_non_retryable(result.error):
            return RetryDecision.NON_RETRYABLE
        if retry_count < self.max_retries:
            return RetryDecision.RETRY
        return RetryDecision.EXHAUSTED

    def should_retry(self, result: ExecutionResult, retry_count: int) -> bool:
        return self.decide(result, retry_count) is RetryDecision.RETRY

    def record_failure(
        self,
        state: "LoopState",
        result: ExecutionResult,
        payload: str,
        step_index: Optional[int] = None,
    ) -> ErrorMemoryEntry:
        """Spend one retry and remember the failed attempt."""
        state.retry_count += 1
        entry = ErrorMemoryEntry(
            attempt=state.retry_count,
            error=result.error or "Unknown error",
            truncated_payload=payload[: self.payload_chars],
            step_index=step_index,
        )
        state.error_memory.append(entry)
        logger.info(
            f"Retry {state.retry_count}/{self.max_retries}: "
            f"{entry.error[:120]}"
        )
        return entry

    def begin_unit(self, state: "LoopState", step_index: Optional[int] = None) -> None:
        """Reset retry state if an execution starts a different unit of work.

        A unit of work is one roadmap step (``step_index``) or, for
        executions outside a roadmap, the run of executions without one.
        """
        if state.error_memory and state.error_memory[-1].step_index != step_index:
            logger.debug(
                f"Unit of work changed ({state.error_memory[-1].step_index} -> {step_index})"
            )
            self.reset(state)

    def reset(self, state: "LoopState") -> None:
        """Close the current unit of work."""
        if state.retry_count or state.error_memory:
            logger.debug(
                f"Resetting retry state (count={state.retry_count}, "
                f"memory={len(state.error_memory)})"
            )
        state.retry_count = 0
        state.error_memory = []
