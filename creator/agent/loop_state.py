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

"""Mutable state of one orchestration run.

A LoopState is created per ``TaskOrchestrator.run`` call and never shared
between runs.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Union

from creator.agent.messages import (
    ChatTurn,
    ContinuationMessage,
    ErrorMemoryEntry,
    ExecutionResult,
    RoadmapStep,
    StepMessage,
    StepRecord,
)
from creator.config.settings import RoadmapPolicy


@dataclass
class LoopState:
    """Everything the loop carries from one iteration to the next.

    Attributes:
        current_message: User message, or the continuation for the next request
        history: Conversation turns, including synthetic step/continuation turns
        base_context: Caller-supplied context (never modified)
        accumulated: Values reported at checkpoints (first writer wins)
        iteration: AI requests made so far
        retry_count: Retries spent on the current unit of work
        error_memory: Failed attempts of the current unit of work
        documentation: Resolved documentation by plugin slug
        last_result: Most recent execution result
        steps: Trace of every step received
        pending_files: Attachments not yet sent (first request only)
        roadmap: Steps of the most recent roadmap
        roadmap_policy: What to do with a roadmap in this run
    """

    current_message: Union[str, ContinuationMessage]
    history: List[ChatTurn] = field(default_factory=list)
    base_context: Dict[str, Any] = field(default_factory=dict)
    accumulated: Dict[str, Any] = field(default_factory=dict)
    iteration: int = 0
    retry_count: int = 0
    error_memory: List[ErrorMemoryEntry] = field(default_factory=list)
    documentation: Dict[str, Any] = field(default_factory=dict)
    last_result: Optional[ExecutionResult] = None
    steps: List[StepRecord] = field(default_factory=list)
    pending_files: List[Dict[str, Any]] = field(default_factory=list)
    roadmap: List[RoadmapStep] = field(default_factory=list)
    roadmap_policy: RoadmapPolicy = RoadmapPolicy.CONFIRM

    @classmethod
    def start(
        cls,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        history: Optional[Sequence[Union[ChatTurn, Dict[str, Any]]]] = None,
        documentation: Optional[Dict[str, Any]] = None,
        files: Optional[List[Dict[str, Any]]] = None,
        roadmap_policy: RoadmapPolicy = RoadmapPolicy.CONFIRM,
    ) -> "LoopState":
        turns = [
            turn if isinstance(turn, ChatTurn) else ChatTurn.from_wire(turn)
            for turn in (history or [])
        ]
        return cls(
            current_message=message,
            history=turns,
            base_context=dict(context or {}),
            documentation=dict(documentation or {}),
            pending_files=list(files or []),
            roadmap_policy=roadmap_policy,
        )

    def render_current_message(self) -> str:
        """Text sent as the ``prompt`` of the next request."""
        if isinstance(self.current_message, ContinuationMessage):
            return self.current_message.to_prompt()
        return self.current_message

    def take_files(self) -> List[Dict[str, Any]]:
        """Hand out the attachments once."""
        files, self.pending_files = self.pending_files, []
        return files

    def record_step(self, step: StepMessage, display_message: str) -> StepRecord:
        record = StepRecord(
            iteration=self.iteration,
            type=step.type.value,
            step=step.step_phase,
            status=step.status,
            message=step.message,
            retry_count=self.retry_count,
            display_message=display_message,
        )
        self.steps.append(record)
        return record

    def append_exchange(self, step: StepMessage, continuation: ContinuationMessage) -> None:
        """Record the step and the orchestrator's answer, then queue the answer.

        The user's own message is added on the first exchange so the task
        stays visible to the AI once prompts turn into continuations.
        """
        if isinstance(self.current_message, str):
            self.history.append(ChatTurn(role="user", content=self.current_message))
        self.history.append(step.to_turn())
        self.history.append(continuation.to_turn())
        self.current_message = continuation


@dataclass
class LoopOutcome:
    """Terminal step plus the final state of the run."""

    message: StepMessage
    state: LoopState

    @property
    def iterations(self) -> int:
        return self.state.iteration
