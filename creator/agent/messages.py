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

"""Step message protocol.

Every reply of the AI backend is decoded into a ``StepMessage`` whose
``type`` belongs to the closed ``StepType`` set. The orchestrator answers
with ``ContinuationMessage`` instructions. Both travel through the
conversation history as ``ChatTurn`` objects that keep the structured
payload (``control``) apart from the human-readable text (``content``);
only the wire adapter flattens the two.

Wire format of a step (as produced by the AI backend)::

    {
        "type": "execute_step",
        "step": "implementation",
        "status": "Creating page",
        "message": "Creating the landing page",
        "data": {"code": "...", "step_index": 1, "total_steps": 3},
        "requires_confirmation": false,
        "continue_automatically": true
    }
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, FrozenSet, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class StepType(str, Enum):
    """Closed set of step message types."""

    REQUEST_DOCS = "request_docs"
    ROADMAP = "roadmap"
    EXECUTE = "execute"
    EXECUTE_STEP = "execute_step"
    CHECKPOINT = "checkpoint"
    VERIFY = "verify"
    WP_CLI = "wp_cli"
    COMPRESS_HISTORY = "compress_history"
    COMPLETE = "complete"
    ERROR = "error"
    QUESTION = "question"
    PLAN = "plan"

    @property
    def is_terminal(self) -> bool:
        """Whether this type ends the loop unconditionally."""
        return self in TERMINAL_TYPES

    @property
    def is_execution(self) -> bool:
        """Whether this type carries a payload for the execution engine."""
        return self in EXECUTION_TYPES


TERMINAL_TYPES: FrozenSet[StepType] = frozenset(
    {StepType.COMPLETE, StepType.ERROR, StepType.QUESTION, StepType.PLAN}
)

EXECUTION_TYPES: FrozenSet[StepType] = frozenset(
    {StepType.EXECUTE, StepType.EXECUTE_STEP, StepType.WP_CLI}
)


class ExecutionResult(BaseModel):
    """Outcome of running one payload through the execution engine."""

    model_config = ConfigDict(extra="ignore")

    success: bool = False
    output: Optional[str] = None
    error: Optional[str] = None
    result: Optional[Any] = None

    @property
    def result_fields(self) -> Dict[str, Any]:
        """Structured result values, if the engine returned a mapping."""
        if isinstance(self.result, dict):
            return self.result
        return {}

    def to_payload(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", exclude_none=True)


class RoadmapStep(BaseModel):
    """One atomic step of a roadmap."""

    model_config = ConfigDict(extra="ignore")

    index: int
    title: str = ""
    description: str = ""
    atomic: bool = True


class Checkpoint(BaseModel):
    """Progress report between roadmap steps."""

    model_config = ConfigDict(extra="ignore")

    completed_step: int = 0
    total_steps: int = 0
    next_step: Optional[int] = None
    next_step_data: Dict[str, Any] = Field(default_factory=dict)
    accumulated_context: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("next_step_data", "accumulated_context", mode="before")
    @classmethod
    def mapping_or_empty(cls, v: Any) -> Dict[str, Any]:
        # null and empty lists arrive from loosely typed backends
        return v if isinstance(v, dict) else {}

    @field_validator("completed_step", "total_steps", mode="before")
    @classmethod
    def count_or_zero(cls, v: Any) -> int:
        try:
            return int(v)
        except (TypeError, ValueError):
            return 0

    @field_validator("next_step", mode="before")
    @classmethod
    def index_or_none(cls, v: Any) -> Optional[int]:
        try:
            return int(v)
        except (TypeError, ValueError):
            return None

    @property
    def has_next_step(self) -> bool:
        return bool(self.next_step) and self.completed_step < self.total_steps


class ErrorMemoryEntry(BaseModel):
    """One failed attempt of the current unit of work."""

    attempt: int
    error: str
    truncated_payload: str = ""
    step_index: Optional[int] = None

    def to_payload(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", exclude_none=True)


class StepRecord(BaseModel):
    """Entry of the step trace attached to every terminal message."""

    iteration: int
    type: str
    step: str = ""
    status: str = ""
    message: str = ""
    retry_count: int = 0
    timestamp: str = Field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
    display_message: str = ""


class ChatTurn(BaseModel):
    """A conversation turn.

    ``content`` is the human-readable text. ``control`` holds the structured
    payload of synthetic turns (serialized steps and continuation
    instructions) and is ``None`` for ordinary chat turns.
    """

    role: str
    content: str = ""
    control: Optional[Dict[str, Any]] = None

    @property
    def is_synthetic(self) -> bool:
        return self.control is not None

    def to_wire(self) -> Dict[str, str]:
        """Flatten to the ``{role, content}`` shape the backend expects."""
        if self.control is not None:
            return {"role": self.role, "content": json.dumps(self.control, ensure_ascii=False)}
        return {"role": self.role, "content": self.content}

    @classmethod
    def from_wire(cls, turn: Dict[str, Any]) -> "ChatTurn":
        return cls(role=str(turn.get("role", "user")), content=str(turn.get("content", "")))

    @classmethod
    def from_stored(cls, role: str, content: str) -> "ChatTurn":
        """Rebuild a stored turn, recovering the control payload of step replies."""
        if role == "assistant" and content.startswith("{"):
            try:
                payload = json.loads(content)
            except ValueError:
                payload = None
            if isinstance(payload, dict) and "type" in payload:
                return cls(role=role, content=str(payload.get("message", "")), control=payload)
        return cls(role=role, content=content)


class ContinuationMessage(BaseModel):
    """Machine-readable instruction sent back to the AI backend."""

    type: str
    instruction: str
    payload: Dict[str, Any] = Field(default_factory=dict)

    def to_control(self) -> Dict[str, Any]:
        return {"type": self.type, **self.payload, "instruction": self.instruction}

    def to_prompt(self) -> str:
        return json.dumps(self.to_control(), ensure_ascii=False, default=str)

    def to_turn(self) -> ChatTurn:
        return ChatTurn(role="user", content=self.instruction, control=self.to_control())


class StepMessage(BaseModel):
    """A typed unit of work produced by the AI backend."""

    model_config = ConfigDict(populate_by_name=True)

    type: StepType
    step_phase: str = Field(default="", alias="step")
    status: str = ""
    message: str = ""
    data: Dict[str, Any] = Field(default_factory=dict)
    requires_confirmation: bool = False
    continue_automatically: bool = False

    # Attachments filled in while the step is handled
    execution_result: Optional[ExecutionResult] = None
    verification_result: Optional[ExecutionResult] = None
    documentation: Optional[Dict[str, Any]] = None
    steps: List[StepRecord] = Field(default_factory=list)

    @property
    def is_terminal(self) -> bool:
        return self.type.is_terminal

    def to_payload(self, include_steps: bool = True) -> Dict[str, Any]:
        """Serialize with wire keys (``step`` instead of ``step_phase``)."""
        exclude = None if include_steps else {"steps"}
        return self.model_dump(mode="json", by_alias=True, exclude_none=True, exclude=exclude)

    def to_turn(self) -> ChatTurn:
        """Assistant turn carrying this step as its control payload."""
        return ChatTurn(
            role="assistant",
            content=self.message or self.status,
            control=self.to_payload(include_steps=False),
        )

    @classmethod
    def error(
        cls,
        message: str,
        data: Optional[Dict[str, Any]] = None,
        steps: Optional[List[StepRecord]] = None,
    ) -> "StepMessage":
        """Standard terminal error step."""
        return cls(
            type=StepType.ERROR,
            step_phase="implementation",
            status="Error",
            message=message,
            data=data or {},
            requires_confirmation=False,
            continue_automatically=False,
            steps=list(steps or []),
        )


class BackendResponse(BaseModel):
    """Transport envelope returned by the AI backend."""

    model_config = ConfigDict(extra="ignore")

    success: bool = False
    content: str = ""
    error: Optional[str] = None
    provider: Optional[str] = None
    model: Optional[str] = None
