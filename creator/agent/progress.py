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

"""Progress events for streaming callers.

The orchestrator reports every iteration to an optional progress sink. Each
event carries the step type, a coarse phase and a one-line description fit
for a status bar:

    sink.push("progress", {
        "iteration": 3,
        "type": "execute_step",
        "phase": "execution",
        "display_message": "Executing step 2/5: Create menu",
        "detailed_message": "Creating the primary menu",
        "step_data": {...},
    })

Sinks are fire-and-forget: a failing sink is logged and otherwise ignored.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Callable, Dict, List

from creator.agent.messages import StepMessage, StepType

logger = logging.getLogger(__name__)


class ProgressEventType(str, Enum):
    """Event names delivered to progress sinks."""

    CONNECTED = "connected"
    """Streaming session opened."""

    PROGRESS = "progress"
    """One loop iteration produced a step."""

    COMPLETE = "complete"
    """Run finished with a terminal step."""

    ERROR = "error"
    """Run failed outside the loop (e.g. persistence)."""


class Phase(str, Enum):
    """Coarse phase shown to users."""

    DISCOVERY = "discovery"
    PLANNING = "planning"
    EXECUTION = "execution"
    VERIFICATION = "verification"
    ANALYSIS = "analysis"
    COMPLETE = "complete"
    ERROR = "error"
    PROCESSING = "processing"


PHASE_BY_TYPE: Dict[str, Phase] = {
    StepType.REQUEST_DOCS.value: Phase.DISCOVERY,
    StepType.ROADMAP.value: Phase.PLANNING,
    StepType.PLAN.value: Phase.PLANNING,
    StepType.EXECUTE_STEP.value: Phase.EXECUTION,
    StepType.EXECUTE.value: Phase.EXECUTION,
    StepType.CHECKPOINT.value: Phase.EXECUTION,
    StepType.WP_CLI.value: Phase.EXECUTION,
    StepType.VERIFY.value: Phase.VERIFICATION,
    StepType.COMPRESS_HISTORY.value: Phase.ANALYSIS,
    StepType.QUESTION.value: Phase.ANALYSIS,
    StepType.COMPLETE.value: Phase.COMPLETE,
    StepType.ERROR.value: Phase.ERROR,
}

_FIXED_DESCRIPTIONS: Dict[StepType, str] = {
    StepType.EXECUTE: "Executing code...",
    StepType.VERIFY: "Verifying changes...",
    StepType.COMPRESS_HISTORY: "Optimizing conversation history...",
    StepType.QUESTION: "Preparing clarification question...",
    StepType.PLAN: "Creating action plan...",
    StepType.COMPLETE: "Task completed",
    StepType.ERROR: "Error encountered",
}


def phase_for_type(step_type: str) -> Phase:
    """Map a step type (or any string) to its phase."""
    return PHASE_BY_TYPE.get(str(getattr(step_type, "value", step_type)), Phase.PROCESSING)


def describe_step(step: StepMessage) -> str:
    """One-line, human-friendly description of a step."""
    data = step.data

    if step.type is StepType.REQUEST_DOCS:
        names = [_plugin_name(p) for p in data.get("plugins_needed") or []]
        names = [n for n in names if n]
        if names:
            return f"Researching documentation for: {', '.join(names)}"
        return "Researching plugin documentation..."

    if step.type is StepType.ROADMAP:
        roadmap = data.get("roadmap") or data.get("steps") or []
        count = len(roadmap) if isinstance(roadmap, list) else 0
        return f"Created roadmap with {count} steps"

    if step.type is StepType.EXECUTE_STEP:
        index = data.get("step_index", 0)
        total = data.get("total_steps", 0)
        title = data.get("step_title") or data.get("title")
        if title:
            return f"Executing step {index}/{total}: {title}"
        return f"Executing step {index} of {total}"

    if step.type is StepType.CHECKPOINT:
        completed = _as_int(data.get("completed_step"))
        total = _as_int(data.get("total_steps"))
        percent = round(completed / total * 100) if total > 0 else 0
        return f"Progress: {percent}% ({completed}/{total} steps completed)"

    if step.type is StepType.WP_CLI:
        return f"Running WP-CLI: {data.get('command', '')}".rstrip()

    if step.type in _FIXED_DESCRIPTIONS:
        return _FIXED_DESCRIPTIONS[step.type]

    return step.status or f"Processing: {step.type.value}"


def build_progress_payload(iteration: int, step: StepMessage) -> Dict[str, Any]:
    return {
        "iteration": iteration,
        "type": step.type.value,
        "phase": phase_for_type(step.type).value,
        "display_message": describe_step(step),
        "detailed_message": step.message,
        "step_data": step.data,
    }


def emit(sink: Any, event_name: str, payload: Dict[str, Any]) -> None:
    """Deliver an event to ``sink``; sink failures never reach the caller."""
    if sink is None:
        return
    try:
        sink.push(event_name, payload)
    except Exception as e:
        logger.warning(f"Progress sink failed on '{event_name}': {e}")


def _as_int(value: Any) -> int:
    try:
        return int(value or 0)
    except (TypeError, ValueError):
        return 0


def _plugin_name(plugin: Any) -> str:
    if isinstance(plugin, dict):
        return str(plugin.get("name") or plugin.get("slug") or "")
    return str(plugin or "")


class NullProgressSink:
    """Sink that drops every event."""

    def push(self, event_name: str, payload: Dict[str, Any]) -> None:
        pass


class CallbackProgressSink:
    """Adapts a plain callable ``(event_name, payload)`` to the sink protocol."""

    def __init__(self, callback: Callable[[str, Dict[str, Any]], Any]) -> None:
        self._callback = callback

    def push(self, event_name: str, payload: Dict[str, Any]) -> None:
        self._callback(event_name, payload)


class RecordingProgressSink:
    """Keeps every event in memory, in delivery order."""

    def __init__(self) -> None:
        self.events: List[Dict[str, Any]] = []

    def push(self, event_name: str, payload: Dict[str, Any]) -> None:
        self.events.append({"event": event_name, **payload})

    def of_type(self, event_name: str) -> List[Dict[str, Any]]:
        return [e for e in self.events if e["event"] == event_name]
