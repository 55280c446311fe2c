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

"""Decoding of AI replies into step messages.

Handles the formats the AI backend actually produces:
- A bare JSON object
- A JSON object inside a fenced ```json block, surrounded by prose
- Plain prose (not a step at all)

JSON replies are normalized per type: missing phase, status and flags are
filled with type-specific defaults. Prose is not an error; ``degrade`` turns
it into a terminal ``complete`` step carrying the text without code fences.
"""

import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, Optional

from creator.agent.messages import StepMessage, StepType
from creator.core.errors import MalformedContentError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StepDefaults:
    """Defaults applied to a decoded step of one type."""

    phase: str
    status: str
    requires_confirmation: bool = False
    continue_automatically: bool = False


STEP_DEFAULTS: Dict[StepType, StepDefaults] = {
    StepType.REQUEST_DOCS: StepDefaults("discovery", "Researching documentation", continue_automatically=True),
    StepType.ROADMAP: StepDefaults("strategy", "Roadmap ready", requires_confirmation=True, continue_automatically=True),
    StepType.EXECUTE: StepDefaults("implementation", "Executing...", continue_automatically=True),
    StepType.EXECUTE_STEP: StepDefaults("implementation", "Executing step...", continue_automatically=True),
    StepType.CHECKPOINT: StepDefaults("implementation", "Checkpoint", continue_automatically=True),
    StepType.VERIFY: StepDefaults("verification", "Verifying", continue_automatically=True),
    StepType.WP_CLI: StepDefaults("implementation", "Running WP-CLI", continue_automatically=True),
    StepType.COMPRESS_HISTORY: StepDefaults("analysis", "Compressing history", continue_automatically=True),
    StepType.COMPLETE: StepDefaults("discovery", "Done"),
    StepType.ERROR: StepDefaults("implementation", "Error"),
    StepType.QUESTION: StepDefaults("discovery", "Question"),
    StepType.PLAN: StepDefaults("strategy", "Plan ready", requires_confirmation=True),
}

# Documentation lookups always feed back into the loop
_ALWAYS_CONTINUE = frozenset({StepType.REQUEST_DOCS})

_FENCED_JSON = re.compile(r"```(?:json)?\s*\n?([\s\S]*?)```", re.IGNORECASE)
_FENCE_MARKER = re.compile(r"```[\w-]*\n?")


class ResponseParser:
    """Turns raw backend content into StepMessage instances."""

    def decode(self, content: str) -> Dict[str, Any]:
        """Extract the JSON step object from ``content``.

        Raises:
            MalformedContentError: If no JSON object can be found
        """
        text = (content or "").strip()
        if not text:
            raise MalformedContentError("Empty response from AI service.", raw_content=content or "")

        payload = _load_object(text)
        if payload is None:
            match = _FENCED_JSON.search(text)
            if match:
                payload = _load_object(match.group(1).strip())

        if payload is None:
            raise MalformedContentError(
                "AI response is not a JSON step message", raw_content=text
            )
        return payload

    def build(self, payload: Dict[str, Any]) -> StepMessage:
        """Normalize a decoded payload into a StepMessage.

        Unknown types become a terminal error step.
        """
        raw_type = payload.get("type")
        try:
            step_type = StepType(raw_type)
        except ValueError:
            logger.warning(f"Unknown response type from AI: {raw_type!r}")
            return StepMessage.error(
                f"Unknown response type: {raw_type}", data={"ai_response": payload}
            )

        defaults = STEP_DEFAULTS[step_type]
        data = payload.get("data")
        if not isinstance(data, dict):
            data = {}

        requires_confirmation = _flag(payload, "requires_confirmation", defaults.requires_confirmation)
        if step_type is StepType.ERROR:
            continue_automatically = bool(data.get("recoverable", False))
        elif step_type.is_terminal:
            continue_automatically = False
        elif step_type in _ALWAYS_CONTINUE:
            continue_automatically = True
        else:
            continue_automatically = _flag(
                payload, "continue_automatically", defaults.continue_automatically
            )

        return StepMessage(
            type=step_type,
            step_phase=str(payload.get("step") or defaults.phase),
            status=str(payload.get("status") or defaults.status),
            message=_text(payload.get("message")),
            data=data,
            requires_confirmation=requires_confirmation,
            continue_automatically=continue_automatically,
        )

    def parse(self, content: str) -> StepMessage:
        """Decode and normalize in one go.

        Raises:
            MalformedContentError: If ``content`` is not a JSON step message
        """
        return self.build(self.decode(content))

    def degrade(self, content: str) -> StepMessage:
        """Wrap prose content as a terminal ``complete`` step."""
        text = _FENCE_MARKER.sub("", content or "").replace("```", "").strip()
        return StepMessage(
            type=StepType.COMPLETE,
            step_phase="discovery",
            status="Response",
            message=text,
        )


def _load_object(text: str) -> Optional[Dict[str, Any]]:
    try:
        value = json.loads(text)
    except ValueError:
        return None
    return value if isinstance(value, dict) else None


def _flag(payload: Dict[str, Any], key: str, default: bool) -> bool:
    value = payload.get(key)
    if value is None:
        return default
    return bool(value)


def _text(value: Any) -> str:
    if value is None:
        return ""
    return value if isinstance(value, str) else str(value)
