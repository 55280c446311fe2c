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

"""History Compressor - AI-driven conversation compaction.

When the AI answers with a ``compress_history`` step it supplies a summary
and a list of key facts. The compressor replaces everything but the most
recent turns with one system turn holding that summary:

    === CONVERSATION SUMMARY ===
    <summary>

    KEY FACTS:
    - site_name: Acme (from step 2)
    === END SUMMARY ===

Histories that are already short (at most ``preserve_last_n`` plus a small
slack) are returned unchanged.

Usage:
    compressor = HistoryCompressor()
    history = compressor.compress(history, summary, key_facts, preserve_last_n=4)
    action = compressor.last_action
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Union

from creator.agent.messages import ChatTurn
from creator.config.orchestrator_constants import COMPRESSION_DEFAULTS

logger = logging.getLogger(__name__)

KeyFact = Union[Dict[str, Any], str]


@dataclass
class CompressionAction:
    """Result of a compression request.

    Attributes:
        compressed: Whether the history was replaced
        turns_before: History length before the request
        turns_after: History length after the request
        turns_removed: Turns folded into the summary
    """

    compressed: bool
    turns_before: int
    turns_after: int

    @property
    def turns_removed(self) -> int:
        return self.turns_before - self.turns_after + (1 if self.compressed else 0)


class HistoryCompressor:
    """Replaces old conversation turns with a summary turn."""

    def __init__(
        self,
        preserve_last_messages: int = COMPRESSION_DEFAULTS.preserve_last_messages,
        slack_messages: int = COMPRESSION_DEFAULTS.slack_messages,
    ) -> None:
        self.preserve_last_messages = preserve_last_messages
        self.slack_messages = slack_messages
        self.last_action: Optional[CompressionAction] = None
        self._compression_count = 0

    def should_compress(self, history: Sequence[ChatTurn], preserve_last_n: int) -> bool:
        return len(history) > preserve_last_n + self.slack_messages

    def compress(
        self,
        history: Sequence[ChatTurn],
        summary: str,
        key_facts: Optional[Sequence[KeyFact]] = None,
        preserve_last_n: Optional[int] = None,
    ) -> List[ChatTurn]:
        """Compress ``history``.

        Args:
            history: Current conversation turns
            summary: Summary written by the AI
            key_facts: Facts to keep, as ``{key, value, description}`` mappings
                or plain strings
            preserve_last_n: Most recent turns kept verbatim

        Returns:
            New history: a summary turn followed by the preserved turns, or
            a copy of ``history`` when it is too short to compress
        """
        keep = self.preserve_last_messages if preserve_last_n is None else max(0, preserve_last_n)
        turns = list(history)

        if not self.should_compress(turns, keep):
            logger.debug(f"History has {len(turns)} turns, nothing to compress")
            self.last_action = CompressionAction(False, len(turns), len(turns))
            return turns

        preserved = turns[-keep:] if keep > 0 else []
        summary_turn = ChatTurn(role="system", content=self.render_summary(summary, key_facts or []))
        compressed = [summary_turn] + preserved

        self._compression_count += 1
        self.last_action = CompressionAction(True, len(turns), len(compressed))
        logger.info(
            f"Compressed history: {len(turns)} -> {len(compressed)} turns "
            f"(kept last {keep})"
        )
        return compressed

    @staticmethod
    def render_summary(summary: str, key_facts: Sequence[KeyFact]) -> str:
        """Render the summary turn text."""
        lines = [COMPRESSION_DEFAULTS.summary_header, summary or ""]
        if key_facts:
            lines.append("")
            lines.append("KEY FACTS:")
            for fact in key_facts:
                lines.append(_render_fact(fact))
        lines.append(COMPRESSION_DEFAULTS.summary_footer)
        return "\n".join(lines)

    def get_statistics(self) -> Dict[str, Any]:
        return {
            "compressions": self._compression_count,
            "preserve_last_messages": self.preserve_last_messages,
        }


def _render_fact(fact: KeyFact) -> str:
    if isinstance(fact, dict):
        key = fact.get("key", "")
        value = fact.get("value", "")
        description = fact.get("description")
        line = f"- {key}: {value}"
        if description:
            line += f" ({description})"
        return line
    return f"- {fact}"
