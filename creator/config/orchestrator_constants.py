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

"""Centralized constants for the task orchestration loop.

This module provides frozen dataclasses holding the limits and defaults used
by the orchestrator, the retry policy and the history compressor. Keeping
them in one place makes the loop easier to tune.

**Usage:**
    from creator.config.orchestrator_constants import (
        LOOP_LIMITS,
        COMPRESSION_DEFAULTS,
        NON_RETRYABLE_PATTERNS,
    )

    while state.iteration < LOOP_LIMITS.max_loop_iterations:
        ...

**Note:** These constants are defaults. Most can be overridden via Settings.
"""

from dataclasses import dataclass
from typing import Tuple


@dataclass(frozen=True)
class LoopLimits:
    """Hard limits for one orchestration run.

    Attributes:
        max_loop_iterations: Maximum AI round-trips before the run is abandoned
        max_retry_attempts: Maximum retries for one failing unit of work
        error_payload_chars: Characters of a failed payload kept in error memory
        history_limit: Stored turns loaded as conversation history
    """

    max_loop_iterations: int = 100
    max_retry_attempts: int = 3
    error_payload_chars: int = 500
    history_limit: int = 20


@dataclass(frozen=True)
class CompressionDefaults:
    """Defaults for history compression.

    Attributes:
        preserve_last_messages: Turns kept verbatim after a compression
        slack_messages: Extra turns tolerated before compressing at all
        summary_header: First line of the rendered summary turn
        summary_footer: Last line of the rendered summary turn
    """

    preserve_last_messages: int = 4
    slack_messages: int = 2
    summary_header: str = "=== CONVERSATION SUMMARY ==="
    summary_footer: str = "=== END SUMMARY ==="


# Sandbox rejections that no amount of retrying can fix
NON_RETRYABLE_PATTERNS: Tuple[str, ...] = (
    "Forbidden function",
    "Base64 decode is not allowed",
    "Backtick execution",
    "superglobal access",
)

# WP-CLI missing on the host; the AI must switch approach instead of retrying
CLI_UNAVAILABLE_PATTERN = "not available"

CONFIRM_PLAN_MESSAGE = "Proceed with the plan."


LOOP_LIMITS = LoopLimits()
COMPRESSION_DEFAULTS = CompressionDefaults()
