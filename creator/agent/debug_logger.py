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

"""Debug logging utilities for Creator.

Provides clean, scannable output for the orchestration loop:
- Iteration markers (one line each)
- Steps received and executions run (one-line format)
- Retries and continuations
- A run summary

Logging Levels (Creator convention):
- TRACE (5): Full request and response payloads
- DEBUG (10): Continuations, context keys, cache hits
- INFO (20): Key events (iteration start, step received, execution result)
- WARNING (30): Recoverable issues (retry exhausted, degraded reply)
- ERROR (40): Terminal failures
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Optional

# Custom TRACE level for very verbose logging (below DEBUG)
TRACE = 5
logging.addLevelName(TRACE, "TRACE")

logger = logging.getLogger(__name__)

# Third-party loggers to silence (they generate too much noise)
NOISY_LOGGERS = [
    "httpcore",
    "httpx",
    "asyncio",
]

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging_levels(log_level: str = "INFO") -> None:
    """Set the level of Creator loggers and silence noisy libraries.

    Args:
        log_level: TRACE, DEBUG, INFO, WARNING, ERROR or CRITICAL
    """
    level_upper = log_level.upper()
    if level_upper == "TRACE":
        level = TRACE
    else:
        level = getattr(logging, level_upper, logging.INFO)

    logging.getLogger("creator").setLevel(level)

    for logger_name in NOISY_LOGGERS:
        logging.getLogger(logger_name).setLevel(logging.WARNING)


def configure_logging(log_level: str = "INFO", log_file: Optional[str] = None) -> None:
    """Install handlers for CLI use and apply levels."""
    handlers: list = [logging.StreamHandler()]
    if log_file:
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))
    logging.basicConfig(format=LOG_FORMAT, handlers=handlers)
    configure_logging_levels(log_level)


@dataclass
class RunStats:
    """Statistics about one orchestration run."""

    iterations: int = 0
    steps: int = 0
    executions: int = 0
    failed_executions: int = 0
    retries: int = 0
    start_time: float = field(default_factory=time.time)

    @property
    def elapsed_seconds(self) -> float:
        return time.time() - self.start_time

    def summary(self) -> str:
        """One-line summary of stats."""
        return (
            f"iter={self.iterations} | steps={self.steps} | "
            f"exec={self.executions} (failed={self.failed_executions}) | "
            f"retries={self.retries} | {self.elapsed_seconds:.1f}s"
        )


class DebugLogger:
    """Clean debug logger focused on meaningful loop events.

    Design principles:
    - One-line log entries where possible
    - Key events at INFO level (visible by default)
    - Payload dumps only at TRACE level
    """

    def __init__(
        self,
        name: str = "creator.debug",
        max_preview: int = 80,
        enabled: bool = True,
    ):
        """Initialize debug logger.

        Args:
            name: Logger name
            max_preview: Max characters for inline previews
            enabled: Whether logging is enabled
        """
        self.logger = logging.getLogger(name)
        self.max_preview = max_preview
        self.enabled = enabled
        self.stats = RunStats()

    def reset(self) -> None:
        """Reset state for a new run."""
        self.stats = RunStats()

    def _truncate(self, text: str, max_len: Optional[int] = None) -> str:
        """Truncate text with indicator."""
        max_len = max_len or self.max_preview
        text = text.replace("\n", " ").strip()
        if len(text) <= max_len:
            return text
        return f"{text[:max_len]}..."

    def start_run(self, message: str) -> None:
        self.reset()
        if not self.enabled:
            return
        self.logger.info(f"▶ RUN: {self._truncate(message)}")

    def log_iteration_start(self, iteration: int) -> None:
        """Log iteration start (one line)."""
        if not self.enabled:
            return
        self.stats.iterations = iteration
        self.logger.info(
            f"── ITER {iteration} ─────────────────────────────────────────────────────"
        )

    def log_request(self, prompt: str, context_keys: Any, history_len: int) -> None:
        if not self.enabled:
            return
        self.logger.debug(
            f"   → prompt {len(prompt):,} chars, history={history_len}, "
            f"context={sorted(context_keys)}"
        )
        self.logger.log(TRACE, f"   prompt: {prompt}")

    def log_step(self, step_type: str, display_message: str) -> None:
        """Log a received step (one line)."""
        if not self.enabled:
            return
        self.stats.steps += 1
        self.logger.info(f"   ◆ {step_type}: {self._truncate(display_message)}")

    def log_execution(self, kind: str, success: bool, elapsed_ms: float, error: Optional[str] = None) -> None:
        """Log an execution result (one line)."""
        if not self.enabled:
            return
        self.stats.executions += 1
        if success:
            self.logger.info(f"   ✓ {kind} ({elapsed_ms:.0f}ms)")
        else:
            self.stats.failed_executions += 1
            self.logger.info(f"   ✗ {kind}: {self._truncate(error or 'unknown error')} ({elapsed_ms:.0f}ms)")

    def log_retry(self, attempt: int, max_retries: int) -> None:
        if not self.enabled:
            return
        self.stats.retries += 1
        self.logger.info(f"   ↻ retry {attempt}/{max_retries}")

    def log_continuation(self, continuation_type: str) -> None:
        if not self.enabled:
            return
        self.logger.debug(f"   ← {continuation_type}")

    def end_run(self, final_type: str, message: str = "") -> None:
        """Log final run summary."""
        if not self.enabled:
            return
        self.logger.info(
            f"■ END: {final_type} {self._truncate(message, 60)} | {self.stats.summary()}"
        )
