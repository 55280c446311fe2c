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

"""Effective context assembly.

Each iteration sends the AI an effective context built in this order:

1. The base context (site facts supplied by the caller)
2. ``last_result``: the previous execution result
3. ``accumulated``: values reported at roadmap checkpoints
4. Accumulated values, for keys not yet present
5. Structured result values of the last execution, for keys not yet present

Earlier layers always win, so nothing the caller supplied is overwritten.
Accumulated values are first-writer-wins for the whole run: once a
checkpoint reports a key, neither later checkpoints nor later execution
results can change the value the AI sees. The raw result stays visible
under ``last_result``.
"""

import logging
from typing import Any, Dict, List, Optional

from creator.agent.messages import ExecutionResult

logger = logging.getLogger(__name__)


class ContextAccumulator:
    """Builds the per-iteration context and merges checkpoint values."""

    LAST_RESULT_KEY = "last_result"
    ACCUMULATED_KEY = "accumulated"

    def build(
        self,
        base: Dict[str, Any],
        last_result: Optional[ExecutionResult],
        accumulated: Dict[str, Any],
    ) -> Dict[str, Any]:
        """Return the effective context. Inputs are not modified."""
        effective = dict(base)

        if last_result is not None:
            effective.setdefault(self.LAST_RESULT_KEY, last_result.to_payload())

        if accumulated:
            effective.setdefault(self.ACCUMULATED_KEY, dict(accumulated))
            for key, value in accumulated.items():
                effective.setdefault(key, value)

        if last_result is not None:
            for key, value in last_result.result_fields.items():
                effective.setdefault(key, value)

        return effective

    @staticmethod
    def merge(accumulated: Dict[str, Any], reported: Dict[str, Any]) -> List[str]:
        """Merge checkpoint values into ``accumulated`` in place.

        Returns:
            Keys that were newly added
        """
        added = []
        for key, value in reported.items():
            if key in accumulated:
                if accumulated[key] != value:
                    logger.debug(f"Ignoring later value for accumulated key '{key}'")
                continue
            accumulated[key] = value
            added.append(key)
        return added
