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

"""Execution engine adapter over HTTP.

Posts payloads to a sandboxed execution endpoint running next to the
managed site and maps its answer to an ``ExecutionResult``:

    POST {executor_url}/execute
    {"payload": "...", "kind": "code", "context": {...}}

    -> {"success": false, "output": "", "error": "SQL syntax error", "result": {...}}

A payload that runs and fails is a normal (failed) result. An endpoint that
cannot be reached raises ``ExecutionError``.
"""

import logging
from typing import Any, Dict, Optional

import httpx
from pydantic import ValidationError

from creator.agent.messages import ExecutionResult
from creator.config.settings import Settings
from creator.core.errors import ConfigurationError, ExecutionError

logger = logging.getLogger(__name__)


class HttpExecutor:
    """Runs payloads through a remote execution endpoint."""

    def __init__(
        self,
        base_url: str,
        site_token: Optional[str] = None,
        kind: str = "code",
        timeout: float = 30.0,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.site_token = site_token
        self.kind = kind
        self.timeout = timeout
        self._client = client or httpx.AsyncClient()
        self._owns_client = client is None

    @classmethod
    def from_settings(
        cls, settings: Settings, kind: str = "code", client: Optional[httpx.AsyncClient] = None
    ) -> "HttpExecutor":
        """Build an executor for ``kind`` payloads ("code" or "wp_cli")."""
        if not settings.executor_url:
            raise ConfigurationError("executor_url is not configured", config_key="executor_url")
        return cls(
            base_url=settings.executor_url,
            site_token=settings.site_token,
            kind=kind,
            timeout=settings.executor_timeout,
            client=client,
        )

    async def execute(self, payload: str, context: Dict[str, Any]) -> ExecutionResult:
        url = f"{self.base_url}/execute"
        headers = {"Content-Type": "application/json"}
        if self.site_token:
            headers["Authorization"] = f"Bearer {self.site_token}"

        try:
            response = await self._client.post(
                url,
                json={"payload": payload, "kind": self.kind, "context": context},
                headers=headers,
                timeout=self.timeout,
            )
        except httpx.HTTPError as e:
            raise ExecutionError(
                f"Execution engine unreachable at {url}: {e}", payload=payload, cause=e
            ) from e

        if response.status_code >= 500:
            raise ExecutionError(
                f"Execution engine error: HTTP {response.status_code}", payload=payload
            )

        try:
            result = ExecutionResult.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            raise ExecutionError(
                "Execution engine returned an invalid result", payload=payload, cause=e
            ) from e

        if not result.success:
            logger.debug(f"Payload failed: {result.error}")
        return result

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()
