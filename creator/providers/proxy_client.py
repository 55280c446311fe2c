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

"""HTTP client for the Creator AI proxy.

The proxy fronts the language models and the plugin documentation service.
This client implements both ``AIBackendProtocol`` and
``DocumentationProviderProtocol``:

- ``send``: POST ``/api/ai/route-request`` (code generation)
- ``get_docs``: POST ``/api/plugin-docs/research``
- ``health_check``: GET ``/api/health``

Every request carries ``Authorization: Bearer <site token>`` and
``X-Site-URL`` headers.

Usage:
    async with ProxyClient.from_settings(settings) as proxy:
        response = await proxy.send("Create a page", context, history)
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Sequence

import httpx

from creator.agent.debug_logger import TRACE
from creator.agent.messages import BackendResponse, ChatTurn
from creator.config.settings import Settings
from creator.core.errors import (
    ProviderAuthError,
    ProviderConnectionError,
    ProviderError,
    ProviderInvalidResponseError,
)

logger = logging.getLogger(__name__)

ROUTE_REQUEST_PATH = "/api/ai/route-request"
PLUGIN_DOCS_PATH = "/api/plugin-docs/research"
HEALTH_PATH = "/api/health"

TASK_TYPE_CODE_GEN = "CODE_GEN"


class ProxyClient:
    """Async client for the AI proxy."""

    PROVIDER_NAME = "creator-proxy"

    def __init__(
        self,
        base_url: str,
        site_token: Optional[str],
        site_url: str = "",
        model: str = "gemini",
        timeout: float = 120.0,
        docs_timeout: float = 60.0,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        """Initialize the client.

        Args:
            base_url: Proxy root URL
            site_token: License token identifying the site
            site_url: Public URL of the managed site
            model: Preferred model name
            timeout: Timeout for generation requests (seconds)
            docs_timeout: Timeout for documentation requests (seconds)
            client: Preconfigured httpx client (tests inject a MockTransport)
        """
        self.base_url = base_url.rstrip("/")
        self.site_token = site_token
        self.site_url = site_url
        self.model = model
        self.timeout = timeout
        self.docs_timeout = docs_timeout
        self._client = client
        self._owns_client = client is None

    @classmethod
    def from_settings(cls, settings: Settings, client: Optional[httpx.AsyncClient] = None) -> "ProxyClient":
        return cls(
            base_url=settings.proxy_url,
            site_token=settings.site_token,
            site_url=settings.site_url,
            model=settings.default_model,
            timeout=settings.request_timeout,
            docs_timeout=settings.docs_timeout,
            client=client,
        )

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(base_url=self.base_url)
        return self._client

    def _headers(self) -> Dict[str, str]:
        return {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.site_token}",
            "X-Site-URL": self.site_url,
        }

    def _url(self, path: str) -> str:
        return f"{self.base_url}{path}"

    # ========================================================================
    # AIBackendProtocol
    # ========================================================================

    async def send(
        self,
        message: str,
        context: Dict[str, Any],
        history: Sequence[ChatTurn],
        documentation: Optional[Dict[str, Any]] = None,
        files: Optional[List[Dict[str, Any]]] = None,
    ) -> BackendResponse:
        """Request the next step message.

        Raises:
            ProviderAuthError: No site token configured, or token rejected
            ProviderConnectionError: Proxy unreachable or timed out
            ProviderInvalidResponseError: Body is not a JSON object
            ProviderError: Any other non-200 status
        """
        if not self.site_token:
            raise ProviderAuthError(
                "Site token not configured. Please configure your license key.",
                provider=self.PROVIDER_NAME,
            )

        body: Dict[str, Any] = {
            "task_type": TASK_TYPE_CODE_GEN,
            "prompt": message,
            "context": context,
            "model": self.model,
        }
        if history:
            body["conversation_history"] = [turn.to_wire() for turn in history]
        if documentation:
            body["documentation"] = documentation
        if files:
            body["files"] = files

        logger.log(TRACE, f"route-request body keys: {sorted(body)}")
        data = await self._post_json(ROUTE_REQUEST_PATH, body, self.timeout)
        return BackendResponse(
            success=bool(data.get("success", False)),
            content=str(data.get("content") or ""),
            error=data.get("error"),
            provider=data.get("provider"),
            model=data.get("model"),
        )

    async def _post_json(self, path: str, body: Dict[str, Any], timeout: float) -> Dict[str, Any]:
        url = self._url(path)
        try:
            response = await self.client.post(url, json=body, headers=self._headers(), timeout=timeout)
        except httpx.TimeoutException as e:
            raise ProviderConnectionError(
                f"Request timeout for {url}", provider=self.PROVIDER_NAME, cause=e
            ) from e
        except httpx.HTTPError as e:
            raise ProviderConnectionError(
                f"Failed to connect to {url}: {e}", provider=self.PROVIDER_NAME, cause=e
            ) from e

        data = self._decode(response)
        if response.status_code in (401, 403):
            raise ProviderAuthError(
                str(data.get("error") or f"Proxy rejected the site token ({response.status_code})"),
                provider=self.PROVIDER_NAME,
                status_code=response.status_code,
            )
        if response.status_code != 200:
            raise ProviderError(
                str(data.get("error") or f"Proxy returned error status: {response.status_code}"),
                provider=self.PROVIDER_NAME,
                status_code=response.status_code,
            )
        return data

    def _decode(self, response: httpx.Response) -> Dict[str, Any]:
        try:
            data = response.json()
        except ValueError as e:
            if response.status_code != 200:
                return {}
            raise ProviderInvalidResponseError(
                "Invalid JSON response from proxy", provider=self.PROVIDER_NAME, cause=e
            ) from e
        if not isinstance(data, dict):
            raise ProviderInvalidResponseError(
                "Proxy response is not a JSON object",
                provider=self.PROVIDER_NAME,
                response_data=data,
            )
        return data

    # ========================================================================
    # DocumentationProviderProtocol
    # ========================================================================

    async def get_docs(
        self,
        identifier: str,
        version: Optional[str] = None,
        display_name: Optional[str] = None,
    ) -> Optional[Dict[str, Any]]:
        """Research documentation for one plugin.

        Returns:
            The documentation mapping, or None if the lookup failed
        """
        if not self.site_token:
            logger.warning(f"Site token not configured, cannot fetch docs for '{identifier}'")
            return None

        body: Dict[str, Any] = {
            "plugin_slug": identifier,
            "plugin_version": version or "latest",
        }
        if display_name:
            body["plugin_name"] = display_name

        try:
            data = await self._post_json(PLUGIN_DOCS_PATH, body, self.docs_timeout)
        except ProviderError as e:
            logger.warning(f"Documentation lookup for '{identifier}' failed: {e.message}")
            return None

        if not data.get("success") or not isinstance(data.get("data"), dict):
            logger.info(f"No documentation available for '{identifier}'")
            return None
        return data["data"]

    # ========================================================================
    # Health and lifecycle
    # ========================================================================

    async def health_check(self) -> Dict[str, Any]:
        """Query the proxy health endpoint.

        Raises:
            ProviderConnectionError: Proxy unreachable
        """
        url = self._url(HEALTH_PATH)
        try:
            response = await self.client.get(url, headers=self._headers(), timeout=self.docs_timeout)
        except httpx.HTTPError as e:
            raise ProviderConnectionError(
                f"Failed to connect to {url}: {e}", provider=self.PROVIDER_NAME, cause=e
            ) from e
        data = self._decode(response)
        data.setdefault("status_code", response.status_code)
        return data

    async def close(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "ProxyClient":
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.close()
