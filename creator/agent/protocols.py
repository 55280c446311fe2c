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

"""Protocols for orchestrator collaborators.

Defines interfaces for all injectable services used by TaskOrchestrator.
These protocols enable:
- Type-safe dependency injection
- Easy testing via mock substitution
- Clear component contracts

Usage:
    from creator.agent.protocols import AIBackendProtocol, ExecutorProtocol

    # Type hint with protocol
    async def ask(backend: AIBackendProtocol) -> None:
        response = await backend.send("hello", {}, [])
        ...

    # Mock in tests
    mock_backend = AsyncMock(spec=AIBackendProtocol)
"""

from __future__ import annotations

from typing import (
    TYPE_CHECKING,
    Any,
    Dict,
    List,
    Optional,
    Protocol,
    Sequence,
    runtime_checkable,
)

if TYPE_CHECKING:
    from creator.agent.messages import BackendResponse, ChatTurn, ExecutionResult


# =============================================================================
# Backend Protocols
# =============================================================================


@runtime_checkable
class AIBackendProtocol(Protocol):
    """Protocol for the AI backend.

    Turns a prompt plus context into one step message (as raw text).
    """

    async def send(
        self,
        message: str,
        context: Dict[str, Any],
        history: Sequence["ChatTurn"],
        documentation: Optional[Dict[str, Any]] = None,
        files: Optional[List[Dict[str, Any]]] = None,
    ) -> "BackendResponse":
        """Send one request.

        Args:
            message: User message or serialized continuation instruction
            context: Effective context for this iteration
            history: Conversation turns so far
            documentation: Resolved documentation by identifier
            files: Attachments (first request of a run only)

        Returns:
            BackendResponse transport envelope
        """
        ...


@runtime_checkable
class ExecutorProtocol(Protocol):
    """Protocol for the execution engine.

    Failures of the payload itself come back as a failed ExecutionResult.
    Infrastructure failures (engine unreachable) are raised.
    """

    async def execute(self, payload: str, context: Dict[str, Any]) -> "ExecutionResult":
        """Run one payload against the managed site."""
        ...


@runtime_checkable
class DocumentationProviderProtocol(Protocol):
    """Protocol for documentation lookups."""

    async def get_docs(
        self,
        identifier: str,
        version: Optional[str] = None,
        display_name: Optional[str] = None,
    ) -> Optional[Dict[str, Any]]:
        """Fetch documentation for one plugin.

        Returns:
            Documentation mapping, or None when nothing was found
        """
        ...


# =============================================================================
# Outer Surface Protocols
# =============================================================================


@runtime_checkable
class ProgressSinkProtocol(Protocol):
    """Receives fire-and-forget progress events."""

    def push(self, event_name: str, payload: Dict[str, Any]) -> None:
        """Deliver one event. Return value and failures are ignored by the loop."""
        ...


@runtime_checkable
class ConversationStoreProtocol(Protocol):
    """Durable conversation storage."""

    def append_message(self, session_id: str, role: str, content: str) -> int:
        """Persist one message and return its id."""
        ...

    def read_history(self, session_id: str, limit: Optional[int] = None) -> List["ChatTurn"]:
        """Return stored turns of a session, oldest first."""
        ...


@runtime_checkable
class ContextProviderProtocol(Protocol):
    """Supplies the base context (site facts) for a run."""

    def get_context(self) -> Dict[str, Any]:
        ...
