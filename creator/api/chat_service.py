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

"""Chat entry surface.

``ChatService`` is the single "submit message" operation that transports
(CLI, HTTP handlers) call. Per request it:

1. Resolves the session (creating one when no id is given)
2. Loads the stored history and the base context
3. Runs the orchestrator (with a progress sink when streaming)
4. Persists the user message and the terminal step, once

Streaming callers receive ``connected``, one ``progress`` per iteration and
finally ``complete`` (or ``error`` when the run ended with an error step).
"""

import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from creator.agent.messages import StepMessage, StepType
from creator.agent.orchestrator import TaskOrchestrator
from creator.agent.progress import ProgressEventType, emit
from creator.agent.protocols import ContextProviderProtocol, ProgressSinkProtocol
from creator.agent.sqlite_conversation_store import SQLiteConversationStore
from creator.config.orchestrator_constants import CONFIRM_PLAN_MESSAGE, LOOP_LIMITS
from creator.config.settings import RoadmapPolicy, Settings
from creator.core.errors import PersistenceError
from creator.providers.http_executor import HttpExecutor
from creator.providers.proxy_client import ProxyClient

logger = logging.getLogger(__name__)


@dataclass
class ChatResponse:
    """Result of one submitted message."""

    success: bool
    session_id: str
    response: StepMessage
    persisted: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "session_id": self.session_id,
            "persisted": self.persisted,
            "response": self.response.to_payload(),
        }


class StaticContextProvider:
    """Context provider returning a fixed mapping."""

    def __init__(self, context: Optional[Dict[str, Any]] = None) -> None:
        self._context = dict(context or {})

    def get_context(self) -> Dict[str, Any]:
        return dict(self._context)


class ChatService:
    """Runs chat requests through the orchestrator and stores the outcome."""

    def __init__(
        self,
        orchestrator: TaskOrchestrator,
        store: SQLiteConversationStore,
        context_provider: Optional[ContextProviderProtocol] = None,
        history_limit: int = LOOP_LIMITS.history_limit,
        roadmap_policy: RoadmapPolicy = RoadmapPolicy.CONFIRM,
        stream_roadmap_policy: RoadmapPolicy = RoadmapPolicy.AUTO_EXECUTE,
        resources: Optional[List[Any]] = None,
    ) -> None:
        self.orchestrator = orchestrator
        self.store = store
        self.context_provider = context_provider or StaticContextProvider()
        self.history_limit = history_limit
        self.roadmap_policy = roadmap_policy
        self.stream_roadmap_policy = stream_roadmap_policy
        self._resources = list(resources or [])

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        context_provider: Optional[ContextProviderProtocol] = None,
    ) -> "ChatService":
        """Wire the proxy, executors and store described by ``settings``."""
        proxy = ProxyClient.from_settings(settings)
        resources: List[Any] = [proxy]
        executor = cli_executor = None
        if settings.executor_url:
            executor = HttpExecutor.from_settings(settings, kind="code")
            cli_executor = HttpExecutor.from_settings(settings, kind="wp_cli")
            resources.extend([executor, cli_executor])
        else:
            logger.warning("executor_url not configured; execution steps will fail")

        orchestrator = TaskOrchestrator.from_settings(
            settings,
            backend=proxy,
            executor=executor,
            docs_provider=proxy,
            cli_executor=cli_executor,
        )
        return cls(
            orchestrator=orchestrator,
            store=SQLiteConversationStore(settings.db_path),
            context_provider=context_provider,
            history_limit=settings.history_limit,
            roadmap_policy=settings.roadmap_policy,
            stream_roadmap_policy=settings.stream_roadmap_policy,
            resources=resources,
        )

    async def submit_message(
        self,
        message: str,
        session_id: Optional[str] = None,
        confirm_plan: bool = False,
        files: Optional[List[Dict[str, Any]]] = None,
    ) -> ChatResponse:
        """Process one message and return the terminal step.

        Raises:
            ValueError: If the message is empty and no plan is being confirmed
            PersistenceError: If ``session_id`` is unknown
        """
        return await self._process(message, session_id, confirm_plan, files, None, self.roadmap_policy)

    async def stream_message(
        self,
        message: str,
        sink: ProgressSinkProtocol,
        session_id: Optional[str] = None,
        confirm_plan: bool = False,
        files: Optional[List[Dict[str, Any]]] = None,
    ) -> ChatResponse:
        """Like ``submit_message``, reporting progress to ``sink``."""
        return await self._process(message, session_id, confirm_plan, files, sink, self.stream_roadmap_policy)

    async def _process(
        self,
        message: str,
        session_id: Optional[str],
        confirm_plan: bool,
        files: Optional[List[Dict[str, Any]]],
        sink: Optional[ProgressSinkProtocol],
        roadmap_policy: RoadmapPolicy,
    ) -> ChatResponse:
        if confirm_plan:
            message = CONFIRM_PLAN_MESSAGE
        if not message or not message.strip():
            raise ValueError("Message cannot be empty")

        session_id = self.store.get_or_create_session(session_id)
        history = self.store.read_history(session_id, self.history_limit)
        emit(sink, ProgressEventType.CONNECTED.value, {"session_id": session_id, "message": message})

        final = await self.orchestrator.run(
            message,
            context=self.context_provider.get_context(),
            history=history,
            files=files,
            progress_sink=sink,
            roadmap_policy=roadmap_policy,
        )

        persisted = self._persist(session_id, message, files, final, first_message=not history)
        response = ChatResponse(
            success=final.type is not StepType.ERROR,
            session_id=session_id,
            response=final,
            persisted=persisted,
        )
        event = ProgressEventType.COMPLETE if response.success else ProgressEventType.ERROR
        emit(sink, event.value, response.to_dict())
        return response

    def _persist(
        self,
        session_id: str,
        message: str,
        files: Optional[List[Dict[str, Any]]],
        final: StepMessage,
        first_message: bool,
    ) -> bool:
        user_content = message
        if files:
            names = ", ".join(str(f.get("name", "file")) for f in files)
            user_content = f"{message}\n[Attachments: {names}]"
        try:
            self.store.append_message(session_id, "user", user_content)
            self.store.append_message(
                session_id, "assistant", json.dumps(final.to_payload(include_steps=False), ensure_ascii=False)
            )
            if first_message:
                self.store.set_title_if_missing(session_id, message)
        except PersistenceError as e:
            logger.error(f"Failed to store conversation for session {session_id}: {e.message}")
            return False
        return True

    async def aclose(self) -> None:
        for resource in self._resources:
            await resource.close()
        self.store.close()
