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

"""
Creator - multi-step AI task orchestration for WordPress sites.

One user request becomes a bounded sequence of AI-driven steps: the AI
answers with typed step messages (request docs, roadmap, execute, checkpoint,
verify, ...), payloads run through an external execution engine, failures
are retried with a memory of earlier attempts, and long conversations are
compressed on request.

Simple API:
    from creator import ChatService, load_settings

    service = ChatService.from_settings(load_settings())
    result = await service.submit_message("Create an About page")
    print(result.response.message)

Full API:
    from creator import TaskOrchestrator

    orchestrator = TaskOrchestrator(backend=backend, executor=executor)
    final = await orchestrator.run("Create an About page", context={"site_url": url})
"""

__version__ = "0.1.0"
__author__ = "Creator Contributors"
__license__ = "Apache-2.0"

from creator.agent.messages import StepMessage, StepType
from creator.agent.orchestrator import TaskOrchestrator
from creator.api.chat_service import ChatResponse, ChatService
from creator.config.settings import Settings, load_settings

__all__ = [
    "__version__",
    "ChatResponse",
    "ChatService",
    "Settings",
    "StepMessage",
    "StepType",
    "TaskOrchestrator",
    "load_settings",
]
