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

"""Agent module - orchestrator and supporting components."""

from creator.agent.context_accumulator import ContextAccumulator
from creator.agent.dispatch import DispatchOutcome, StepDispatcher
from creator.agent.history_compressor import CompressionAction, HistoryCompressor
from creator.agent.loop_state import LoopOutcome, LoopState
from creator.agent.messages import (
    BackendResponse,
    ChatTurn,
    Checkpoint,
    ContinuationMessage,
    ErrorMemoryEntry,
    ExecutionResult,
    RoadmapStep,
    StepMessage,
    StepRecord,
    StepType,
)
from creator.agent.orchestrator import TaskOrchestrator
from creator.agent.response_parser import ResponseParser
from creator.agent.retry_policy import RetryDecision, RetryPolicy

__all__ = [
    "BackendResponse",
    "ChatTurn",
    "Checkpoint",
    "CompressionAction",
    "ContextAccumulator",
    "ContinuationMessage",
    "DispatchOutcome",
    "ErrorMemoryEntry",
    "ExecutionResult",
    "HistoryCompressor",
    "LoopOutcome",
    "LoopState",
    "ResponseParser",
    "RetryDecision",
    "RetryPolicy",
    "RoadmapStep",
    "StepDispatcher",
    "StepMessage",
    "StepRecord",
    "StepType",
    "TaskOrchestrator",
]
