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

"""Shared pytest fixtures and configuration."""

import logging

import pytest

from creator.agent.debug_logger import DebugLogger
from creator.agent.sqlite_conversation_store import SQLiteConversationStore


@pytest.fixture(autouse=True)
def isolate_environment_variables(monkeypatch, tmp_path):
    """Isolate tests from environment variables and .env files.

    Prevents tests from picking up a real site token, proxy URL or database
    from the developer's shell, and points the default database at a
    temporary directory.
    """
    monkeypatch.setenv("CREATOR_SKIP_ENV_FILE", "1")

    creator_vars = [
        "CREATOR_PROXY_URL",
        "CREATOR_SITE_TOKEN",
        "CREATOR_SITE_URL",
        "CREATOR_EXECUTOR_URL",
        "CREATOR_MAX_LOOP_ITERATIONS",
        "CREATOR_MAX_RETRY_ATTEMPTS",
        "CREATOR_ROADMAP_POLICY",
        "CREATOR_LOG_LEVEL",
        "CREATOR_LOG_FILE",
    ]
    for var in creator_vars:
        monkeypatch.delenv(var, raising=False)

    monkeypatch.setenv("CREATOR_DB_PATH", str(tmp_path / "conversations.db"))


@pytest.fixture(autouse=True)
def reset_creator_logger():
    """Keep log propagation intact so caplog sees Creator records."""
    logger = logging.getLogger("creator")
    original_level = logger.level
    original_propagate = logger.propagate
    logger.propagate = True
    yield
    logger.setLevel(original_level)
    logger.propagate = original_propagate


@pytest.fixture
def quiet_debug_logger():
    """DebugLogger that emits nothing."""
    return DebugLogger(enabled=False)


@pytest.fixture
def memory_store():
    """In-memory conversation store."""
    store = SQLiteConversationStore(":memory:")
    yield store
    store.close()
