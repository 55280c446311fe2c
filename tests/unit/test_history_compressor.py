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

"""Tests for HistoryCompressor."""

import pytest

from creator.agent.history_compressor import CompressionAction, HistoryCompressor
from creator.agent.messages import ChatTurn


def turns(count):
    return [ChatTurn(role="user" if i % 2 == 0 else "assistant", content=f"turn {i}") for i in range(count)]


@pytest.fixture
def compressor():
    return HistoryCompressor()


class TestCompress:
    """Tests for HistoryCompressor.compress."""

    def test_compresses_long_history(self, compressor):
        history = turns(12)

        result = compressor.compress(history, "Created three pages")

        assert len(result) == 5
        assert result[0].role == "system"
        assert result[1:] == history[-4:]
        assert compressor.last_action == CompressionAction(True, 12, 5)
        assert compressor.last_action.turns_removed == 8

    def test_short_history_unchanged(self, compressor):
        history = turns(6)

        result = compressor.compress(history, "summary")

        assert result == history
        assert result is not history
        assert compressor.last_action.compressed is False

    def test_preserve_override(self, compressor):
        result = compressor.compress(turns(10), "s", preserve_last_n=1)
        assert len(result) == 2
        assert result[1].content == "turn 9"

    def test_preserve_zero_keeps_only_summary(self, compressor):
        result = compressor.compress(turns(5), "s", preserve_last_n=0)
        assert len(result) == 1
        assert result[0].role == "system"

    def test_statistics(self, compressor):
        compressor.compress(turns(12), "s")
        compressor.compress(turns(2), "s")
        assert compressor.get_statistics() == {"compressions": 1, "preserve_last_messages": 4}


class TestRenderSummary:
    """Tests for the summary turn text."""

    def test_without_facts(self):
        text = HistoryCompressor.render_summary("Built the site", [])
        assert text == "=== CONVERSATION SUMMARY ===\nBuilt the site\n=== END SUMMARY ==="

    def test_with_facts(self):
        text = HistoryCompressor.render_summary(
            "Built the site",
            [
                {"key": "site_name", "value": "Acme", "description": "from step 2"},
                {"key": "page_id", "value": 12},
                "Menu is assigned",
            ],
        )
        assert text.splitlines() == [
            "=== CONVERSATION SUMMARY ===",
            "Built the site",
            "",
            "KEY FACTS:",
            "- site_name: Acme (from step 2)",
            "- page_id: 12",
            "- Menu is assigned",
            "=== END SUMMARY ===",
        ]
