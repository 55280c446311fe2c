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

"""Tests for the TaskOrchestrator loop."""

import pytest

from creator.agent.messages import BackendResponse, ChatTurn, StepType
from creator.agent.orchestrator import TaskOrchestrator
from creator.agent.progress import RecordingProgressSink
from creator.agent.retry_policy import RetryPolicy
from creator.config.settings import RoadmapPolicy, Settings
from creator.core.errors import ExecutionError, ProviderConnectionError
from tests.factories import FakeDocsProvider, ScriptedBackend, ScriptedExecutor, failed, ok, step


def make_orchestrator(backend, executor=None, docs=None, debug_logger=None, **kwargs):
    return TaskOrchestrator(
        backend=backend,
        executor=executor,
        docs_provider=docs,
        debug_logger=debug_logger,
        **kwargs,
    )


class TestTermination:
    """Tests for loop termination and the step trace."""

    @pytest.mark.asyncio
    async def test_complete_on_first_reply(self, quiet_debug_logger):
        """A terminal reply ends the run after one iteration."""
        backend = ScriptedBackend([step("complete", "All done")])
        orchestrator = make_orchestrator(backend, debug_logger=quiet_debug_logger)

        outcome = await orchestrator.run_with_state("Hello", context={"site_url": "http://x"})

        assert outcome.message.type is StepType.COMPLETE
        assert outcome.message.message == "All done"
        assert outcome.iterations == 1
        assert len(outcome.message.steps) == 1
        assert backend.calls[0]["message"] == "Hello"
        assert backend.calls[0]["context"] == {"site_url": "http://x"}

    @pytest.mark.asyncio
    @pytest.mark.parametrize("terminal", ["complete", "error", "question", "plan"])
    async def test_trace_length_equals_iterations(self, terminal, quiet_debug_logger):
        """The trace has one record per iteration consumed."""
        backend = ScriptedBackend(
            [
                step("checkpoint", data={"completed_step": 1, "total_steps": 1}),
                step("checkpoint", data={"completed_step": 1, "total_steps": 1}),
                step(terminal, "end"),
            ]
        )
        orchestrator = make_orchestrator(backend, debug_logger=quiet_debug_logger)

        outcome = await orchestrator.run_with_state("Go")

        assert outcome.message.type.value == terminal
        assert outcome.iterations == 3
        assert [record.iteration for record in outcome.message.steps] == [1, 2, 3]
        assert [record.type for record in outcome.message.steps] == ["checkpoint", "checkpoint", terminal]

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "reply",
        [
            step("checkpoint", data={"completed_step": 1, "total_steps": 1}),
            step("execute_step", data={"code": "next();", "step_index": 1, "total_steps": 9}, continue_automatically=True),
        ],
    )
    async def test_exhaustion_at_max_iterations(self, reply, quiet_debug_logger):
        """A backend that never finishes stops at the iteration cap."""
        backend = ScriptedBackend([reply])
        orchestrator = make_orchestrator(
            backend, ScriptedExecutor([ok("done")]), debug_logger=quiet_debug_logger, max_loop_iterations=5
        )

        final = await orchestrator.run("Loop forever")

        assert final.type is StepType.ERROR
        assert final.message == "Maximum loop iterations reached. Task may be too complex."
        assert len(backend.calls) == 5
        assert len(final.steps) == 5
        assert final.data["error"]["category"] == "loop_exhausted"

    @pytest.mark.asyncio
    async def test_step_without_continuation_ends_run(self, quiet_debug_logger):
        """A non-terminal step that does not ask to continue is returned."""
        backend = ScriptedBackend(
            [step("execute", data={"code": "echo 1;"}, continue_automatically=False)]
        )
        executor = ScriptedExecutor([ok("1")])
        orchestrator = make_orchestrator(backend, executor, debug_logger=quiet_debug_logger)

        final = await orchestrator.run("Run it")

        assert final.type is StepType.EXECUTE
        assert final.execution_result.success is True
        assert len(final.steps) == 1

    def test_invalid_iteration_cap_rejected(self):
        """The iteration cap must be positive."""
        with pytest.raises(ValueError):
            TaskOrchestrator(backend=ScriptedBackend([]), max_loop_iterations=0)


class TestTransportAndContent:
    """Tests for backend failures and malformed replies."""

    @pytest.mark.asyncio
    async def test_transport_exception_is_terminal(self, quiet_debug_logger):
        """A raised ProviderError ends the run with an error, no retry."""
        backend = ScriptedBackend([ProviderConnectionError("Request timeout for proxy")])
        orchestrator = make_orchestrator(backend, debug_logger=quiet_debug_logger)

        final = await orchestrator.run("Hello")

        assert final.type is StepType.ERROR
        assert final.message == "Request timeout for proxy"
        assert len(backend.calls) == 1
        assert final.data["error"]["category"] == "provider_connection"

    @pytest.mark.asyncio
    async def test_unsuccessful_envelope_is_terminal(self, quiet_debug_logger):
        """An envelope with success=False ends the run with its error."""
        backend = ScriptedBackend([BackendResponse(success=False, error="Rate limit exceeded")])
        orchestrator = make_orchestrator(backend, debug_logger=quiet_debug_logger)

        final = await orchestrator.run("Hello")

        assert final.type is StepType.ERROR
        assert final.message == "Rate limit exceeded"

    @pytest.mark.asyncio
    async def test_empty_content_is_terminal(self, quiet_debug_logger):
        """Blank content becomes the standard empty-response error."""
        backend = ScriptedBackend([BackendResponse(success=True, content="   ")])
        orchestrator = make_orchestrator(backend, debug_logger=quiet_debug_logger)

        final = await orchestrator.run("Hello")

        assert final.type is StepType.ERROR
        assert final.message == "Empty response from AI service."

    @pytest.mark.asyncio
    async def test_prose_degrades_to_complete(self, quiet_debug_logger):
        """Non-JSON content is returned as a complete step without fences."""
        backend = ScriptedBackend(["Sure! Here you go:\n```php\necho 'hi';\n```"])
        orchestrator = make_orchestrator(backend, debug_logger=quiet_debug_logger)

        final = await orchestrator.run("Hello")

        assert final.type is StepType.COMPLETE
        assert final.status == "Response"
        assert "```" not in final.message
        assert "echo 'hi';" in final.message
        assert len(final.steps) == 1

    @pytest.mark.asyncio
    async def test_unexpected_exception_becomes_error(self, quiet_debug_logger):
        """run() never raises; unexpected failures keep the trace."""
        backend = ScriptedBackend([step("execute", data={"code": "boom();"})])
        executor = ScriptedExecutor([RuntimeError("boom")])
        orchestrator = make_orchestrator(backend, executor, debug_logger=quiet_debug_logger)

        final = await orchestrator.run("Hello")

        assert final.type is StepType.ERROR
        assert final.message == "Internal error: boom"
        assert len(final.steps) == 1

    @pytest.mark.asyncio
    async def test_unreachable_engine_is_terminal(self, quiet_debug_logger):
        """An engine that cannot be reached ends the run without a retry."""
        backend = ScriptedBackend([step("execute", data={"code": "echo 1;"}), step("complete")])
        executor = ScriptedExecutor([ExecutionError("Execution engine unreachable", payload="echo 1;")])
        orchestrator = make_orchestrator(backend, executor, debug_logger=quiet_debug_logger)

        outcome = await orchestrator.run_with_state("Hello")

        assert outcome.message.type is StepType.ERROR
        assert outcome.message.message == "Execution engine unreachable"
        assert outcome.message.data["error"]["category"] == "execution_failed"
        assert len(backend.calls) == 1
        assert outcome.state.retry_count == 0

    @pytest.mark.asyncio
    async def test_missing_executor_is_terminal(self, quiet_debug_logger):
        """Execution steps fail cleanly without an execution engine."""
        backend = ScriptedBackend([step("execute", data={"code": "echo 1;"})])
        orchestrator = make_orchestrator(backend, debug_logger=quiet_debug_logger)

        final = await orchestrator.run("Hello")

        assert final.type is StepType.ERROR
        assert final.message == "No execution engine configured"


class TestRetries:
    """Tests for retry behavior across iterations."""

    @pytest.mark.asyncio
    async def test_sql_error_then_success(self, quiet_debug_logger):
        """A failed step is retried once and the retry state is cleared on success."""
        code_step = step(
            "execute_step",
            data={"code": "create_page();", "step_index": 1, "total_steps": 2},
        )
        backend = ScriptedBackend([code_step, code_step, step("complete", "Done")])
        executor = ScriptedExecutor(
            [failed("SQL syntax error near 'FROM'"), ok("created", {"page_id": 42})]
        )
        orchestrator = make_orchestrator(backend, executor, debug_logger=quiet_debug_logger)

        outcome = await orchestrator.run_with_state("Create a page")

        assert outcome.message.type is StepType.COMPLETE
        assert outcome.state.last_result.success is True
        assert outcome.state.retry_count == 0
        assert outcome.state.error_memory == []
        assert backend.sent_types() == [None, "step_execution_failed", "step_execution_result"]

        retry = backend.sent_payloads()[1]
        assert retry["error"] == "SQL syntax error near 'FROM'"
        assert retry["retry_count"] == 1
        assert retry["max_retries"] == 3
        assert len(retry["error_memory"]) == 1
        assert "DIFFERENT" in retry["instruction"]

        # Structured result values reach the next request's context
        assert backend.calls[2]["context"]["page_id"] == 42
        assert backend.calls[2]["context"]["last_result"]["success"] is True

    @pytest.mark.asyncio
    @pytest.mark.parametrize("failures", [1, 2, 3, 4, 6])
    async def test_retry_bound(self, failures, quiet_debug_logger):
        """K consecutive failures are retried exactly min(K, 3) times."""
        retries = min(failures, 3)
        code_step = step("execute", data={"code": "do_it();"})
        backend = ScriptedBackend([code_step] * (retries + 1) + [step("complete", "Done")])
        executor = ScriptedExecutor([failed("Timeout talking to database")] * failures + [ok("ok")])
        orchestrator = make_orchestrator(backend, executor, debug_logger=quiet_debug_logger)

        outcome = await orchestrator.run_with_state("Try hard")

        types = backend.sent_types()
        assert types.count("execution_failed") == retries
        memory_sizes = [p["error_memory"] for p in backend.sent_payloads() if p and p["type"] == "execution_failed"]
        assert [len(m) for m in memory_sizes] == list(range(1, retries + 1))
        assert outcome.message.type is StepType.COMPLETE
        assert outcome.state.retry_count == 0
        assert outcome.state.error_memory == []

        if failures > 3:
            moved_on = backend.sent_payloads()[-1]
            assert moved_on["type"] == "execution_result"
            assert moved_on["retry_exhausted"] is True
            assert outcome.state.last_result.success is False

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "error",
        [
            "Forbidden function: exec() is not allowed",
            "Base64 decode is not allowed in generated code",
            "Backtick execution detected",
            "SUPERGLOBAL ACCESS is blocked",
        ],
    )
    async def test_non_retryable_short_circuit(self, error, quiet_debug_logger):
        """Sandbox rejections end the run without any retry."""
        backend = ScriptedBackend([step("execute", data={"code": "exec('ls');"}), step("complete")])
        executor = ScriptedExecutor([failed(error)])
        orchestrator = make_orchestrator(backend, executor, debug_logger=quiet_debug_logger)

        outcome = await orchestrator.run_with_state("Do something risky")

        assert outcome.message.type is StepType.ERROR
        assert outcome.message.message.startswith("Execution blocked by sandbox security policy")
        assert outcome.message.data["error"]["category"] == "security_violation"
        assert len(executor.calls) == 1
        assert len(backend.calls) == 1
        assert outcome.state.retry_count == 0
        assert outcome.state.error_memory == []

    @pytest.mark.asyncio
    async def test_custom_retry_budget(self, quiet_debug_logger):
        """The retry budget comes from the injected policy."""
        code_step = step("execute", data={"code": "x();"})
        backend = ScriptedBackend([code_step, code_step, step("complete")])
        executor = ScriptedExecutor([failed("broken")])
        orchestrator = make_orchestrator(
            backend, executor, debug_logger=quiet_debug_logger, retry_policy=RetryPolicy(max_retries=1)
        )

        await orchestrator.run("Try")

        assert backend.sent_types() == [None, "execution_failed", "execution_result"]

    @pytest.mark.asyncio
    async def test_retry_state_is_scoped_to_one_roadmap_step(self, quiet_debug_logger):
        """A new roadmap step starts with a fresh retry budget and error memory."""
        first = step("execute_step", data={"code": "one();", "step_index": 1, "total_steps": 2})
        second = step("execute_step", data={"code": "two();", "step_index": 2, "total_steps": 2})
        backend = ScriptedBackend([first, first, second, step("complete", "Done")])
        executor = ScriptedExecutor([failed("first a"), failed("first b"), failed("second a")])
        orchestrator = make_orchestrator(backend, executor, debug_logger=quiet_debug_logger)

        outcome = await orchestrator.run_with_state("Build it")

        assert outcome.message.type is StepType.COMPLETE
        retries = backend.sent_payloads()[1:]
        assert [p["type"] for p in retries] == ["step_execution_failed"] * 3
        assert [p["retry_count"] for p in retries] == [1, 2, 1]
        assert [e["step_index"] for e in retries[2]["error_memory"]] == [2]
        assert retries[2]["error_memory"][0]["error"] == "second a"


class TestDocumentationAndContext:
    """Tests for documentation lookups and context accumulation."""

    @pytest.mark.asyncio
    async def test_request_docs_then_complete(self, quiet_debug_logger):
        """Docs are fetched, cached and sent with the next request."""
        backend = ScriptedBackend(
            [
                step(
                    "request_docs",
                    "Need Elementor docs",
                    data={"plugins_needed": ["elementor"], "task": "Build a landing page"},
                ),
                step("complete", "Built"),
            ]
        )
        docs = FakeDocsProvider({"elementor": {"summary": "Page builder", "functions": ["add_widget"]}})
        orchestrator = make_orchestrator(backend, docs=docs, debug_logger=quiet_debug_logger)

        outcome = await orchestrator.run_with_state("Build a landing page with Elementor")

        assert [record.type for record in outcome.message.steps] == ["request_docs", "complete"]
        assert outcome.message.steps[0].display_message == "Researching documentation for: elementor"
        assert backend.calls[0]["documentation"] is None
        assert backend.calls[1]["documentation"] == {
            "elementor": {"summary": "Page builder", "functions": ["add_widget"]}
        }
        continuation = backend.sent_payloads()[1]
        assert continuation["type"] == "documentation_provided"
        assert continuation["docs"] == ["elementor"]
        assert continuation["task"] == "Build a landing page"
        assert outcome.state.documentation == {"elementor": docs.docs["elementor"]}

    @pytest.mark.asyncio
    async def test_checkpoint_values_first_writer_wins(self, quiet_debug_logger):
        """A later checkpoint cannot overwrite an accumulated key."""
        backend = ScriptedBackend(
            [
                step(
                    "checkpoint",
                    data={
                        "completed_step": 1,
                        "total_steps": 3,
                        "next_step": 2,
                        "accumulated_context": {"page_id": 1},
                    },
                ),
                step(
                    "checkpoint",
                    data={
                        "completed_step": 2,
                        "total_steps": 3,
                        "next_step": 3,
                        "accumulated_context": {"page_id": 2, "menu_id": 5},
                    },
                ),
                step("complete", "Done"),
            ]
        )
        orchestrator = make_orchestrator(backend, debug_logger=quiet_debug_logger)

        outcome = await orchestrator.run_with_state("Build it", context={"site_url": "http://x"})

        assert outcome.state.accumulated == {"page_id": 1, "menu_id": 5}
        last_context = backend.calls[2]["context"]
        assert last_context["site_url"] == "http://x"
        assert last_context["page_id"] == 1
        assert last_context["menu_id"] == 5
        assert backend.sent_types() == [None, "execute_roadmap", "execute_roadmap"]
        assert backend.sent_payloads()[2]["step_index"] == 3

    @pytest.mark.asyncio
    async def test_checkpoint_value_outlives_later_execution_result(self, quiet_debug_logger):
        """A key reported at a checkpoint keeps its first value for the rest of the run."""
        backend = ScriptedBackend(
            [
                step(
                    "checkpoint",
                    data={
                        "completed_step": 1,
                        "total_steps": 2,
                        "next_step": 2,
                        "accumulated_context": {"page_id": 5},
                    },
                ),
                step("execute", data={"code": "update_page();"}),
                step("complete", "Done"),
            ]
        )
        executor = ScriptedExecutor([ok("updated", {"page_id": 9, "menu_id": 3})])
        orchestrator = make_orchestrator(backend, executor, debug_logger=quiet_debug_logger)

        await orchestrator.run("Build it")

        context = backend.calls[2]["context"]
        assert context["page_id"] == 5
        assert context["menu_id"] == 3
        assert context["last_result"]["result"] == {"page_id": 9, "menu_id": 3}

    @pytest.mark.asyncio
    @pytest.mark.parametrize("loose", [None, []])
    async def test_checkpoint_with_empty_context_keeps_running(self, loose, quiet_debug_logger):
        """A checkpoint whose context is null or an empty list is accepted."""
        backend = ScriptedBackend(
            [
                step("checkpoint", data={"completed_step": 1, "total_steps": 1, "accumulated_context": loose}),
                step("complete", "Done"),
            ]
        )
        orchestrator = make_orchestrator(backend, debug_logger=quiet_debug_logger)

        outcome = await orchestrator.run_with_state("Build it")

        assert outcome.message.type is StepType.COMPLETE
        assert outcome.state.accumulated == {}
        assert backend.sent_types() == [None, "checkpoint_confirmed"]

    @pytest.mark.asyncio
    async def test_files_sent_on_first_request_only(self, quiet_debug_logger):
        """Attachments travel with the first request and never again."""
        files = [{"name": "logo.png", "type": "image/png", "content": "aGVsbG8="}]
        backend = ScriptedBackend(
            [step("checkpoint", data={"completed_step": 1, "total_steps": 1}), step("complete")]
        )
        orchestrator = make_orchestrator(backend, debug_logger=quiet_debug_logger)

        await orchestrator.run("Use this logo", files=files)

        assert backend.calls[0]["files"] == files
        assert backend.calls[1]["files"] is None


class TestHistoryAndRoadmaps:
    """Tests for history bookkeeping and roadmap policies."""

    @pytest.mark.asyncio
    async def test_exchanges_are_recorded_as_structured_turns(self, quiet_debug_logger):
        """The user message, the step and the continuation enter history."""
        backend = ScriptedBackend(
            [step("checkpoint", "Step 1 done", data={"completed_step": 1, "total_steps": 1}), step("complete")]
        )
        orchestrator = make_orchestrator(backend, debug_logger=quiet_debug_logger)

        outcome = await orchestrator.run_with_state("Start", history=[{"role": "user", "content": "Earlier"}])

        history = outcome.state.history
        assert [turn.role for turn in history] == ["user", "user", "assistant", "user"]
        assert history[1] == ChatTurn(role="user", content="Start")
        assert history[2].control["type"] == "checkpoint"
        assert history[2].content == "Step 1 done"
        assert history[3].control["type"] == "checkpoint_confirmed"
        assert len(backend.calls[1]["history"]) == 4

    @pytest.mark.asyncio
    async def test_compress_history_replaces_old_turns(self, quiet_debug_logger):
        """A compress_history step folds old turns into a summary turn."""
        old = [ChatTurn(role="user" if i % 2 == 0 else "assistant", content=f"turn {i}") for i in range(10)]
        backend = ScriptedBackend(
            [
                step(
                    "compress_history",
                    data={
                        "summary": "Built the home page",
                        "key_facts": [{"key": "home_id", "value": 7}],
                        "preserve_last_messages": 2,
                    },
                ),
                step("complete"),
            ]
        )
        orchestrator = make_orchestrator(backend, debug_logger=quiet_debug_logger)

        await orchestrator.run("Continue", history=old)

        sent = backend.calls[1]["history"]
        assert sent[0].role == "system"
        assert sent[0].content.startswith("=== CONVERSATION SUMMARY ===")
        assert "- home_id: 7" in sent[0].content
        assert sent[1:3] == old[-2:]
        assert len(sent) == 6

    @pytest.mark.asyncio
    async def test_roadmap_confirm_policy_returns_roadmap(self, quiet_debug_logger):
        """Under the confirm policy the roadmap waits for the user."""
        backend = ScriptedBackend(
            [step("roadmap", "Plan", data={"roadmap": [{"title": "Create page"}, {"title": "Add menu"}]})]
        )
        orchestrator = make_orchestrator(backend, debug_logger=quiet_debug_logger)

        final = await orchestrator.run("Build a site")

        assert final.type is StepType.ROADMAP
        assert final.requires_confirmation is True
        assert final.steps[0].display_message == "Created roadmap with 2 steps"
        assert len(backend.calls) == 1

    @pytest.mark.asyncio
    async def test_roadmap_auto_execute_policy_starts_step_one(self, quiet_debug_logger):
        """Under the auto-execute policy step 1 is requested right away."""
        backend = ScriptedBackend(
            [
                step("roadmap", data={"roadmap": [{"title": "Create page"}, {"title": "Add menu"}]}),
                step("complete"),
            ]
        )
        orchestrator = make_orchestrator(backend, debug_logger=quiet_debug_logger)

        await orchestrator.run("Build a site", roadmap_policy=RoadmapPolicy.AUTO_EXECUTE)

        continuation = backend.sent_payloads()[1]
        assert continuation["type"] == "execute_roadmap"
        assert continuation["step_index"] == 1
        assert continuation["total_steps"] == 2
        assert continuation["current_step"]["title"] == "Create page"
        assert continuation["instruction"].startswith("Now execute step 1 of 2")


class TestProgressReporting:
    """Tests for the optional progress sink."""

    @pytest.mark.asyncio
    async def test_one_progress_event_per_iteration(self, quiet_debug_logger):
        backend = ScriptedBackend(
            [step("checkpoint", data={"completed_step": 1, "total_steps": 2}), step("complete", "Done")]
        )
        sink = RecordingProgressSink()
        orchestrator = make_orchestrator(backend, debug_logger=quiet_debug_logger)

        final = await orchestrator.run("Go", progress_sink=sink)

        events = sink.of_type("progress")
        assert [e["iteration"] for e in events] == [1, 2]
        assert [e["phase"] for e in events] == ["execution", "complete"]
        assert events[0]["display_message"] == "Progress: 50% (1/2 steps completed)"
        assert final.type is StepType.COMPLETE

    @pytest.mark.asyncio
    async def test_unreadable_step_counts_do_not_end_run(self, quiet_debug_logger):
        """Non-numeric progress fields only change the display text."""
        backend = ScriptedBackend(
            [
                step("checkpoint", data={"completed_step": "two", "total_steps": 2, "next_step": 2}),
                step("complete", "Done"),
            ]
        )
        sink = RecordingProgressSink()
        orchestrator = make_orchestrator(backend, debug_logger=quiet_debug_logger)

        final = await orchestrator.run("Go", progress_sink=sink)

        assert final.type is StepType.COMPLETE
        assert sink.of_type("progress")[0]["display_message"] == "Progress: 0% (0/2 steps completed)"
        assert backend.sent_types() == [None, "execute_roadmap"]

    @pytest.mark.asyncio
    async def test_failing_sink_does_not_affect_result(self, quiet_debug_logger):
        """Sink errors are ignored; the result matches a run without a sink."""

        class BrokenSink:
            def push(self, event_name, payload):
                raise RuntimeError("socket closed")

        replies = [step("checkpoint", data={"completed_step": 1, "total_steps": 1}), step("complete", "Done")]
        with_sink = await make_orchestrator(ScriptedBackend(replies), debug_logger=quiet_debug_logger).run(
            "Go", progress_sink=BrokenSink()
        )
        without_sink = await make_orchestrator(ScriptedBackend(replies), debug_logger=quiet_debug_logger).run("Go")

        assert with_sink.type is without_sink.type is StepType.COMPLETE
        assert with_sink.message == without_sink.message
        assert [r.type for r in with_sink.steps] == [r.type for r in without_sink.steps]


class TestFromSettings:
    """Tests for settings-driven construction."""

    def test_limits_come_from_settings(self):
        settings = Settings(max_loop_iterations=7, max_retry_attempts=1, preserve_last_messages=2)
        orchestrator = TaskOrchestrator.from_settings(settings, backend=ScriptedBackend([]))

        assert orchestrator.max_loop_iterations == 7
        assert orchestrator.dispatcher.retry_policy.max_retries == 1
        assert orchestrator.dispatcher.compressor.preserve_last_messages == 2
        assert orchestrator.roadmap_policy is RoadmapPolicy.CONFIRM
