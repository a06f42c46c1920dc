import json
from unittest.mock import Mock

import httpx
from openai import OpenAI

from toolchat.core import ConversationEngine, EngineState, SessionContext, TurnStatus
from toolchat.core.engine import NOTICE, TOOL_OUTPUT, WARNING
from toolchat.core.providers import OpenAIStyleAdapter, ProviderError
from toolchat.core.tools import InvalidDirective, SearchResult, ShellResult, run_shell_command

from .test_base import BaseToolChatTest


class TestPlainTurns(BaseToolChatTest):
    def test_single_turn_through_openai_adapter(self):
        """A plain reply is final; only the user message and reply are stored"""
        requests = []

        def handler(request):
            requests.append(request)
            return httpx.Response(200, json={"choices": [{"message": {"content": "4"}}]})

        sdk = OpenAI(
            api_key="sk-test",
            base_url=self.config.base_url,
            http_client=httpx.Client(transport=httpx.MockTransport(handler)),
            max_retries=0,
        )
        adapter = OpenAIStyleAdapter(self.config, client=sdk)
        engine = ConversationEngine(SessionContext(config=self.config), adapter, self.store)

        result = engine.handle_input("2+2?")

        self.assertEqual(result.status, TurnStatus.COMPLETED)
        self.assertEqual(result.reply, "4")
        self.assertEqual(
            self.persisted(engine), [("user", "2+2?"), ("assistant", "4")]
        )
        body = json.loads(requests[0].content)
        self.assertEqual(
            body["messages"],
            [
                {"role": "system", "content": "You are an AI assistant powered by the gpt-4-turbo model."},
                {"role": "user", "content": "2+2?"},
            ],
        )

    def test_history_starts_with_single_system_message(self):
        engine = self.make_engine([])
        self.assertEqual(len(engine.history), 1)
        self.assertEqual(engine.history[0].role, "system")
        self.assertEqual(engine.state, EngineState.AWAITING_INPUT)

    def test_session_is_registered_on_start(self):
        engine = self.make_engine([])
        self.assertIn(engine.session_id, [s.id for s in self.store.list_sessions()])

    def test_empty_input_is_ignored(self):
        engine = self.make_engine([])
        result = engine.handle_input("   ")

        self.assertEqual(result.status, TurnStatus.EMPTY)
        self.assertEqual(self.client.calls, [])
        self.assertEqual(self.persisted(engine), [])
        self.assertEqual(len(engine.history), 1)

    def test_exit_and_quit_end_the_session(self):
        for word in ("exit", "QUIT", " Exit "):
            engine = self.make_engine([])
            result = engine.handle_input(word)
            self.assertEqual(result.status, TurnStatus.EXIT)
            self.assertTrue(engine.ended)
            self.assertEqual(engine.state, EngineState.SESSION_ENDED)
            self.assertEqual(self.persisted(engine), [])

    def test_input_after_exit_is_rejected(self):
        engine = self.make_engine([])
        engine.handle_input("exit")
        with self.assertRaises(RuntimeError):
            engine.handle_input("hello")

    def test_model_failure_keeps_user_message(self):
        engine = self.make_engine([ProviderError("API Error: boom (500)", status_code=500)])

        result = engine.handle_input("hello")

        self.assertEqual(result.status, TurnStatus.FAILED)
        self.assertIn("500", result.error)
        self.assertEqual(self.persisted(engine), [("user", "hello")])
        self.assertEqual(engine.history[-1].content, "hello")
        self.assertEqual(engine.state, EngineState.AWAITING_INPUT)

    def test_turns_accumulate_in_order(self):
        engine = self.make_engine(["Hi there!", "I'm doing well!"])
        engine.handle_input("Hello")
        engine.handle_input("How are you?")

        self.assertEqual(
            self.persisted(engine),
            [
                ("user", "Hello"),
                ("assistant", "Hi there!"),
                ("user", "How are you?"),
                ("assistant", "I'm doing well!"),
            ],
        )
        self.assertEqual(len(self.client.calls[1]), 4)

    def test_search_directive_is_plain_text_when_search_disabled(self):
        searcher = Mock()
        engine = self.make_engine(["[SEARCH: capital of France]"], searcher=searcher)

        result = engine.handle_input("capital?")

        self.assertEqual(result.status, TurnStatus.COMPLETED)
        self.assertEqual(result.reply, "[SEARCH: capital of France]")
        searcher.assert_not_called()
        self.assertEqual(len(self.client.calls), 1)


class TestToolTurns(BaseToolChatTest):
    def test_search_round_trip(self):
        """The directive and search result are context only, never stored"""
        searcher = Mock(return_value="Paris is the capital.")
        engine = self.make_engine(
            ["[SEARCH: capital of France]", "The capital of France is Paris."],
            web_search=True,
            searcher=searcher,
        )

        result = engine.handle_input("What is the capital of France?")

        searcher.assert_called_once_with("capital of France")
        self.assertEqual(result.status, TurnStatus.COMPLETED)
        self.assertEqual(result.reply, "The capital of France is Paris.")
        self.assertIsInstance(result.tool, SearchResult)

        second_call = self.client.calls[1]
        self.assertEqual(second_call[-2].role, "assistant")
        self.assertEqual(second_call[-2].content, "[SEARCH: capital of France]")
        self.assertEqual(second_call[-1].role, "system")
        self.assertEqual(
            second_call[-1].content,
            "Web search results for 'capital of France':\nParis is the capital.",
        )

        # the stored log skips the intermediate directive
        self.assertEqual(
            self.persisted(engine),
            [
                ("user", "What is the capital of France?"),
                ("assistant", "The capital of France is Paris."),
            ],
        )
        self.assertEqual(
            [m.role for m in engine.history],
            ["system", "user", "assistant", "system", "assistant"],
        )
        self.assertIn((NOTICE, "Searching the web for: capital of France"), self.notifications)

    def test_shell_round_trip(self):
        engine = self.make_engine(
            ["[RUN_COMMAND echo hi]", "The command printed hi."],
            shell_runner=run_shell_command,
        )

        result = engine.handle_input("say hi")

        self.assertEqual(result.tool, ShellResult("echo hi", "hi\n"))
        self.assertEqual(self.client.calls[1][-1].content, "Command output:\nhi\n")
        self.assertEqual(
            self.persisted(engine),
            [("user", "say hi"), ("assistant", "The command printed hi.")],
        )
        self.assertIn((NOTICE, "Running command: echo hi"), self.notifications)
        self.assertIn((TOOL_OUTPUT, "hi\n"), self.notifications)

    def test_shell_directive_works_without_web_search(self):
        runner = Mock(return_value="file.txt\n")
        engine = self.make_engine(["[run_command ls]", "There is one file."], shell_runner=runner)

        result = engine.handle_input("list files")

        runner.assert_called_once_with("ls")
        self.assertEqual(result.reply, "There is one file.")

    def test_empty_command_is_reported_without_follow_up(self):
        runner = Mock()
        engine = self.make_engine(["[RUN_COMMAND]"], shell_runner=runner)

        result = engine.handle_input("run something")

        self.assertEqual(result.status, TurnStatus.INVALID_DIRECTIVE)
        self.assertIsInstance(result.tool, InvalidDirective)
        runner.assert_not_called()
        # only the call that produced the directive; no follow-up
        self.assertEqual(len(self.client.calls), 1)
        # no assistant message stored for this input
        self.assertEqual(self.persisted(engine), [("user", "run something")])
        self.assertEqual(engine.history[-1].role, "user")
        self.assertEqual(self.notifications, [(WARNING, "No command provided for [RUN_COMMAND].")])
        self.assertEqual(engine.state, EngineState.AWAITING_INPUT)

    def test_follow_up_failure_leaves_unsaved_context(self):
        """Known inconsistency: the unsaved directive/result pair stays in context"""
        runner = Mock(return_value="ok\n")
        engine = self.make_engine(
            ["[RUN_COMMAND true]", ProviderError("API Error: overloaded (503)", status_code=503), "Done."],
            shell_runner=runner,
        )

        result = engine.handle_input("first")
        self.assertEqual(result.status, TurnStatus.FAILED)
        self.assertIsInstance(result.tool, ShellResult)
        self.assertEqual(self.persisted(engine), [("user", "first")])

        engine.handle_input("second")
        third_call = self.client.calls[2]
        self.assertEqual(
            [m.role for m in third_call],
            ["system", "user", "assistant", "system", "user"],
        )
        self.assertEqual(third_call[2].content, "[RUN_COMMAND true]")
        self.assertEqual(
            self.persisted(engine),
            [("user", "first"), ("user", "second"), ("assistant", "Done.")],
        )

    def test_unrunnable_command_still_gets_follow_up(self):
        engine = self.make_engine(
            ["[RUN_COMMAND echo a\x00b]", "That command could not run."],
            shell_runner=run_shell_command,
        )

        result = engine.handle_input("go")

        self.assertEqual(result.status, TurnStatus.COMPLETED)
        self.assertEqual(result.reply, "That command could not run.")
        self.assertTrue(result.tool.output.startswith("Failed to execute command:"))
        self.assertTrue(
            self.client.calls[1][-1].content.startswith("Command output:\nFailed to execute command:")
        )
        self.assertEqual(engine.state, EngineState.AWAITING_INPUT)

    def test_follow_up_reply_is_not_inspected_again(self):
        runner = Mock(return_value="")
        engine = self.make_engine(
            ["[RUN_COMMAND ls]", "[RUN_COMMAND ls -la]"], shell_runner=runner
        )

        result = engine.handle_input("look around")

        runner.assert_called_once_with("ls")
        self.assertEqual(result.reply, "[RUN_COMMAND ls -la]")
        self.assertEqual(len(self.client.calls), 2)

    def test_quoted_directive_is_detected(self):
        runner = Mock(return_value="x\n")
        engine = self.make_engine(["`[RUN_COMMAND echo x]`", "Printed x."], shell_runner=runner)

        engine.handle_input("go")

        runner.assert_called_once_with("echo x")

    def test_tool_prompt_declares_directives(self):
        engine = self.make_engine([], web_search=True)
        prompt = engine.history[0].content
        self.assertIn("[RUN_COMMAND <command to run>]", prompt)
        self.assertIn("[SEARCH: your query]", prompt)
        self.assertIn("MUST be ONLY the tool command", prompt)
