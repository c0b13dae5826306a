import json
import tempfile
import unittest
from datetime import datetime, timezone
from pathlib import Path

from agent_insights.errors import ParseError
from agent_insights.models import TOKEN_MAX, AgentKind, FileMetadata
from agent_insights.parsers.platforms.claude_code.parser import parse_session_file as parse_claude
from agent_insights.parsers.platforms.codex.parser import parse_session_file as parse_codex
from agent_insights.parsers.platforms.gemini.parser import parse_chat_file as parse_gemini

_CREATED = datetime(2026, 2, 16, 9, 30, tzinfo=timezone.utc)
_MODIFIED = datetime(2026, 2, 16, 10, 0, tzinfo=timezone.utc)


class _LogFileTestCase(unittest.TestCase):
    def setUp(self) -> None:
        tmpdir = tempfile.TemporaryDirectory()
        self.addCleanup(tmpdir.cleanup)
        self.root = Path(tmpdir.name)

    def _write(self, relative_path: str, text: str) -> FileMetadata:
        path = self.root / relative_path
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text, encoding="utf-8")
        return FileMetadata(
            path=str(path),
            created_at=_CREATED,
            modified_at=_MODIFIED,
            size=path.stat().st_size,
        )

    def _write_jsonl(self, lines: list, relative_path: str = "session.jsonl") -> FileMetadata:
        rendered = [line if isinstance(line, str) else json.dumps(line) for line in lines]
        return self._write(relative_path, "\n".join(rendered))


class ClaudeCodeParserTests(_LogFileTestCase):
    def test_usage_deltas_are_summed_and_bad_lines_skipped(self) -> None:
        file = self._write_jsonl(
            [
                {"sessionId": "abc", "message": {"usage": {"input_tokens": 10, "output_tokens": 5}}},
                {"message": {"usage": {"input_tokens": 20, "output_tokens": 0}}},
                "{not valid json",
                {"message": {"usage": {"input_tokens": 5, "output_tokens": 5}}},
            ]
        )

        record = parse_claude(file)

        self.assertEqual(record.agent, AgentKind.CLAUDE)
        self.assertIsNotNone(record.tokens)
        assert record.tokens is not None
        self.assertEqual(record.tokens.input, 35)
        self.assertEqual(record.tokens.output, 10)
        self.assertEqual(record.tokens.total, 45)

    def test_cache_counters_are_part_of_total(self) -> None:
        file = self._write_jsonl(
            [
                {
                    "type": "assistant",
                    "message": {
                        "usage": {
                            "input_tokens": 3,
                            "output_tokens": 4,
                            "cache_read_input_tokens": 100,
                            "cache_creation_input_tokens": 20,
                        }
                    },
                },
                {"usage": {"input_tokens": 1, "output_tokens": 1, "cache_read_input_tokens": 5}},
            ]
        )

        tokens = parse_claude(file).tokens

        assert tokens is not None
        self.assertEqual(tokens.cached, 105)
        self.assertEqual(tokens.cache_creation, 20)
        self.assertEqual(tokens.reasoning, 0)
        self.assertEqual(tokens.total, 4 + 5 + 105 + 20)

    def test_session_id_is_first_seen_and_never_overwritten(self) -> None:
        file = self._write_jsonl(
            [
                {"type": "summary"},
                {"session_id": "first"},
                {"sessionId": "second"},
            ]
        )

        self.assertEqual(parse_claude(file).session_id, "first")

    def test_tool_calls_keep_order_and_duplicates(self) -> None:
        file = self._write_jsonl(
            [
                {
                    "message": {
                        "content": [
                            {"type": "text", "text": "hi"},
                            {"type": "tool_use", "id": "t1", "name": "Read"},
                            {"type": "tool_use", "id": "t2", "name": "Bash"},
                        ]
                    }
                },
                {"message": {"content": "plain string content"}},
                {"message": {"content": [{"type": "tool_use", "id": "t3", "name": "Read"}]}},
            ]
        )

        self.assertEqual(parse_claude(file).tool_calls, ["Read", "Bash", "Read"])

    def test_no_usage_means_no_tokens(self) -> None:
        file = self._write_jsonl(
            [
                {"message": {"usage": {"input_tokens": 0, "output_tokens": 0, "cache_read_input_tokens": 50}}},
            ]
        )

        record = parse_claude(file)

        self.assertIsNone(record.tokens)

    def test_record_carries_file_metadata(self) -> None:
        file = self._write_jsonl([{"sessionId": "s1"}])

        record = parse_claude(file)

        self.assertEqual(record.file_path, file.path)
        self.assertEqual(record.created_at, _CREATED)
        self.assertEqual(record.modified_at, _MODIFIED)
        self.assertEqual(record.file_size, file.size)

    def test_counters_saturate_instead_of_overflowing(self) -> None:
        file = self._write_jsonl(
            [
                {"usage": {"input_tokens": TOKEN_MAX, "output_tokens": 1}},
                {"usage": {"input_tokens": TOKEN_MAX, "output_tokens": 1}},
            ]
        )

        tokens = parse_claude(file).tokens

        assert tokens is not None
        self.assertEqual(tokens.input, TOKEN_MAX)
        self.assertEqual(tokens.total, TOKEN_MAX)

    def test_oversized_and_deeply_nested_lines_are_skipped(self) -> None:
        file = self._write_jsonl(
            [
                {"message": {"usage": {"input_tokens": 10, "output_tokens": 5}}},
                '{"x": ' + "9" * 5000 + "}",
                "[" * 100_000 + "]" * 100_000,
                {"message": {"usage": {"input_tokens": 1, "output_tokens": 1}}},
            ]
        )

        tokens = parse_claude(file).tokens

        assert tokens is not None
        self.assertEqual((tokens.input, tokens.output), (11, 6))

    def test_non_integer_counts_are_ignored(self) -> None:
        file = self._write_jsonl(
            [
                {"usage": {"input_tokens": "12", "output_tokens": True}},
                {"usage": {"input_tokens": -4, "output_tokens": 2.5}},
                {"usage": {"input_tokens": 7, "output_tokens": 1}},
            ]
        )

        tokens = parse_claude(file).tokens

        assert tokens is not None
        self.assertEqual((tokens.input, tokens.output), (7, 1))

    def test_unreadable_file_raises_parse_error(self) -> None:
        missing = FileMetadata(
            path=str(self.root / "gone.jsonl"),
            created_at=_CREATED,
            modified_at=_MODIFIED,
        )
        with self.assertRaises(ParseError):
            parse_claude(missing)

    def test_invalid_utf8_raises_parse_error(self) -> None:
        path = self.root / "binary.jsonl"
        path.write_bytes(b"\xff\xfe\x00garbage")
        file = FileMetadata(path=str(path), created_at=_CREATED, modified_at=_MODIFIED, size=7)

        with self.assertRaises(ParseError):
            parse_claude(file)


class CodexParserTests(_LogFileTestCase):
    def _token_count(self, **usage: int) -> dict:
        return {
            "type": "event_msg",
            "payload": {"type": "token_count", "info": {"total_token_usage": usage}},
        }

    def test_latest_snapshot_replaces_earlier_ones(self) -> None:
        file = self._write_jsonl(
            [
                {"type": "session_meta", "payload": {"id": "rollout-1"}},
                self._token_count(input_tokens=60, output_tokens=40, total_tokens=100),
                self._token_count(
                    input_tokens=150,
                    cached_input_tokens=30,
                    output_tokens=100,
                    reasoning_output_tokens=20,
                    total_tokens=250,
                ),
            ]
        )

        record = parse_codex(file)

        self.assertEqual(record.agent, AgentKind.CODEX)
        self.assertEqual(record.session_id, "rollout-1")
        assert record.tokens is not None
        self.assertEqual(record.tokens.total, 250)
        self.assertEqual(record.tokens.input, 150)
        self.assertEqual(record.tokens.output, 100)
        self.assertEqual(record.tokens.cached, 30)
        self.assertEqual(record.tokens.reasoning, 20)
        self.assertEqual(record.tokens.cache_creation, 0)

    def test_reported_total_is_trusted_verbatim(self) -> None:
        file = self._write_jsonl(
            [self._token_count(input_tokens=10, output_tokens=10, reasoning_output_tokens=5, total_tokens=999)]
        )

        tokens = parse_codex(file).tokens

        assert tokens is not None
        self.assertEqual(tokens.total, 999)

    def test_fields_missing_from_a_snapshot_keep_previous_value(self) -> None:
        file = self._write_jsonl(
            [
                self._token_count(input_tokens=10, output_tokens=5, reasoning_output_tokens=3, total_tokens=15),
                self._token_count(input_tokens=20, output_tokens=9, total_tokens=29),
            ]
        )

        tokens = parse_codex(file).tokens

        assert tokens is not None
        self.assertEqual(tokens.reasoning, 3)
        self.assertEqual(tokens.total, 29)

    def test_tool_calls_and_session_meta(self) -> None:
        file = self._write_jsonl(
            [
                {"type": "session_meta", "payload": {"id": "first"}},
                {"type": "response_item", "payload": {"type": "custom_tool_call", "name": "apply_patch"}},
                {"type": "response_item", "payload": {"type": "message", "name": "ignored"}},
                "garbage line",
                {"type": "session_meta", "payload": {"id": "second"}},
                {"type": "response_item", "payload": {"type": "custom_tool_call", "name": "apply_patch"}},
                {"type": "event_msg", "payload": {"type": "agent_message"}},
            ]
        )

        record = parse_codex(file)

        self.assertEqual(record.session_id, "first")
        self.assertEqual(record.tool_calls, ["apply_patch", "apply_patch"])
        self.assertIsNone(record.tokens)

    def test_oversized_snapshot_values_are_clamped(self) -> None:
        file = self._write_jsonl(
            [self._token_count(input_tokens=2**64, output_tokens=1, total_tokens=2**63)]
        )

        tokens = parse_codex(file).tokens

        assert tokens is not None
        self.assertEqual(tokens.input, TOKEN_MAX)
        self.assertEqual(tokens.total, TOKEN_MAX)

    def test_token_count_without_info_is_ignored(self) -> None:
        file = self._write_jsonl(
            [
                {"type": "event_msg", "payload": {"type": "token_count", "info": None}},
                self._token_count(input_tokens=1, output_tokens=2, total_tokens=3),
            ]
        )

        tokens = parse_codex(file).tokens

        assert tokens is not None
        self.assertEqual(tokens.total, 3)


class GeminiParserTests(_LogFileTestCase):
    def _write_chat(self, document, relative_path: str = "proj/chats/session-1.json") -> FileMetadata:
        text = document if isinstance(document, str) else json.dumps(document)
        return self._write(relative_path, text)

    def test_output_folds_thoughts_and_tool_tokens(self) -> None:
        file = self._write_chat(
            {
                "sessionId": "g-1",
                "messages": [
                    {"type": "user", "content": "hi"},
                    {
                        "type": "gemini",
                        "tokens": {"input": 100, "output": 10, "cached": 40, "thoughts": 7, "tool": 3},
                        "toolCalls": [{"name": "read_file"}, {"name": "run_shell_command"}],
                    },
                    {
                        "type": "gemini",
                        "tokens": {"input": 50, "output": 5, "cached": 0, "thoughts": 0, "tool": 0},
                        "toolCalls": [{"name": "read_file"}],
                    },
                ],
            }
        )

        record = parse_gemini(file)

        self.assertEqual(record.agent, AgentKind.GEMINI)
        self.assertEqual(record.session_id, "g-1")
        self.assertEqual(record.tool_calls, ["read_file", "run_shell_command", "read_file"])
        assert record.tokens is not None
        self.assertEqual(record.tokens.input, 150)
        self.assertEqual(record.tokens.output, 15 + 7 + 3)
        self.assertEqual(record.tokens.cached, 40)
        self.assertEqual(record.tokens.total, 150 + 25 + 40)
        self.assertEqual(record.tokens.cache_creation, 0)
        self.assertEqual(record.tokens.reasoning, 0)

    def test_session_id_alias(self) -> None:
        file = self._write_chat({"session_id": "snake", "messages": []})

        record = parse_gemini(file)

        self.assertEqual(record.session_id, "snake")
        self.assertIsNone(record.tokens)
        self.assertEqual(record.tool_calls, [])

    def test_invalid_document_raises_parse_error(self) -> None:
        file = self._write_chat('{"sessionId": "broken", "messages": [')

        with self.assertRaises(ParseError):
            parse_gemini(file)

    def test_undecodable_nesting_raises_parse_error(self) -> None:
        file = self._write_chat('{"messages": ' + "[" * 100_000 + "]" * 100_000 + "}")

        with self.assertRaises(ParseError):
            parse_gemini(file)

    def test_non_object_document_raises_parse_error(self) -> None:
        file = self._write_chat("[1, 2, 3]")

        with self.assertRaises(ParseError):
            parse_gemini(file)

    def test_thoughts_alone_do_not_create_usage(self) -> None:
        file = self._write_chat({"messages": [{"tokens": {"input": 0, "output": 0, "thoughts": 9}}]})

        self.assertIsNone(parse_gemini(file).tokens)


if __name__ == "__main__":
    unittest.main()
