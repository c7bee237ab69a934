"""Tests for the composer (modern format) adapter."""

import logging

import pytest

from cursor_extractor.processor.adapters import ComposerAdapter
from cursor_extractor.processor.adapters.base import generate_stable_id


@pytest.fixture
def adapter() -> ComposerAdapter:
    """Create a fresh adapter instance."""
    return ComposerAdapter()


@pytest.fixture
def sample_composer() -> dict:
    """A composer entry with a two-message conversation."""
    return {
        "title": "Refactor the parser",
        "tags": ["work"],
        "starred": True,
        "workspaceName": "myproject",
        "conversation": [
            {
                "type": "user",
                "text": "How do I parse JSON?\n```python\nimport json\n```",
                "timestamp": 1700000000000,
                "bubbleId": "b1",
            },
            {
                "type": "ai",
                "text": "Use json.loads:\n```python\njson.loads(s)\n```",
                "timestamp": 1700000005000,
                "bubbleId": "b2",
                "messageType": "answer",
            },
        ],
    }


class TestComposerExtraction:
    """Tests for well-formed composer entries."""

    def test_extracts_thread_and_messages(self, adapter, sample_composer, make_state_db, open_reader) -> None:
        db = make_state_db({"composerData:abc": sample_composer})

        result = adapter.extract(open_reader(db), "ws1")

        assert len(result.threads) == 1
        assert len(result.messages) == 2
        assert result.skipped == 0

        thread = result.threads[0]
        assert thread.id == generate_stable_id("ws1", "composer", "abc", "1700000000000")
        assert thread.title == "Refactor the parser"
        assert thread.workspace_id == "ws1"
        assert thread.workspace_name == "myproject"
        assert thread.created_at == 1700000000000
        assert thread.updated_at == 1700000005000
        assert thread.message_count == 2
        assert thread.last_message.startswith("Use json.loads")
        assert thread.metadata == {
            "source": "composer",
            "composerId": "abc",
            "originalData": {"title": "Refactor the parser", "tags": ["work"], "starred": True},
        }

    def test_message_fields(self, adapter, sample_composer, make_state_db, open_reader) -> None:
        db = make_state_db({"composerData:abc": sample_composer})

        result = adapter.extract(open_reader(db), "ws1")
        user, assistant = result.messages
        thread_id = result.threads[0].id

        assert user.role == "user"
        assert assistant.role == "assistant"
        assert user.thread_id == assistant.thread_id == thread_id
        assert user.id == generate_stable_id(thread_id, "user", "0")
        assert assistant.id == generate_stable_id(thread_id, "assistant", "1")
        assert [b.content for b in user.code_blocks] == ["import json"]
        assert assistant.code_blocks[0].language == "python"
        assert user.metadata == {"originalIndex": 0, "composerId": "abc", "bubbleId": "b1"}
        assert assistant.metadata["messageType"] == "answer"

    def test_messages_and_history_keys(self, adapter, make_state_db, open_reader) -> None:
        """Should accept messages/history as the conversation array."""
        db = make_state_db(
            {
                "composerData:m": {"messages": [{"role": "user", "content": "a", "timestamp": 10}]},
                "composerData:h": {"history": [{"sender": "bot", "message": "b", "timestamp": 20}]},
            }
        )

        result = adapter.extract(open_reader(db), "ws1")

        assert sorted(m.content for m in result.messages) == ["a", "b"]
        assert {m.role for m in result.messages} == {"user", "assistant"}

    def test_single_nested_conversation_object(self, adapter, make_state_db, open_reader) -> None:
        db = make_state_db({"composerData:one": {"conversation": {"text": "solo", "timestamp": 5}}})

        result = adapter.extract(open_reader(db), "ws1")

        assert len(result.threads) == 1
        assert result.messages[0].content == "solo"
        assert result.threads[0].title == "solo"

    def test_bare_prompt_response_pair(self, adapter, make_state_db, open_reader) -> None:
        db = make_state_db(
            {"composerData:p": {"prompt": "Write a test", "response": "Done", "timestamp": 1000}}
        )

        result = adapter.extract(open_reader(db), "ws1")

        assert len(result.threads) == 1
        user, assistant = result.messages
        assert (user.role, user.content, user.timestamp) == ("user", "Write a test", 1000)
        assert (assistant.role, assistant.content, assistant.timestamp) == ("assistant", "Done", 1001)
        assert result.threads[0].id == generate_stable_id("ws1", "composer", "p", "1000")
        assert result.threads[0].message_count == 2

    def test_global_workspace_threads_have_no_workspace(self, adapter, sample_composer, make_state_db, open_reader) -> None:
        db = make_state_db({"composerData:abc": sample_composer})

        result = adapter.extract(open_reader(db), "_global_")

        assert result.threads[0].workspace_id is None

    def test_title_falls_back_to_first_message(self, adapter, make_state_db, open_reader) -> None:
        db = make_state_db(
            {"composerData:x": {"conversation": [{"text": "## Explain decorators\nplease", "timestamp": 1}]}}
        )

        result = adapter.extract(open_reader(db), "ws1")

        assert result.threads[0].title == "Explain decorators"

    def test_ids_are_stable_across_extractions(self, adapter, sample_composer, make_state_db, open_reader) -> None:
        db = make_state_db({"composerData:abc": sample_composer})

        first = adapter.extract(open_reader(db), "ws1")
        second = adapter.extract(open_reader(db), "ws1")

        assert [t.id for t in first.threads] == [t.id for t in second.threads]
        assert [m.id for m in first.messages] == [m.id for m in second.messages]

    def test_updated_at_never_before_created_at(self, adapter, make_state_db, open_reader) -> None:
        """Out-of-order source timestamps should not invert the thread range."""
        db = make_state_db(
            {
                "composerData:x": {
                    "conversation": [
                        {"text": "second", "timestamp": 200},
                        {"text": "first", "timestamp": 100},
                    ]
                }
            }
        )

        thread = adapter.extract(open_reader(db), "ws1").threads[0]

        assert thread.created_at == 100
        assert thread.updated_at == 200
        assert thread.last_message == "second"


class TestComposerTolerance:
    """Tests for malformed and empty entries."""

    def test_empty_conversation_yields_nothing(self, adapter, make_state_db, open_reader) -> None:
        db = make_state_db({"composerData:empty": {"conversation": []}})

        result = adapter.extract(open_reader(db), "ws1")

        assert result.threads == []
        assert result.skipped == 0

    def test_invalid_json_skipped_without_affecting_others(
        self, adapter, sample_composer, make_state_db, open_reader, caplog
    ) -> None:
        db = make_state_db({"composerData:bad": "{not json", "composerData:abc": sample_composer})

        with caplog.at_level(logging.WARNING):
            result = adapter.extract(open_reader(db), "ws1")

        assert len(result.threads) == 1
        assert len(result.messages) == 2
        assert result.skipped == 1
        assert "composerData:bad" in caplog.text

    def test_non_object_value_skipped(self, adapter, make_state_db, open_reader) -> None:
        db = make_state_db({"composerData:list": [1, 2, 3]})

        result = adapter.extract(open_reader(db), "ws1")

        assert result.threads == []
        assert result.skipped == 1

    def test_unrecognized_conversation_shape_skipped(self, adapter, make_state_db, open_reader) -> None:
        db = make_state_db({"composerData:s": {"conversation": "just a string"}})

        result = adapter.extract(open_reader(db), "ws1")

        assert result.threads == []
        assert result.skipped == 1

    def test_malformed_message_skipped_others_kept(self, adapter, make_state_db, open_reader) -> None:
        """A bad message should be skipped while its siblings survive with their indexes."""
        db = make_state_db(
            {
                "composerData:x": {
                    "conversation": [
                        {"text": "ok", "timestamp": 1},
                        {"text": {"rich": "object"}, "timestamp": 2},
                        "not an object",
                        None,
                        {"timestamp": 3},
                        {"type": "ai", "text": "also ok", "timestamp": 4},
                    ]
                }
            }
        )

        result = adapter.extract(open_reader(db), "ws1")

        assert [m.content for m in result.messages] == ["ok", "also ok"]
        assert [m.metadata["originalIndex"] for m in result.messages] == [0, 5]
        assert result.skipped == 2
        assert result.threads[0].message_count == 2

    def test_injected_logger_receives_warnings(self, make_state_db, open_reader, caplog) -> None:
        logger = logging.getLogger("test.injected.composer")
        adapter = ComposerAdapter(logger=logger)
        db = make_state_db({"composerData:bad": "{"})

        with caplog.at_level(logging.WARNING, logger="test.injected.composer"):
            adapter.extract(open_reader(db), "ws1")

        assert any(r.name == "test.injected.composer" for r in caplog.records)

    def test_ignores_other_keys(self, adapter, make_state_db, open_reader) -> None:
        db = make_state_db({"aiService.prompts": [{"prompt": "x"}], "composerDataX": {"prompt": "y"}})

        assert adapter.extract(open_reader(db), "ws1").threads == []
