"""Tests for the base adapter interface and shared helpers."""

import hashlib

import pytest

from cursor_extractor.collector.reader import ItemEntry
from cursor_extractor.errors import MalformedRecordError
from cursor_extractor.models import CodeBlock, Message
from cursor_extractor.processor.adapters import (
    AdapterRegistry,
    ChatDataAdapter,
    ComposerAdapter,
)
from cursor_extractor.processor.adapters.base import (
    TITLE_PLACEHOLDER,
    build_thread_stats,
    coerce_timestamp,
    extract_code_blocks,
    generate_stable_id,
    generate_thread_title,
    normalize_role,
    parse_json_value,
    preview,
    thread_workspace_id,
)


class TestGenerateStableId:
    """Tests for generate_stable_id function."""

    def test_deterministic(self) -> None:
        """Same parts should always produce the same ID."""
        assert generate_stable_id("ws", "composer", "abc", "1000") == generate_stable_id(
            "ws", "composer", "abc", "1000"
        )

    def test_matches_truncated_sha256(self) -> None:
        """Should be the first 16 hex chars of SHA-256 over '|'-joined parts."""
        expected = hashlib.sha256(b"ws|composer|abc").hexdigest()[:16]
        assert generate_stable_id("ws", "composer", "abc") == expected

    def test_distinct_across_adapters_and_workspaces(self) -> None:
        """Changing any part should change the ID."""
        ids = {
            generate_stable_id("ws1", "composer", "0", "1000"),
            generate_stable_id("ws1", "chatdata", "0", "1000"),
            generate_stable_id("ws2", "composer", "0", "1000"),
            generate_stable_id("ws1", "composer", "1", "1000"),
        }
        assert len(ids) == 4


class TestNormalizeRole:
    """Tests for the role heuristic."""

    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("user", "user"),
            ("HUMAN", "user"),
            ("assistant", "assistant"),
            ("ai", "assistant"),
            ("Cursor", "assistant"),
            ("bot", "assistant"),
            ("system", "system"),
            ("tool_result", "tool"),
            ("function", "tool"),
        ],
    )
    def test_known_roles(self, raw: str, expected: str) -> None:
        assert normalize_role(raw) == expected

    @pytest.mark.parametrize("raw", [None, "", "narrator", 2, True])
    def test_defaults_to_user(self, raw: object) -> None:
        """Missing or unrecognized roles fall back to user."""
        assert normalize_role(raw) == "user"


class TestCoerceTimestamp:
    """Tests for coerce_timestamp function."""

    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            (1700000000000, 1700000000000),
            (1.5e12, 1500000000000),
            ("1000", 1000),
            (0, None),
            (-5, None),
            ("soon", None),
            (True, None),
            (None, None),
            ({"ms": 1}, None),
        ],
    )
    def test_coercion(self, raw: object, expected: int | None) -> None:
        assert coerce_timestamp(raw) == expected


class TestExtractCodeBlocks:
    """Tests for extract_code_blocks function."""

    def test_no_fences(self) -> None:
        assert extract_code_blocks("just prose") == []

    def test_blocks_in_source_order(self) -> None:
        """Should capture each fenced region with its language."""
        content = "Intro\n```python\nprint('hi')\n```\ntext\n```\nplain\n```\n```sql\nSELECT 1;\n```"

        blocks = extract_code_blocks(content)

        assert blocks == [
            CodeBlock(language="python", content="print('hi')"),
            CodeBlock(language="text", content="plain"),
            CodeBlock(language="sql", content="SELECT 1;"),
        ]

    def test_content_is_trimmed(self) -> None:
        blocks = extract_code_blocks("```js\n\n  const a = 1;  \n\n```")
        assert blocks[0].content == "const a = 1;"

    def test_language_with_filename(self) -> None:
        """Should split 'lang:path' info strings."""
        blocks = extract_code_blocks("```ts:src/app.ts\nconst a = 1;\n```")
        assert blocks == [CodeBlock(language="ts", content="const a = 1;", filename="src/app.ts")]

    def test_line_range_citation(self) -> None:
        """Should treat 'start:end:path' as a filename with no language."""
        blocks = extract_code_blocks("```12:20:src/app.ts\nx = 1\n```")
        assert blocks == [CodeBlock(language="text", content="x = 1", filename="src/app.ts")]

    def test_unterminated_fence_ignored(self) -> None:
        assert extract_code_blocks("```python\nprint(1)") == []

    def test_count_matches_fences(self) -> None:
        """N well-formed regions should yield N blocks."""
        content = "\n".join(f"```lang{i}\nbody {i}\n```" for i in range(5))

        blocks = extract_code_blocks(content)

        assert [b.language for b in blocks] == [f"lang{i}" for i in range(5)]
        assert [b.content for b in blocks] == [f"body {i}" for i in range(5)]


class TestGenerateThreadTitle:
    """Tests for generate_thread_title function."""

    def test_explicit_title_wins(self) -> None:
        assert generate_thread_title("  My title ", "# ignored") == "My title"

    def test_blank_explicit_title_ignored(self) -> None:
        assert generate_thread_title("   ", "Hello there") == "Hello there"

    def test_strips_markup(self) -> None:
        assert generate_thread_title(None, "# Fix the bug\nmore detail") == "Fix the bug"
        assert generate_thread_title(None, "> - * quoted") == "quoted"

    def test_fence_opener_looks_ahead(self) -> None:
        """Should use the first non-fence line after a fence opener."""
        assert generate_thread_title(None, "```python\n\nprint(1)\n```") == "print(1)"

    def test_truncates_long_titles(self) -> None:
        title = generate_thread_title(None, "a" * 80)

        assert len(title) == 60
        assert title == "a" * 57 + "..."

    def test_placeholder_when_nothing_usable(self) -> None:
        assert generate_thread_title(None, "   ") == TITLE_PLACEHOLDER
        assert generate_thread_title(None, "```\n```") == TITLE_PLACEHOLDER

    def test_non_string_explicit_title_ignored(self) -> None:
        assert generate_thread_title(42, "Question") == "Question"


class TestMiscHelpers:
    """Tests for the small shared helpers."""

    def test_preview_truncates_to_100(self) -> None:
        assert preview("x" * 150) == "x" * 100
        assert preview("short") == "short"

    def test_global_workspace_has_no_thread_workspace(self) -> None:
        assert thread_workspace_id("_global_") is None
        assert thread_workspace_id("abc") == "abc"

    def test_parse_json_value(self) -> None:
        assert parse_json_value(ItemEntry("k", '{"a": 1}')) == {"a": 1}

    def test_parse_json_value_invalid(self) -> None:
        with pytest.raises(MalformedRecordError) as exc_info:
            parse_json_value(ItemEntry("bad", "{not json"))
        assert exc_info.value.key == "bad"

    def test_build_thread_stats_uses_timestamp_order(self) -> None:
        """Stats should follow timestamps, not source order."""
        messages = [
            Message(id="2", thread_id="t", role="assistant", content="later", timestamp=300),
            Message(id="1", thread_id="t", role="user", content="earlier", timestamp=100),
        ]

        stats = build_thread_stats(messages)

        assert stats.created_at == 100
        assert stats.updated_at == 300
        assert stats.message_count == 2
        assert stats.last_message == "later"


class TestAdapterRegistry:
    """Tests for AdapterRegistry."""

    def test_builtin_adapters_registered(self) -> None:
        assert isinstance(AdapterRegistry.get("composer"), ComposerAdapter)
        assert isinstance(AdapterRegistry.get("chatdata"), ChatDataAdapter)
        assert AdapterRegistry.get("nope") is None

    def test_ordered_by_precedence(self) -> None:
        """The modern format should run first."""
        sources = AdapterRegistry.all_sources()
        assert sources.index("composer") < sources.index("chatdata")
