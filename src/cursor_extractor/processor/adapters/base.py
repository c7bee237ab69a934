"""Base adapter interface, registry and shared extraction helpers."""

import hashlib
import json
import logging
import re
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

from cursor_extractor.collector.reader import ItemEntry, SafeDbReader
from cursor_extractor.collector.sources import GLOBAL_WORKSPACE_ID
from cursor_extractor.errors import MalformedRecordError
from cursor_extractor.logging import get_logger
from cursor_extractor.models import CodeBlock, Message, Role, Thread

__all__ = [
    "Adapter",
    "AdapterRegistry",
    "ExtractionResult",
    "ThreadStats",
    "build_thread_stats",
    "coerce_timestamp",
    "extract_code_blocks",
    "first_present",
    "generate_stable_id",
    "generate_thread_title",
    "normalize_role",
    "now_ms",
    "parse_json_value",
    "preview",
    "thread_workspace_id",
]

STABLE_ID_LENGTH = 16
PREVIEW_LENGTH = 100
TITLE_MAX_LENGTH = 60
TITLE_PLACEHOLDER = "New Conversation"

_CODE_FENCE = re.compile(r"```([^\n`]*)\n(.*?)```", re.DOTALL)
_TITLE_MARKUP = re.compile(r"^[#*>\-\s]+")

# Checked in order; the first group with a matching substring wins
_ROLE_PATTERNS: tuple[tuple[Role, tuple[str, ...]], ...] = (
    ("user", ("user", "human")),
    ("assistant", ("assistant", "ai", "cursor", "bot")),
    ("system", ("system",)),
    ("tool", ("tool", "function")),
)


@dataclass
class ExtractionResult:
    """Threads and messages one adapter extracted from one database."""

    threads: list[Thread] = field(default_factory=list)
    messages: list[Message] = field(default_factory=list)
    skipped: int = 0  # records skipped as malformed

    def add(self, thread: Thread, messages: list[Message]) -> None:
        self.threads.append(thread)
        self.messages.extend(messages)


@dataclass
class ThreadStats:
    created_at: int
    updated_at: int
    message_count: int
    last_message: str


def now_ms() -> int:
    """Wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


def generate_stable_id(*parts: str) -> str:
    """Generate a short deterministic ID from its parts.

    The same parts always produce the same ID, so IDs survive re-extraction
    of unchanged data.

    Args:
        *parts: Identifying components, joined with '|' before hashing

    Returns:
        First 16 characters of the hex-encoded SHA-256 hash
    """
    return hashlib.sha256("|".join(parts).encode()).hexdigest()[:STABLE_ID_LENGTH]


def normalize_role(value: Any) -> Role:
    """Map a free-text role/type/sender field onto the four canonical roles.

    This is a substring heuristic, not a guarantee: 'human' maps to user;
    'ai', 'cursor' and 'bot' map to assistant; 'system' to system; 'tool' and
    'function' to tool. Missing or unrecognized values map to user.
    """
    if value is None or isinstance(value, bool):
        return "user"

    normalized = str(value).lower()
    for role, needles in _ROLE_PATTERNS:
        if any(needle in normalized for needle in needles):
            return role
    return "user"


def coerce_timestamp(value: Any) -> int | None:
    """Interpret a source timestamp as epoch milliseconds.

    Returns None for missing, zero, negative or non-numeric values.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        ts = int(value)
    elif isinstance(value, str):
        try:
            ts = int(float(value.strip()))
        except ValueError:
            return None
    else:
        return None
    return ts if ts > 0 else None


def first_present(record: dict, *keys: str) -> Any:
    """Return the first truthy value among keys, or None."""
    for key in keys:
        value = record.get(key)
        if value:
            return value
    return None


def preview(content: str) -> str:
    return content[:PREVIEW_LENGTH]


def thread_workspace_id(workspace_id: str) -> str | None:
    """Threads from the global store carry no workspace id."""
    return None if workspace_id == GLOBAL_WORKSPACE_ID else workspace_id


def parse_json_value(entry: ItemEntry) -> Any:
    """Decode an entry's JSON value.

    Raises:
        MalformedRecordError: if the value is not valid JSON
    """
    try:
        return json.loads(entry.value)
    except (json.JSONDecodeError, TypeError) as e:
        raise MalformedRecordError(entry.key, f"invalid JSON: {e}") from e


def _parse_fence_info(info: str) -> tuple[str, str | None]:
    """Split a fence info string into (language, filename).

    Handles 'python', 'ts:src/app.ts' and '12:40:src/app.ts'.
    """
    token = info.strip().split()[0] if info.strip() else ""
    if not token:
        return "text", None

    parts = token.split(":")
    language = parts[0] if parts[0] and not parts[0].isdigit() else "text"
    filename = parts[-1] if len(parts) > 1 and parts[-1] else None
    return language, filename


def extract_code_blocks(content: str) -> list[CodeBlock]:
    """Extract fenced code blocks from markdown-style content, in order."""
    blocks: list[CodeBlock] = []
    for match in _CODE_FENCE.finditer(content):
        language, filename = _parse_fence_info(match.group(1))
        blocks.append(CodeBlock(language=language, content=match.group(2).strip(), filename=filename))
    return blocks


def generate_thread_title(explicit: Any, first_content: str) -> str:
    """Pick a display title for a thread.

    An explicit non-empty title wins. Otherwise the first line of the first
    message is used, stripped of leading markdown markers; when that line
    opens a code fence, the next few lines are searched for plain text.
    """
    if isinstance(explicit, str) and explicit.strip():
        title = explicit.strip()
    else:
        content = first_content.strip()
        lines = content.split("\n")
        title = _TITLE_MARKUP.sub("", lines[0]).strip()

        if title.startswith("```"):
            title = ""
            for line in lines[1:5]:
                if line.strip() and not line.startswith("```"):
                    title = line.strip()
                    break

    if len(title) > TITLE_MAX_LENGTH:
        title = title[: TITLE_MAX_LENGTH - 3] + "..."

    return title or TITLE_PLACEHOLDER


def build_thread_stats(messages: list[Message]) -> ThreadStats:
    """Summarize a thread's messages in ascending timestamp order."""
    ordered = sorted(messages, key=lambda m: m.timestamp)
    if not ordered:
        ts = now_ms()
        return ThreadStats(created_at=ts, updated_at=ts, message_count=0, last_message="")
    return ThreadStats(
        created_at=ordered[0].timestamp,
        updated_at=ordered[-1].timestamp,
        message_count=len(ordered),
        last_message=preview(ordered[-1].content),
    )


class Adapter(ABC):
    """Base class for format adapters.

    Each adapter understands one generation of the payloads Cursor writes to
    its key-value table. Subclasses set `source_name` and `precedence` (lower
    runs first and wins conflicts under the default merge policy) and
    implement `extract()`.

    Adapters read only through the SafeDbReader and never apply retention
    limits; both belong to the normalizer.
    """

    source_name: str
    precedence: int = 100

    def __init__(self, logger: logging.Logger | None = None) -> None:
        self.logger = logger or get_logger(f"adapters.{self.source_name}")

    @abstractmethod
    def extract(self, reader: SafeDbReader, workspace_id: str) -> ExtractionResult:
        """Extract threads and messages from an opened database.

        Args:
            reader: Opened reader over a private database copy
            workspace_id: Workspace identifier derived from the database path

        Returns:
            ExtractionResult; malformed records are skipped and counted

        Raises:
            QueryError: if the reader fails; the whole database is abandoned
        """

    def skip(self, result: ExtractionResult, error: MalformedRecordError) -> None:
        """Record a skipped record and log it."""
        result.skipped += 1
        self.logger.warning(
            "Skipping malformed record: adapter=%s key=%s reason=%s",
            self.source_name,
            error.key,
            error.reason,
        )


class AdapterRegistry:
    """Registry of adapters by source name."""

    _adapters: dict[str, Adapter] = {}

    @classmethod
    def register(cls, adapter: Adapter) -> None:
        """Register an adapter."""
        cls._adapters[adapter.source_name] = adapter

    @classmethod
    def get(cls, source_name: str) -> Adapter | None:
        """Get adapter by source name."""
        return cls._adapters.get(source_name)

    @classmethod
    def all(cls) -> list[Adapter]:
        """All registered adapters, ordered by precedence."""
        return sorted(cls._adapters.values(), key=lambda a: a.precedence)

    @classmethod
    def all_sources(cls) -> list[str]:
        """List all registered source names, ordered by precedence."""
        return [adapter.source_name for adapter in cls.all()]
