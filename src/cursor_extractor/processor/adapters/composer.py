"""Adapter for Cursor's composer chat format.

Newer Cursor versions store one entry per conversation under keys of the form:
    composerData:<composerId>

Each value is a JSON object. Observed shapes:
- {"conversation": [...]}, {"messages": [...]} or {"history": [...]}:
  one element per message
- {"conversation": {...}}: a single nested message object
- {"prompt": "...", "response": "...", "timestamp": ...}: a bare single
  prompt/response pair

Message objects carry their text in content/text/message (or prompt/response),
their role in role/type/sender, and their time in timestamp/createdAt/time
(epoch milliseconds). Conversation-level fields used: title/name,
workspaceName, tags, starred.

Message metadata keeps a trimmed provenance record rather than the raw source
object: originalIndex and composerId, plus bubbleId, messageType, contextFiles
and codebaseContexts when present. Thread metadata keeps title, tags and
starred under originalData.
"""

from typing import Any

from cursor_extractor.collector.reader import ItemEntry, SafeDbReader
from cursor_extractor.errors import MalformedRecordError
from cursor_extractor.models import Message, Thread
from cursor_extractor.processor.adapters.base import (
    Adapter,
    ExtractionResult,
    build_thread_stats,
    coerce_timestamp,
    extract_code_blocks,
    first_present,
    generate_stable_id,
    generate_thread_title,
    normalize_role,
    now_ms,
    parse_json_value,
    thread_workspace_id,
)

KEY_PREFIX = "composerData:"

# Per-message fields copied into message metadata when present
_MESSAGE_EXTRAS = ("bubbleId", "messageType", "contextFiles", "codebaseContexts")

# Milliseconds between a bare prompt and its response
RESPONSE_OFFSET_MS = 1


class ComposerAdapter(Adapter):
    """Adapter for composerData:* entries, one conversation per entry."""

    source_name = "composer"
    precedence = 0

    def extract(self, reader: SafeDbReader, workspace_id: str) -> ExtractionResult:
        """Extract one thread per composer entry.

        Args:
            reader: Opened database reader
            workspace_id: Workspace identifier for stable IDs

        Returns:
            ExtractionResult with every well-formed composer conversation
        """
        result = ExtractionResult()

        for entry in reader.get_entries_by_prefix(KEY_PREFIX):
            try:
                extracted = self._extract_entry(entry, workspace_id, result)
            except MalformedRecordError as e:
                self.skip(result, e)
                continue

            if extracted is None:
                self.logger.debug("No messages in composer entry: key=%s", entry.key)
                continue
            result.add(*extracted)

        self.logger.debug(
            "Composer extraction complete: workspace=%s threads=%d messages=%d skipped=%d",
            workspace_id,
            len(result.threads),
            len(result.messages),
            result.skipped,
        )
        return result

    def _extract_entry(
        self,
        entry: ItemEntry,
        workspace_id: str,
        result: ExtractionResult,
    ) -> tuple[Thread, list[Message]] | None:
        data = parse_json_value(entry)
        if not isinstance(data, dict):
            raise MalformedRecordError(entry.key, f"expected object, got {type(data).__name__}")

        composer_id = entry.key[len(KEY_PREFIX):] or "unknown"
        conversation = first_present(data, "conversation", "messages", "history")

        if conversation is None:
            if data.get("prompt"):
                return self._extract_single_prompt(entry.key, data, composer_id, workspace_id)
            return None

        if isinstance(conversation, list):
            raw_messages = list(enumerate(conversation))
        elif isinstance(conversation, dict):
            raw_messages = [(0, conversation)]
        else:
            raise MalformedRecordError(
                entry.key, f"unrecognized conversation shape {type(conversation).__name__}"
            )

        # (index, role, content, timestamp, metadata) for each usable message
        parsed: list[tuple[int, str, str, int, dict[str, Any]]] = []
        for index, raw in raw_messages:
            try:
                message = self._parse_message(entry.key, raw, index, composer_id)
            except MalformedRecordError as e:
                self.skip(result, e)
                continue
            if message is not None:
                parsed.append(message)

        if not parsed:
            return None

        # Known limitation: a first message without a timestamp falls back to
        # wall-clock time, so this thread's ID changes on every extraction
        thread_id = generate_stable_id(workspace_id, self.source_name, composer_id, str(parsed[0][3]))

        messages = [
            Message(
                id=generate_stable_id(thread_id, role, str(index)),
                thread_id=thread_id,
                role=role,
                content=content,
                timestamp=timestamp,
                code_blocks=extract_code_blocks(content),
                metadata=metadata,
            )
            for index, role, content, timestamp, metadata in parsed
        ]

        stats = build_thread_stats(messages)
        original_data = {
            key: data[key] for key in ("title", "tags", "starred") if data.get(key) is not None
        }
        metadata: dict[str, Any] = {"source": self.source_name, "composerId": composer_id}
        if original_data:
            metadata["originalData"] = original_data

        thread = Thread(
            id=thread_id,
            title=generate_thread_title(first_present(data, "title", "name"), messages[0].content),
            workspace_id=thread_workspace_id(workspace_id),
            workspace_name=_optional_str(data.get("workspaceName")),
            created_at=stats.created_at,
            updated_at=stats.updated_at,
            message_count=stats.message_count,
            last_message=stats.last_message,
            metadata=metadata,
        )
        return thread, messages

    def _parse_message(
        self,
        key: str,
        raw: Any,
        index: int,
        composer_id: str,
    ) -> tuple[int, str, str, int, dict[str, Any]] | None:
        if not raw:
            return None
        if not isinstance(raw, dict):
            raise MalformedRecordError(f"{key}[{index}]", f"expected object, got {type(raw).__name__}")

        content = first_present(raw, "content", "text", "message", "prompt", "response")
        if content is None:
            return None
        if not isinstance(content, str):
            raise MalformedRecordError(f"{key}[{index}]", "message content is not text")

        role = normalize_role(first_present(raw, "role", "type", "sender"))
        timestamp = coerce_timestamp(first_present(raw, "timestamp", "createdAt", "time")) or now_ms()

        metadata: dict[str, Any] = {"originalIndex": index, "composerId": composer_id}
        for extra in _MESSAGE_EXTRAS:
            if raw.get(extra) is not None:
                metadata[extra] = raw[extra]

        return index, role, content, timestamp, metadata

    def _extract_single_prompt(
        self,
        key: str,
        data: dict,
        composer_id: str,
        workspace_id: str,
    ) -> tuple[Thread, list[Message]]:
        prompt = data.get("prompt")
        response = data.get("response")
        if not isinstance(prompt, str) or (response is not None and not isinstance(response, str)):
            raise MalformedRecordError(key, "prompt/response is not text")

        timestamp = coerce_timestamp(data.get("timestamp")) or now_ms()
        thread_id = generate_stable_id(workspace_id, self.source_name, composer_id, str(timestamp))

        messages = [
            Message(
                id=generate_stable_id(thread_id, "user", "0"),
                thread_id=thread_id,
                role="user",
                content=prompt,
                timestamp=timestamp,
                code_blocks=extract_code_blocks(prompt),
            )
        ]
        if response:
            messages.append(
                Message(
                    id=generate_stable_id(thread_id, "assistant", "1"),
                    thread_id=thread_id,
                    role="assistant",
                    content=response,
                    timestamp=timestamp + RESPONSE_OFFSET_MS,
                    code_blocks=extract_code_blocks(response),
                )
            )

        stats = build_thread_stats(messages)
        thread = Thread(
            id=thread_id,
            title=generate_thread_title(first_present(data, "title", "name"), prompt),
            workspace_id=thread_workspace_id(workspace_id),
            workspace_name=_optional_str(data.get("workspaceName")),
            created_at=stats.created_at,
            updated_at=stats.updated_at,
            message_count=stats.message_count,
            last_message=stats.last_message,
            metadata={"source": self.source_name, "composerId": composer_id},
        )
        return thread, messages


def _optional_str(value: Any) -> str | None:
    return value if isinstance(value, str) and value else None
