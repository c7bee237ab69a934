"""Adapter for Cursor's legacy AI chat format.

Older Cursor versions keep all chats of a workspace under two fixed keys:

workbench.panel.aichat.view.aichat.chatdata
    Chat sessions. Observed shapes:
    - a bare array of sessions
    - {"conversations": [...]}, {"chats": [...]} or {"tabs": [...]}
    - a single session object
    A session holds its messages in messages/history/entries/bubbles; a message
    holds its text in content/text/message and its role in role/type/sender.

aiService.prompts
    Discrete prompts: an array of {"prompt" | "text", "response"?, "timestamp"?}.
    Each prompt becomes its own thread.

Message metadata carries only originalIndex; the raw session and message
objects are not copied into the output.
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

CHATDATA_KEY = "workbench.panel.aichat.view.aichat.chatdata"
PROMPTS_KEY = "aiService.prompts"

# Milliseconds between a prompt and its response
RESPONSE_OFFSET_MS = 1


class ChatDataAdapter(Adapter):
    """Adapter for the legacy chatdata and prompts keys."""

    source_name = "chatdata"
    precedence = 10

    def extract(self, reader: SafeDbReader, workspace_id: str) -> ExtractionResult:
        """Extract threads from the legacy chat keys.

        Args:
            reader: Opened database reader
            workspace_id: Workspace identifier for stable IDs

        Returns:
            ExtractionResult with every well-formed session and prompt
        """
        result = ExtractionResult()

        for entry in reader.get_entries_by_keys([CHATDATA_KEY, PROMPTS_KEY]):
            try:
                data = parse_json_value(entry)
            except MalformedRecordError as e:
                self.skip(result, e)
                continue

            if entry.key == CHATDATA_KEY:
                self._extract_chat_data(entry, data, workspace_id, result)
            elif entry.key == PROMPTS_KEY:
                self._extract_prompts(entry, data, workspace_id, result)

        self.logger.debug(
            "Chatdata extraction complete: workspace=%s threads=%d messages=%d skipped=%d",
            workspace_id,
            len(result.threads),
            len(result.messages),
            result.skipped,
        )
        return result

    def _extract_chat_data(
        self,
        entry: ItemEntry,
        data: Any,
        workspace_id: str,
        result: ExtractionResult,
    ) -> None:
        wrapped = first_present(data, "conversations", "chats", "tabs") if isinstance(data, dict) else None

        if isinstance(data, list):
            sessions = data
        elif wrapped is not None:
            if not isinstance(wrapped, list):
                self.skip(result, MalformedRecordError(entry.key, "session collection is not an array"))
                return
            sessions = wrapped
        elif isinstance(data, dict) and first_present(data, "messages", "history", "entries", "bubbles") is not None:
            sessions = [data]
        else:
            self.skip(result, MalformedRecordError(entry.key, "unrecognized chat data shape"))
            return

        for index, session in enumerate(sessions):
            key = f"{entry.key}[{index}]"
            try:
                extracted = self._extract_session(key, session, index, workspace_id, result)
            except MalformedRecordError as e:
                self.skip(result, e)
                continue
            if extracted is not None:
                result.add(*extracted)

    def _extract_session(
        self,
        key: str,
        session: Any,
        index: int,
        workspace_id: str,
        result: ExtractionResult,
    ) -> tuple[Thread, list[Message]] | None:
        if not session:
            return None
        if not isinstance(session, dict):
            raise MalformedRecordError(key, f"expected session object, got {type(session).__name__}")

        raw_messages = first_present(session, "messages", "history", "entries", "bubbles")
        if raw_messages is None:
            return None
        if not isinstance(raw_messages, list):
            raise MalformedRecordError(key, "session messages are not an array")

        first = raw_messages[0] if isinstance(raw_messages[0], dict) else {}
        # Known limitation: without a first timestamp the ID uses wall-clock
        # time and changes on every extraction
        first_ts = coerce_timestamp(first_present(first, "timestamp", "time")) or now_ms()
        thread_id = generate_stable_id(workspace_id, self.source_name, str(index), str(first_ts))

        messages: list[Message] = []
        for msg_index, raw in enumerate(raw_messages):
            try:
                message = self._extract_message(f"{key}[{msg_index}]", raw, thread_id, msg_index)
            except MalformedRecordError as e:
                self.skip(result, e)
                continue
            if message is not None:
                messages.append(message)

        if not messages:
            return None

        stats = build_thread_stats(messages)
        workspace_name = session.get("workspace")
        thread = Thread(
            id=thread_id,
            title=generate_thread_title(first_present(session, "title", "chatTitle"), messages[0].content),
            workspace_id=thread_workspace_id(workspace_id),
            workspace_name=workspace_name if isinstance(workspace_name, str) and workspace_name else None,
            created_at=stats.created_at,
            updated_at=stats.updated_at,
            message_count=stats.message_count,
            last_message=stats.last_message,
            metadata={"source": self.source_name, "originalIndex": index},
        )
        return thread, messages

    def _extract_message(self, key: str, raw: Any, thread_id: str, index: int) -> Message | None:
        if not raw:
            return None
        if not isinstance(raw, dict):
            raise MalformedRecordError(key, f"expected message object, got {type(raw).__name__}")

        content = first_present(raw, "content", "text", "message")
        if content is None:
            return None
        if not isinstance(content, str):
            raise MalformedRecordError(key, "message content is not text")

        role = normalize_role(first_present(raw, "role", "type", "sender"))

        return Message(
            id=generate_stable_id(thread_id, role, str(index)),
            thread_id=thread_id,
            role=role,
            content=content,
            timestamp=coerce_timestamp(first_present(raw, "timestamp", "time")) or now_ms(),
            code_blocks=extract_code_blocks(content),
            metadata={"originalIndex": index},
        )

    def _extract_prompts(
        self,
        entry: ItemEntry,
        data: Any,
        workspace_id: str,
        result: ExtractionResult,
    ) -> None:
        if isinstance(data, dict):
            data = [data]
        if not isinstance(data, list):
            self.skip(result, MalformedRecordError(entry.key, "prompts value is not an array"))
            return

        for index, prompt in enumerate(data):
            try:
                extracted = self._extract_prompt(f"{entry.key}[{index}]", prompt, index, workspace_id)
            except MalformedRecordError as e:
                self.skip(result, e)
                continue
            if extracted is not None:
                result.add(*extracted)

    def _extract_prompt(
        self,
        key: str,
        prompt: Any,
        index: int,
        workspace_id: str,
    ) -> tuple[Thread, list[Message]] | None:
        if not prompt:
            return None
        if not isinstance(prompt, dict):
            raise MalformedRecordError(key, f"expected prompt object, got {type(prompt).__name__}")

        text = first_present(prompt, "prompt", "text")
        if text is None:
            return None
        response = prompt.get("response")
        if not isinstance(text, str) or (response is not None and not isinstance(response, str)):
            raise MalformedRecordError(key, "prompt/response is not text")

        timestamp = coerce_timestamp(prompt.get("timestamp")) or now_ms()
        thread_id = generate_stable_id(workspace_id, "prompts", str(index), str(timestamp))

        messages = [
            Message(
                id=generate_stable_id(thread_id, "user", "0"),
                thread_id=thread_id,
                role="user",
                content=text,
                timestamp=timestamp,
                code_blocks=extract_code_blocks(text),
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
            title=generate_thread_title(None, text),
            workspace_id=thread_workspace_id(workspace_id),
            created_at=stats.created_at,
            updated_at=stats.updated_at,
            message_count=stats.message_count,
            last_message=stats.last_message,
            metadata={"source": self.source_name, "format": "prompts", "originalIndex": index},
        )
        return thread, messages
