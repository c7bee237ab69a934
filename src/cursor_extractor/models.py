"""Canonical data models.

Attributes are snake_case; to_dict() produces the camelCase wire shape the
transport layer expects.
"""

from dataclasses import dataclass, field
from typing import Any, Literal

Role = Literal["user", "assistant", "system", "tool"]

ROLES: tuple[str, ...] = ("user", "assistant", "system", "tool")


@dataclass
class CodeBlock:
    """A fenced code region extracted from message content."""

    language: str
    content: str
    filename: str | None = None

    def to_dict(self) -> dict[str, Any]:
        doc: dict[str, Any] = {"language": self.language, "content": self.content}
        if self.filename is not None:
            doc["filename"] = self.filename
        return doc


@dataclass
class Message:
    """One turn in a thread."""

    id: str
    thread_id: str
    role: Role
    content: str
    timestamp: int  # epoch milliseconds
    code_blocks: list[CodeBlock] = field(default_factory=list)
    metadata: dict[str, Any] | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to wire format."""
        doc: dict[str, Any] = {
            "id": self.id,
            "threadId": self.thread_id,
            "role": self.role,
            "content": self.content,
            "timestamp": self.timestamp,
            "codeBlocks": [block.to_dict() for block in self.code_blocks],
        }
        if self.metadata is not None:
            doc["metadata"] = self.metadata
        return doc


@dataclass
class Thread:
    """A normalized conversation."""

    id: str
    created_at: int  # epoch milliseconds
    updated_at: int  # epoch milliseconds
    message_count: int
    last_message: str  # preview, at most 100 characters
    title: str | None = None
    workspace_id: str | None = None  # None for the global store
    workspace_name: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)  # provenance, always has "source"

    def to_dict(self) -> dict[str, Any]:
        """Convert to wire format."""
        doc: dict[str, Any] = {
            "id": self.id,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
            "messageCount": self.message_count,
            "lastMessage": self.last_message,
            "metadata": self.metadata,
        }
        if self.title is not None:
            doc["title"] = self.title
        if self.workspace_id is not None:
            doc["workspaceId"] = self.workspace_id
        if self.workspace_name is not None:
            doc["workspaceName"] = self.workspace_name
        return doc


@dataclass
class NormalizationMetadata:
    """Provenance and totals for one normalized database."""

    database_path: str
    workspace_id: str
    extracted_at: int  # epoch milliseconds
    adapters_used: list[str]
    total_threads: int
    total_messages: int
    skipped_records: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "databasePath": self.database_path,
            "workspaceId": self.workspace_id,
            "extractedAt": self.extracted_at,
            "adaptersUsed": list(self.adapters_used),
            "totalThreads": self.total_threads,
            "totalMessages": self.total_messages,
            "skippedRecords": self.skipped_records,
        }


@dataclass(frozen=True)
class NormalizationResult:
    """Per-database output of one normalization pass.

    Built fresh on every pass and treated as immutable by its consumers.
    """

    threads: list[Thread]
    messages: list[Message]
    metadata: NormalizationMetadata

    def to_dict(self) -> dict[str, Any]:
        return {
            "threads": [thread.to_dict() for thread in self.threads],
            "messages": [message.to_dict() for message in self.messages],
            "metadata": self.metadata.to_dict(),
        }
