"""Snapshot diffing for incremental sync.

Messages are append-only in the source, so a diff only reports new messages;
threads can be new or updated (same ID, different field values).
"""

from dataclasses import dataclass, field
from typing import Any

from cursor_extractor.models import Message, NormalizationResult, Thread


@dataclass
class SyncDiff:
    """Entities to push after a normalization pass."""

    new_threads: list[Thread] = field(default_factory=list)
    new_messages: list[Message] = field(default_factory=list)
    updated_threads: list[Thread] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not (self.new_threads or self.new_messages or self.updated_threads)

    def to_dict(self) -> dict[str, Any]:
        """Convert to the wire format used for incremental pushes."""
        return {
            "newThreads": [thread.to_dict() for thread in self.new_threads],
            "newMessages": [message.to_dict() for message in self.new_messages],
            "updatedThreads": [thread.to_dict() for thread in self.updated_threads],
        }


def is_equal(a: NormalizationResult, b: NormalizationResult) -> bool:
    """Check whether two results carry the same threads and messages."""
    return a.threads == b.threads and a.messages == b.messages


def diff(previous: NormalizationResult | None, current: NormalizationResult) -> SyncDiff:
    """Compute what changed between two snapshots of the same database.

    Args:
        previous: Last pushed snapshot, or None on the first pass
        current: Snapshot from this pass

    Returns:
        SyncDiff with threads/messages whose IDs are new, plus threads whose
        IDs are known but whose values changed
    """
    if previous is None:
        return SyncDiff(new_threads=list(current.threads), new_messages=list(current.messages))

    previous_threads = {thread.id: thread for thread in previous.threads}
    previous_message_ids = {message.id for message in previous.messages}

    new_threads: list[Thread] = []
    updated_threads: list[Thread] = []
    for thread in current.threads:
        before = previous_threads.get(thread.id)
        if before is None:
            new_threads.append(thread)
        elif before != thread:
            updated_threads.append(thread)

    new_messages = [m for m in current.messages if m.id not in previous_message_ids]

    return SyncDiff(new_threads=new_threads, new_messages=new_messages, updated_threads=updated_threads)
