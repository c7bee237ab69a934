"""Normalizer: discovery, safe reading, adapter merge and retention limits."""

import logging
from collections import defaultdict
from dataclasses import dataclass, field, replace
from pathlib import Path

from cursor_extractor.collector.reader import SafeDbReader
from cursor_extractor.collector.sources import find_databases, workspace_id_for
from cursor_extractor.config import NormalizerConfig
from cursor_extractor.errors import ExtractorError
from cursor_extractor.logging import get_logger
from cursor_extractor.models import Message, NormalizationMetadata, NormalizationResult, Thread
from cursor_extractor.processor.adapters import Adapter, AdapterRegistry
from cursor_extractor.processor.adapters.base import ExtractionResult, now_ms, preview

UNKNOWN_WORKSPACE_ID = "unknown"


@dataclass
class PassReport:
    """Outcome of one normalization pass over every discovered database."""

    results: list[NormalizationResult] = field(default_factory=list)
    failed: dict[str, str] = field(default_factory=dict)  # database path -> error
    empty: list[str] = field(default_factory=list)  # databases that yielded no threads

    @property
    def skipped_records(self) -> int:
        return sum(result.metadata.skipped_records for result in self.results)


def merge_results(
    primary: ExtractionResult,
    secondary: ExtractionResult,
) -> tuple[list[Thread], list[Message]]:
    """Combine two extractions, keeping every primary thread.

    Secondary threads are added only when their ID is not already present,
    together with their own messages.
    """
    existing_ids = {thread.id for thread in primary.threads}
    added = [thread for thread in secondary.threads if thread.id not in existing_ids]
    added_ids = {thread.id for thread in added}

    threads = list(primary.threads) + added
    messages = list(primary.messages) + [m for m in secondary.messages if m.thread_id in added_ids]
    return threads, messages


def apply_limits(
    threads: list[Thread],
    messages: list[Message],
    max_threads: int | None,
    max_messages_per_thread: int | None,
) -> tuple[list[Thread], list[Message]]:
    """Apply retention limits and bring thread counts in line with messages.

    Threads over max_threads are dropped oldest-first by updated_at, along with
    their messages. With max_messages_per_thread set, each thread keeps its
    earliest messages by timestamp. message_count and last_message are always
    recomputed from the kept messages.
    """
    if max_threads and len(threads) > max_threads:
        threads = sorted(threads, key=lambda t: t.updated_at, reverse=True)[:max_threads]
        kept_ids = {thread.id for thread in threads}
        messages = [m for m in messages if m.thread_id in kept_ids]

    by_thread: dict[str, list[Message]] = defaultdict(list)
    for message in messages:
        by_thread[message.thread_id].append(message)

    if max_messages_per_thread:
        messages = []
        for thread_id, group in by_thread.items():
            group = sorted(group, key=lambda m: m.timestamp)[:max_messages_per_thread]
            by_thread[thread_id] = group
            messages.extend(group)

    limited: list[Thread] = []
    for thread in threads:
        group = sorted(by_thread.get(thread.id, []), key=lambda m: m.timestamp)
        if not group:
            limited.append(replace(thread, message_count=0))
            continue
        limited.append(
            replace(thread, message_count=len(group), last_message=preview(group[-1].content))
        )

    return limited, messages


class CursorDataNormalizer:
    """Coordinates adapters to extract and normalize Cursor chat data."""

    def __init__(
        self,
        config: NormalizerConfig | None = None,
        adapters: list[Adapter] | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        """Initialize the normalizer.

        Args:
            config: Merge policy and retention limits (defaults to NormalizerConfig())
            adapters: Adapters in precedence order (defaults to the registry)
            logger: Logger for pass progress and failures
        """
        self.config = config or NormalizerConfig()
        self.adapters = adapters if adapters is not None else AdapterRegistry.all()
        self.logger = logger or get_logger("normalizer")

    def _enabled_adapters(self) -> list[Adapter]:
        return [a for a in self.adapters if self.config.is_adapter_enabled(a.source_name)]

    def normalize_database(self, db_path: Path) -> NormalizationResult:
        """Normalize data from a single database file.

        Adapters run in precedence order. With prefer_composer the first
        adapter that yields threads is kept as is, and later adapters only run
        under merge_all, contributing threads with new IDs. Without
        prefer_composer every adapter runs and the outputs are merged on
        purpose: a later adapter replaces same-ID threads, while earlier
        threads it does not produce are kept rather than discarded.

        Raises:
            DatabaseOpenError: if the database cannot be copied or opened
            QueryError: if a lookup against the copy fails
        """
        db_path = Path(db_path)
        workspace_id = workspace_id_for(db_path) or UNKNOWN_WORKSPACE_ID
        adapters_used: list[str] = []
        skipped = 0

        threads: list[Thread] = []
        messages: list[Message] = []

        with SafeDbReader(db_path, logger=self.logger) as reader:
            for position, adapter in enumerate(self._enabled_adapters()):
                if position > 0 and threads and self.config.prefer_composer and not self.config.merge_all:
                    break

                extracted = adapter.extract(reader, workspace_id)
                skipped += extracted.skipped
                if not extracted.threads:
                    continue

                if not threads:
                    threads, messages = list(extracted.threads), list(extracted.messages)
                elif self.config.prefer_composer:
                    threads, messages = merge_results(ExtractionResult(threads, messages), extracted)
                else:
                    # Later adapter wins ID clashes; earlier-only threads survive
                    threads, messages = merge_results(extracted, ExtractionResult(threads, messages))

                if adapter.source_name not in adapters_used:
                    adapters_used.append(adapter.source_name)

        threads, messages = apply_limits(
            threads,
            messages,
            self.config.max_threads_per_db,
            self.config.max_messages_per_thread,
        )

        self.logger.debug(
            "Normalized database: path=%s workspace=%s adapters=%s threads=%d messages=%d skipped=%d",
            db_path,
            workspace_id,
            ",".join(adapters_used) or "-",
            len(threads),
            len(messages),
            skipped,
        )

        return NormalizationResult(
            threads=threads,
            messages=messages,
            metadata=NormalizationMetadata(
                database_path=str(db_path),
                workspace_id=workspace_id,
                extracted_at=now_ms(),
                adapters_used=adapters_used,
                total_threads=len(threads),
                total_messages=len(messages),
                skipped_records=skipped,
            ),
        )

    def run_pass(self) -> PassReport:
        """Normalize every discoverable database.

        A database that fails is logged and recorded in the report; the
        remaining databases are still processed. Databases yielding no threads
        are left out of the results.

        Raises:
            UnsupportedPlatformError: if the platform has no known Cursor location
        """
        report = PassReport()

        for db_path in find_databases():
            try:
                result = self.normalize_database(db_path)
            except ExtractorError as e:
                self.logger.error("Failed to normalize database: path=%s error=%s", db_path, e)
                report.failed[str(db_path)] = str(e)
                continue
            except Exception as e:
                self.logger.exception("Unexpected error normalizing database: path=%s", db_path)
                report.failed[str(db_path)] = repr(e)
                continue

            if result.threads:
                report.results.append(result)
            else:
                report.empty.append(str(db_path))

        self.logger.info(
            "Pass complete: databases=%d failed=%d empty=%d skipped_records=%d",
            len(report.results),
            len(report.failed),
            len(report.empty),
            report.skipped_records,
        )
        return report

    def normalize_all_databases(self) -> list[NormalizationResult]:
        """Normalize every discoverable database, dropping failures and empty ones."""
        return self.run_pass().results
