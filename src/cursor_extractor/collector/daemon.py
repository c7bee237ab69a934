"""Watch loop: normalize Cursor databases on an interval and emit diffs.

Each cycle runs a full normalization pass, compares every database against
the snapshot from the previous cycle and writes non-empty diffs as JSON
payloads to the outbox, where a transport can pick them up:
    outbox/<workspace_id>/<extracted_at>.json
"""

import json
import time
from pathlib import Path

from cursor_extractor.config import Config
from cursor_extractor.logging import get_logger, setup_logging
from cursor_extractor.models import NormalizationResult
from cursor_extractor.processor.diff import SyncDiff, diff, is_equal
from cursor_extractor.processor.normalizer import CursorDataNormalizer

logger = get_logger("watch")

# Global flag for graceful shutdown
_shutdown_requested = False


def request_shutdown() -> None:
    """Request graceful shutdown of the watch loop."""
    global _shutdown_requested
    _shutdown_requested = True


def is_shutdown_requested() -> bool:
    """Check if shutdown has been requested."""
    return _shutdown_requested


def reset_shutdown() -> None:
    """Reset shutdown flag (useful for testing)."""
    global _shutdown_requested
    _shutdown_requested = False


def write_diff(result: NormalizationResult, changes: SyncDiff, outbox_path: Path) -> Path:
    """Write one database's diff to the outbox.

    Args:
        result: Snapshot the diff was computed for
        changes: Diff against the previous snapshot
        outbox_path: Base outbox directory

    Returns:
        Path of the written payload
    """
    dest_dir = outbox_path / result.metadata.workspace_id
    dest_dir.mkdir(parents=True, exist_ok=True)
    dest_path = dest_dir / f"{result.metadata.extracted_at}.json"

    payload = {"metadata": result.metadata.to_dict(), **changes.to_dict()}
    with open(dest_path, "w", encoding="utf-8") as f:
        json.dump(payload, f, ensure_ascii=False)

    return dest_path


def run_watch_cycle(
    normalizer: CursorDataNormalizer,
    snapshots: dict[str, NormalizationResult],
    outbox_path: Path,
) -> int:
    """Run one watch cycle.

    Args:
        normalizer: Normalizer used for the pass
        snapshots: Last snapshot per database path; updated in place
        outbox_path: Base outbox directory

    Returns:
        Number of databases with changes written to the outbox
    """
    report = normalizer.run_pass()

    changed = 0
    for result in report.results:
        if is_shutdown_requested():
            break

        db_path = result.metadata.database_path
        previous = snapshots.get(db_path)

        if previous is not None and is_equal(previous, result):
            continue

        changes = diff(previous, result)
        if changes.is_empty:
            snapshots[db_path] = result
            continue

        try:
            dest_path = write_diff(result, changes, outbox_path)
        except Exception:
            # Snapshot stays behind so the next cycle retries this diff
            logger.exception("Error writing diff: database=%s", db_path)
            continue

        snapshots[db_path] = result
        changed += 1
        logger.info(
            "Wrote diff: database=%s new_threads=%d new_messages=%d updated_threads=%d dest=%s",
            db_path,
            len(changes.new_threads),
            len(changes.new_messages),
            len(changes.updated_threads),
            dest_path.name,
        )

    if report.failed:
        logger.warning("Skipped databases this cycle: count=%d", len(report.failed))

    return changed


def run_watch(config: Config) -> None:
    """Run the watch loop until shutdown is requested.

    Args:
        config: Application configuration
    """
    reset_shutdown()

    setup_logging("watch")

    outbox_path = config.watch.outbox_path
    interval = config.watch.interval_seconds
    normalizer = CursorDataNormalizer(config.normalizer)

    logger.info("Starting watch loop: outbox=%s interval=%ds", outbox_path, interval)

    snapshots: dict[str, NormalizationResult] = {}
    while not is_shutdown_requested():
        changed = run_watch_cycle(normalizer, snapshots, outbox_path)

        if changed > 0:
            logger.info("Cycle complete: databases_changed=%d", changed)
        else:
            logger.debug("Cycle complete: no changes detected")

        if is_shutdown_requested():
            break

        # Sleep in small increments to allow graceful shutdown
        sleep_remaining = interval
        while sleep_remaining > 0 and not is_shutdown_requested():
            sleep_time = min(1.0, sleep_remaining)
            time.sleep(sleep_time)
            sleep_remaining -= sleep_time

    logger.info("Watch loop stopped")
