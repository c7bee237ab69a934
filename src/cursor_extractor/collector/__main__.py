"""CLI entry point for extraction.

Allows running the extractor as a module:
    python -m cursor_extractor.collector extract --dry
    python -m cursor_extractor.collector watch
"""

import json
import signal
import sys
from pathlib import Path
from types import FrameType

import click

from cursor_extractor.collector.daemon import request_shutdown, run_watch
from cursor_extractor.config import load_config
from cursor_extractor.errors import UnsupportedPlatformError
from cursor_extractor.logging import get_logger, setup_logging
from cursor_extractor.processor.normalizer import CursorDataNormalizer

logger = get_logger("cli")


def signal_handler(signum: int, frame: FrameType | None) -> None:
    """Handle shutdown signals gracefully."""
    sig_name = signal.Signals(signum).name
    logger.info("Received signal %s, shutting down", sig_name)
    request_shutdown()


@click.group()
def cli() -> None:
    """Extract Cursor chat history."""


@cli.command()
@click.option("--dry", is_flag=True, help="Print a summary instead of the extracted data")
@click.option("--output", "-o", type=click.Path(path_type=Path), help="Write JSON to this file")
@click.option("--config", "config_path", type=click.Path(exists=True, path_type=Path), help="Config file")
def extract(dry: bool, output: Path | None, config_path: Path | None) -> None:
    """Extract data from all Cursor databases once."""
    setup_logging("extract", console=False)
    config = load_config(config_path)
    normalizer = CursorDataNormalizer(config.normalizer)

    try:
        report = normalizer.run_pass()
    except UnsupportedPlatformError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    if dry:
        click.echo("Extraction results:")
        for result in report.results:
            meta = result.metadata
            click.echo(f"\nDatabase: {meta.database_path}")
            click.echo(f"Workspace: {meta.workspace_id}")
            click.echo(f"Threads: {meta.total_threads}")
            click.echo(f"Messages: {meta.total_messages}")
            click.echo(f"Adapters: {', '.join(meta.adapters_used)}")
            if meta.skipped_records:
                click.echo(f"Skipped records: {meta.skipped_records}")
    else:
        payload = json.dumps([result.to_dict() for result in report.results], ensure_ascii=False, indent=2)
        if output is not None:
            output.parent.mkdir(parents=True, exist_ok=True)
            output.write_text(payload, encoding="utf-8")
        else:
            click.echo(payload)

    click.echo(
        f"\n{len(report.results)} databases extracted, "
        f"{len(report.failed)} skipped after errors, "
        f"{len(report.empty)} without conversations, "
        f"{report.skipped_records} malformed records skipped",
        err=True,
    )
    for db_path, error in report.failed.items():
        click.echo(f"  skipped {db_path}: {error}", err=True)


@cli.command()
@click.option("--interval", type=int, help="Seconds between passes (overrides config)")
@click.option("--config", "config_path", type=click.Path(exists=True, path_type=Path), help="Config file")
def watch(interval: int | None, config_path: Path | None) -> None:
    """Watch Cursor databases and write diffs to the outbox."""
    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    config = load_config(config_path)
    if interval is not None:
        config.watch.interval_seconds = interval

    try:
        run_watch(config)
    except KeyboardInterrupt:
        # Handle case where signal handler didn't catch it
        logger.info("Interrupted, shutting down")
        request_shutdown()
    except UnsupportedPlatformError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    sys.exit(0)


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
