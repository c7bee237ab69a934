"""Shared fixtures: real SQLite state databases shaped like Cursor's."""

import json
import sqlite3
from collections.abc import Callable, Iterator
from pathlib import Path

import pytest

from cursor_extractor.collector.reader import SafeDbReader


def write_state_db(path: Path, entries: dict[str, object] | None = None) -> Path:
    """Create (or extend) a state.vscdb with an ItemTable.

    Non-string values are JSON-encoded; strings and bytes are stored as-is.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(path)
    try:
        conn.execute(
            "CREATE TABLE IF NOT EXISTS ItemTable (key TEXT UNIQUE ON CONFLICT REPLACE, value BLOB)"
        )
        for key, value in (entries or {}).items():
            if not isinstance(value, (str, bytes)):
                value = json.dumps(value)
            conn.execute("INSERT INTO ItemTable (key, value) VALUES (?, ?)", (key, value))
        conn.commit()
    finally:
        conn.close()
    return path


@pytest.fixture
def make_state_db(tmp_path: Path) -> Callable[..., Path]:
    """Factory for state databases under a workspaceStorage layout."""

    def _make(entries: dict[str, object] | None = None, workspace: str = "ws1") -> Path:
        return write_state_db(tmp_path / "workspaceStorage" / workspace / "state.vscdb", entries)

    return _make


@pytest.fixture
def open_reader() -> Iterator[Callable[[Path], SafeDbReader]]:
    """Factory for opened readers; every reader is closed at teardown."""
    readers: list[SafeDbReader] = []

    def _open(path: Path) -> SafeDbReader:
        reader = SafeDbReader(path)
        reader.open()
        readers.append(reader)
        return reader

    yield _open

    for reader in readers:
        reader.close()


@pytest.fixture
def isolated_tempdir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Redirect tempfile.mkdtemp into a directory the test can inspect."""
    import tempfile

    temp_root = tmp_path / "tmp"
    temp_root.mkdir()
    monkeypatch.setattr(tempfile, "tempdir", str(temp_root))
    return temp_root
