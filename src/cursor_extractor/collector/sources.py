"""Discovery of Cursor state databases on the host filesystem.

Cursor keeps one SQLite key-value store per workspace and one global store:
- <base>/workspaceStorage/<workspace-id>/state.vscdb
- <base>/globalStorage/state.vscdb

where <base> depends on the platform (see BASE_DIRECTORIES).
"""

import platform
import re
from pathlib import Path

from cursor_extractor.errors import UnsupportedPlatformError
from cursor_extractor.logging import get_logger

logger = get_logger("sources")

DATABASE_FILENAME = "state.vscdb"

# Sidecar files SQLite keeps next to a database in WAL mode
SIDECAR_SUFFIXES = ("-wal", "-shm")

GLOBAL_WORKSPACE_ID = "_global_"

# Base directories relative to the home directory, keyed by platform.system()
BASE_DIRECTORIES: dict[str, list[tuple[str, ...]]] = {
    "Darwin": [("Library", "Application Support", "Cursor", "User")],
    "Windows": [
        ("AppData", "Roaming", "Cursor", "User"),
        ("AppData", "Local", "Cursor", "User"),
    ],
    "Linux": [(".config", "Cursor", "User")],
}

_WORKSPACE_SEGMENT = re.compile(r"workspaceStorage[/\\]([^/\\]+)[/\\]")


def get_base_paths() -> list[Path]:
    """Return the Cursor user-data directories for the running platform.

    Raises:
        UnsupportedPlatformError: if the platform has no table entry
    """
    system = platform.system()
    relative_paths = BASE_DIRECTORIES.get(system)
    if relative_paths is None:
        raise UnsupportedPlatformError(system)

    home = Path.home()
    return [home.joinpath(*parts) for parts in relative_paths]


def find_databases() -> list[Path]:
    """Find all Cursor state databases.

    Locations (under each base directory):
    - globalStorage/**/state.vscdb
    - workspaceStorage/**/state.vscdb

    Returns an empty list when Cursor is not installed.
    """
    paths: set[Path] = set()

    for base_path in get_base_paths():
        if not base_path.exists():
            continue

        for storage in ("globalStorage", "workspaceStorage"):
            storage_path = base_path / storage
            if not storage_path.exists():
                continue
            try:
                paths.update(p for p in storage_path.glob(f"**/{DATABASE_FILENAME}") if p.is_file())
            except OSError:
                logger.warning("Failed to search for databases: path=%s", storage_path, exc_info=True)

    databases = sorted(paths)
    logger.debug("Discovered databases: count=%d", len(databases))
    return databases


def workspace_id_for(db_path: Path | str) -> str | None:
    """Derive the workspace identifier from a database path.

    .../workspaceStorage/1234567890abcdef/state.vscdb -> 1234567890abcdef
    .../globalStorage/state.vscdb -> _global_

    Returns None for paths matching neither layout; callers treat that as
    "unknown".
    """
    path_str = str(db_path)

    match = _WORKSPACE_SEGMENT.search(path_str)
    if match:
        return match.group(1)

    if "globalStorage" in path_str:
        return GLOBAL_WORKSPACE_ID

    return None


def get_database_files(db_path: Path) -> list[Path]:
    """Return the database file followed by whichever sidecar files exist."""
    files = [db_path]
    for suffix in SIDECAR_SUFFIXES:
        sidecar = db_path.with_name(db_path.name + suffix)
        if sidecar.exists():
            files.append(sidecar)
    return files


def is_database_in_use(db_path: Path) -> bool:
    """Check whether a database has WAL or shared-memory sidecars.

    Their presence usually means Cursor currently has the database open.
    """
    return len(get_database_files(db_path)) > 1
