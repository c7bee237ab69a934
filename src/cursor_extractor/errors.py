"""Error taxonomy for the extraction pipeline.

Only UnsupportedPlatformError is meant to end a normalization pass. Database
level errors (DatabaseOpenError, QueryError) are caught by the normalizer and
cost one database; MalformedRecordError is caught by the adapters and costs
one record.
"""


class ExtractorError(Exception):
    """Base class for cursor-extractor errors."""


class UnsupportedPlatformError(ExtractorError):
    """The running platform has no known Cursor base-directory table entry."""

    def __init__(self, platform_name: str) -> None:
        super().__init__(f"Unsupported platform: {platform_name}")
        self.platform_name = platform_name


class DatabaseOpenError(ExtractorError):
    """A database could not be copied or opened safely."""

    def __init__(self, db_path: str, reason: str) -> None:
        super().__init__(f"Failed to open database safely: {db_path}: {reason}")
        self.db_path = db_path
        self.reason = reason


class QueryError(ExtractorError):
    """A query against an opened database copy failed."""


class MalformedRecordError(ExtractorError):
    """A single source record could not be interpreted."""

    def __init__(self, key: str, reason: str) -> None:
        super().__init__(f"Malformed record {key}: {reason}")
        self.key = key
        self.reason = reason
