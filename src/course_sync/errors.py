"""Exception hierarchy for fatal course-sync errors.

Per-document problems (bad filenames, malformed front matter, unreadable
files) are never raised; they are collected as warnings.  Only the
conditions below abort an operation.
"""


class CourseSyncError(Exception):
    """Base class for all fatal course-sync errors."""


class ConfigError(CourseSyncError):
    """Configuration is missing, unreadable, or invalid."""


class SyncStateError(CourseSyncError):
    """The sync state file is corrupt or uses an unsupported schema version.

    Attributes:
        path: Path of the offending state file.
    """

    def __init__(self, message: str, path: object = None) -> None:
        super().__init__(message)
        self.path = str(path) if path is not None else None
