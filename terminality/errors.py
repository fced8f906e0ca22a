# python
"""
terminality/errors.py
Structural failures raised by the filesystem engine and the recycle bin.
"""


class FileSystemError(Exception):
    """Base class for recoverable, caller-visible filesystem failures."""

    message = "filesystem error"

    def __init__(self, path: str, message: str = ""):
        self.path = path
        self.message = message or self.message
        super().__init__(f"{self.message}: {path}")


class ParentNotDirectory(FileSystemError):
    message = "Parent not a directory"


class NotAFile(FileSystemError):
    message = "Not a file"


class NestingLimitExceeded(FileSystemError):
    message = "Folder nesting limit exceeded"


class SourceNotFound(FileSystemError):
    message = "Source does not exist"


class DestinationExists(FileSystemError):
    message = "Destination already exists"


class DestinationParentNotDirectory(FileSystemError):
    message = "Destination parent not a directory"


class InvalidMove(FileSystemError):
    # moving the root, or a directory into its own subtree
    message = "Cannot move into itself"


class RecycleEntryMissing(FileSystemError):
    message = "File no longer exists in recycle bin"
