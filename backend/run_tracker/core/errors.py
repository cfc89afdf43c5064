"""Error types raised by the import pipeline and its collaborators.

Everything derives from ``TrackerError`` so callers at the edges (the batch
loop, HTTP routes, the CLI) can turn any of them into a per-file outcome or a
response without catching unrelated exceptions.
"""


class TrackerError(Exception):
    """Base class for all application errors."""


class DuplicateFileError(TrackerError):
    def __init__(self, uuid: str):
        super().__init__(f"Attempted to import a file already in the database, UUID: {uuid}")
        self.uuid = uuid


class DecodeError(TrackerError):
    """The content is not a readable FIT file (malformed, truncated, bad CRC)."""


class MappingError(TrackerError):
    """The file decoded but its messages break the mapping rules."""


class PersistenceError(TrackerError):
    """A write failed; the file's transaction was rolled back."""


class StoreUnavailableError(PersistenceError):
    """The database could not be reached at all. Fatal for a batch."""


class EnrichmentError(TrackerError):
    """A best-effort post-import step (elevation, route image, archive) failed."""


class FileNotFoundInStoreError(TrackerError):
    def __init__(self, uuid: str):
        super().__init__(f"FIT file with UUID='{uuid}' does not exist")
        self.uuid = uuid


class ServiceConfigError(TrackerError):
    """Unknown service handler or invalid handler configuration."""
