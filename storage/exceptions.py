"""Custom exception classes for the upload storage engine."""


class UploadError(Exception):
    """
    Base exception class for all upload storage errors.

    ``code`` identifies the failure to clients; ``prevent_retry`` tells them
    whether resubmitting the same request can succeed.
    """
    code = "UPLOAD_ERROR"
    prevent_retry = False


class FileTooLargeError(UploadError):
    """
    Raised when the declared total size of an upload exceeds the configured maximum.
    """
    code = "FILE_TOO_LARGE"
    prevent_retry = True


class InvalidIdentifierError(UploadError):
    """
    Raised when an upload identifier or filename is not a single safe path segment.
    """
    code = "INVALID_IDENTIFIER"
    prevent_retry = True


class InvalidChunkError(UploadError):
    """
    Raised when chunk placement metadata is missing or inconsistent.
    """
    code = "INVALID_CHUNK"
    prevent_retry = True


class ChunkStoreError(UploadError):
    """
    Raised when a chunk could not be written to the staging area.
    """
    code = "CHUNK_STORE_FAILED"


class ReassemblyError(UploadError):
    """
    Raised when staged chunks could not be concatenated into the final file.
    """
    code = "REASSEMBLY_FAILED"


class DeletionError(UploadError):
    """
    Raised when the storage of an upload could not be removed.
    """
    code = "DELETION_FAILED"
