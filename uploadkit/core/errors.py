from typing import Optional, Sequence


class UploadError(Exception):
    """Base class for failures surfaced by the upload pipeline.

    ``uploaded`` holds the records already written to disk by the failing
    call, so callers can decide what to clean up.
    """

    status_code = 400

    def __init__(self, message: str, uploaded: Optional[Sequence] = None):
        super().__init__(message)
        self.message = message
        self.uploaded = list(uploaded or [])


class ParseError(UploadError):
    status_code = 400


class SizeLimitExceeded(UploadError):
    status_code = 413

    def __init__(self, limit: int):
        super().__init__(f"request body must not be larger than {limit} bytes")
        self.limit = limit


class ValidationError(UploadError):
    status_code = 415

    def __init__(self, content_type: str, uploaded: Optional[Sequence] = None):
        super().__init__(f"file type [{content_type}] is not allowed", uploaded)
        self.content_type = content_type


class UploadIOError(UploadError):
    status_code = 500


class NoFilesSubmitted(UploadError):
    status_code = 400

    def __init__(self, message: str = "no files were submitted"):
        super().__init__(message)


class RandomnessUnavailable(UploadError):
    status_code = 500


class JSONDecodeError(UploadError):
    status_code = 400


class RemoteServiceError(UploadError):
    status_code = 502
