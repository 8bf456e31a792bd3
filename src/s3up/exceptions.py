class S3upError(Exception):
    """Base exception for all s3up errors."""


class ConfigurationError(S3upError):
    """Raised when the configuration is missing or incomplete."""


class ProtocolError(S3upError):
    """Raised when the storage API answers with a non-2xx status."""

    def __init__(self, operation: str, status: int, body: str = "", message: str | None = None):
        self.operation = operation
        self.status = status
        self.body = body
        if message is None:
            message = f"{operation} failed: HTTP {status}"
            if body:
                message += f" {body.strip()}"
        super().__init__(message)


class MalformedResponseError(ProtocolError):
    """Raised when a successful response lacks a required field or cannot be decoded."""

    def __init__(self, operation: str, detail: str, status: int = 200):
        self.detail = detail
        super().__init__(operation, status, message=f"{operation}: {detail}")


class StaleRemoteUploadError(S3upError):
    """Raised when a recorded multipart upload no longer exists on the server."""


class UploadCancelledError(S3upError):
    """Raised when an upload was interrupted and left in a resumable state."""


class InvalidKeyError(S3upError, ValueError):
    """Raised for object keys that cannot be sent unchanged in a request path."""
