from __future__ import annotations


class FlowdeskError(Exception):
    status_code = 500

    def __init__(self, message: str, details: list[str] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict[str, object]:
        body: dict[str, object] = {"error": self.message}
        if self.details:
            body["details"] = list(self.details)
        return body


class FlowchartValidationError(FlowdeskError):
    status_code = 400

    def __init__(self, details: list[str], message: str = "Flowchart validation failed") -> None:
        super().__init__(message, details)


class AuthenticationRequired(FlowdeskError):
    status_code = 401


class PermissionDenied(FlowdeskError):
    status_code = 403


class NotFoundError(FlowdeskError):
    status_code = 404


class ConflictError(FlowdeskError):
    status_code = 409


class StorageFault(FlowdeskError):
    """Raised when the document store cannot be read or written.

    The underlying cause is logged; callers only see a generic message.
    """

    status_code = 500

    def __init__(self, cause: str) -> None:
        super().__init__("Internal storage error")
        self.cause = cause


class UnsupportedOperationError(FlowdeskError):
    status_code = 501
