"""Workflow error taxonomy.

Every engine-level failure carries a stable ``kind`` and a human-readable
message. The HTTP layer maps these onto status codes; the presentation layer
decides whether to offer a retry based on ``retryable``.
"""

from typing import Any, Dict


class WorkflowError(Exception):
    """Base class for all workflow failures."""

    kind: str = "internal_error"
    status_code: int = 500
    retryable: bool = True

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind,
            "message": self.message,
            "retryable": self.retryable,
        }


class NotFound(WorkflowError):
    """Missing site or pending change, or one the caller does not own."""
    kind = "not_found"
    status_code = 404
    retryable = False


class InvalidInput(WorkflowError):
    """Missing or malformed request fields."""
    kind = "invalid_input"
    status_code = 400


class UnsupportedModel(InvalidInput):
    """Model choice outside the supported set."""

    def __init__(self, model: str):
        super().__init__(f"Unsupported model: {model}")
        self.model = model


class AlreadyResolved(WorkflowError):
    """Pending change is no longer in the pending state."""
    kind = "already_resolved"
    status_code = 409
    retryable = False


class UpstreamUnavailable(WorkflowError):
    """Version-control host or generation backend failed."""
    kind = "upstream_unavailable"
    status_code = 502


class MalformedGenerationResponse(WorkflowError):
    """Generation backend produced output that does not match the contract."""
    kind = "malformed_generation_response"
    status_code = 502


class NoEditableFiles(WorkflowError):
    """Repository snapshot contained nothing eligible for editing."""
    kind = "no_editable_files"
    status_code = 400


class Unauthorized(WorkflowError):
    """Caller could not be authenticated."""
    kind = "unauthorized"
    status_code = 401
    retryable = False
