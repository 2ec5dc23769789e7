"""
errors.py — Error taxonomy for the Instagram publishing protocol.

Every failure of a work item ends up as a PublishError. The batch executor
either re-raises it (stop on first error) or turns it into an ErrorRecord
via to_record() and moves on to the next item.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

PUBLISH_FAILED_NOTE = "Media was created but publishing failed"


class ErrorCode(str, Enum):
    """Standardized failure classes for a work item."""
    TRANSPORT = "TRANSPORT"                        # the Graph call itself failed
    UNPARSEABLE_RESPONSE = "UNPARSEABLE_RESPONSE"  # 2xx but body was not JSON
    NO_CREATION_ID = "NO_CREATION_ID"              # JSON body without an id
    CONTAINER_ERROR = "CONTAINER_ERROR"            # container reported ERROR/FAILED
    TIMEOUT = "TIMEOUT"                            # poll budget exhausted
    PUBLISH_FAILED = "PUBLISH_FAILED"              # media_publish gave up
    VALIDATION = "VALIDATION"                      # bad input, no network used


@dataclass
class ErrorRecord:
    """Recorded failure of one work item; never retried once emitted."""
    message: str
    code: str
    stage: str = "unknown"
    status_code: Optional[int] = None
    error: dict = field(default_factory=dict)
    headers: dict = field(default_factory=dict)
    creation_id: Optional[str] = None
    child_index: Optional[int] = None
    note: Optional[str] = None

    def to_dict(self) -> dict:
        """Flatten for JSON output, merging the remote error body into the top level."""
        out = {"statusCode": self.status_code}
        out.update(self.error)
        out["error_code"] = self.code
        out["error_message"] = self.message
        out["stage"] = self.stage
        if self.headers:
            out["headers"] = self.headers
        if self.creation_id:
            out["creation_id"] = self.creation_id
        if self.child_index is not None:
            out["itemIndex"] = self.child_index
        if self.note:
            out["note"] = self.note
        return out


class PublishError(Exception):
    """
    Error raised while publishing one work item.

    Attributes:
        code: Failure class
        message: Human-readable error message
        stage: Which protocol step raised it (create_child, poll_parent, publish, ...)
        status_code: HTTP status of the failed Graph call, if any
        error: Remote Graph error body ({message, code, error_subcode, ...})
        headers: Response headers of the failed Graph call
        creation_id: Container id when one already exists
        child_index: 1-based carousel child position, for child failures
        note: Extra context for the caller
        item_index: Position of the work item in the batch (set by the executor)
    """

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        stage: str = "unknown",
        status_code: Optional[int] = None,
        error: Optional[dict] = None,
        headers: Optional[dict] = None,
        creation_id: Optional[str] = None,
        child_index: Optional[int] = None,
        note: Optional[str] = None,
    ):
        self.code = code
        self.message = message
        self.stage = stage
        self.status_code = status_code
        self.error = error or {}
        self.headers = headers or {}
        self.creation_id = creation_id
        self.child_index = child_index
        self.note = note
        self.item_index: Optional[int] = None
        super().__init__(f"[{code.value}] {message}")

    def to_record(self) -> ErrorRecord:
        return ErrorRecord(
            message=self.message,
            code=self.code.value,
            stage=self.stage,
            status_code=self.status_code,
            error=dict(self.error),
            headers=dict(self.headers),
            creation_id=self.creation_id,
            child_index=self.child_index,
            note=self.note,
        )


def error_from_graph(exc, stage: str, message: Optional[str] = None,
                     code: ErrorCode = ErrorCode.TRANSPORT, **context) -> PublishError:
    """Wrap a GraphApiError, keeping its status, error envelope and headers verbatim."""
    return PublishError(
        code,
        message or exc.message,
        stage=stage,
        status_code=exc.status_code,
        error=exc.error,
        headers=exc.headers,
        **context,
    )
