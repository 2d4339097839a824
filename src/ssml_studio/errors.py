"""
Error codes and exceptions shared by every ssml-studio layer.

Components raise a StudioError subclass. The session, synthesis and
catalog boundaries turn them into result objects, and the HTTP layer
renders ``to_dict()`` with the status from ``HTTP_STATUS``.

Response body:
    {"ok": false, "error": "OVERLAP", "message": "...", "details": {...}}
"""
from __future__ import annotations

from typing import Any, Dict, Optional


class ErrorCode:
    """
    Machine-readable error codes returned to API clients.

    EMPTY_SELECTION is informational: a caret-only selection is normal
    and only surfaces as an error when a caller insists on a range.
    """
    EMPTY_SELECTION = "EMPTY_SELECTION"         # start == end
    OVERLAP = "OVERLAP"                         # Segment intersects another
    SYNTHESIS_FAILED = "SYNTHESIS_FAILED"       # Backend or transport failure
    VOICES_UNAVAILABLE = "VOICES_UNAVAILABLE"   # Catalog could not be loaded
    INVALID_INPUT = "INVALID_INPUT"             # Bad offsets, patch keys, text
    NO_ACTIVE_SEGMENT = "NO_ACTIVE_SEGMENT"     # Patch with nothing selected
    NOT_FOUND = "NOT_FOUND"                     # Unknown session/segment/character
    FEATURE_LOCKED = "FEATURE_LOCKED"           # Membership tier lacks feature
    QUOTA_EXCEEDED = "QUOTA_EXCEEDED"           # No credential has quota left
    INTERNAL_ERROR = "INTERNAL_ERROR"           # Unexpected


HTTP_STATUS: Dict[str, int] = {
    ErrorCode.EMPTY_SELECTION: 400,
    ErrorCode.INVALID_INPUT: 400,
    ErrorCode.FEATURE_LOCKED: 403,
    ErrorCode.NOT_FOUND: 404,
    ErrorCode.OVERLAP: 409,
    ErrorCode.NO_ACTIVE_SEGMENT: 409,
    ErrorCode.QUOTA_EXCEEDED: 429,
    ErrorCode.SYNTHESIS_FAILED: 502,
    ErrorCode.VOICES_UNAVAILABLE: 503,
    ErrorCode.INTERNAL_ERROR: 500,
}


def status_for(code: str) -> int:
    """HTTP status for an error code; unknown codes are 500."""
    return HTTP_STATUS.get(code, 500)


class StudioError(Exception):
    """
    Base exception for ssml-studio errors.

    Attributes:
        message: Human-readable error message.
        code: Error code from ErrorCode.
        details: Optional dictionary with additional context.
    """
    def __init__(self, message: str, code: str = ErrorCode.INTERNAL_ERROR, details: Optional[Dict] = None):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the standard API error body."""
        result: Dict[str, Any] = {
            "ok": False,
            "error": self.code,
            "message": self.message,
        }
        if self.details:
            result["details"] = self.details
        return result


class EmptySelectionError(StudioError):
    def __init__(self, message: str = "Selection is empty", details: Optional[Dict] = None):
        super().__init__(message, ErrorCode.EMPTY_SELECTION, details)


class OverlapError(StudioError):
    """
    Raised when a segment range intersects a stored segment.

    Attributes:
        conflicting_id: Id of the stored segment that was hit.
    """
    def __init__(self, segment_id: str, conflicting_id: str):
        self.segment_id = segment_id
        self.conflicting_id = conflicting_id
        super().__init__(
            f"Segment {segment_id} overlaps segment {conflicting_id}",
            ErrorCode.OVERLAP,
            {"segment_id": segment_id, "conflicting_id": conflicting_id},
        )


class InvalidInputError(StudioError):
    def __init__(self, message: str, details: Optional[Dict] = None):
        super().__init__(message, ErrorCode.INVALID_INPUT, details)


class NoActiveSegmentError(StudioError):
    def __init__(self, message: str = "No segment is selected", details: Optional[Dict] = None):
        super().__init__(message, ErrorCode.NO_ACTIVE_SEGMENT, details)


class NotFoundError(StudioError):
    """Raised for an unknown session, segment or character id."""
    def __init__(self, kind: str, ident: str):
        self.kind = kind
        self.ident = ident
        super().__init__(f"{kind} not found: {ident}", ErrorCode.NOT_FOUND, {"kind": kind, "id": ident})


class SynthesisError(StudioError):
    """Raised when the speech backend rejects the markup or cannot be reached."""
    def __init__(self, message: str, details: Optional[Dict] = None):
        super().__init__(message, ErrorCode.SYNTHESIS_FAILED, details)


class VoicesUnavailableError(StudioError):
    def __init__(self, message: str, details: Optional[Dict] = None):
        super().__init__(message, ErrorCode.VOICES_UNAVAILABLE, details)


class FeatureLockedError(StudioError):
    """Raised when the caller's membership tier lacks a feature."""
    def __init__(self, feature: str, tier: str):
        self.feature = feature
        self.tier = tier
        super().__init__(
            f"Feature '{feature}' is not available on the {tier} plan",
            ErrorCode.FEATURE_LOCKED,
            {"feature": feature, "tier": tier},
        )


class QuotaExceededError(StudioError):
    def __init__(self, message: str, details: Optional[Dict] = None):
        super().__init__(message, ErrorCode.QUOTA_EXCEEDED, details)


class ValidationError(InvalidInputError):
    """
    Raised by the input validators.

    ``reason`` is a finer-grained code such as TEXT_TOO_LONG; the
    API error code stays INVALID_INPUT.

    Example:
        >>> raise ValidationError("Text is required", "TEXT_REQUIRED")
    """
    def __init__(self, message: str, reason: str = "VALIDATION_ERROR"):
        self.reason = reason
        super().__init__(message, {"reason": reason})
