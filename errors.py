"""
Error taxonomy for ScholarStream.

Every failure a component can report is a ScholarStreamError subclass carrying
a stable `code` and `http_status`; main.py renders them all the same way.
"""
from typing import Any, Dict, Iterable, Optional


class ScholarStreamError(Exception):
    code = "INTERNAL_ERROR"
    http_status = 500
    default_message = "An unexpected error occurred"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_response(self) -> Dict[str, Any]:
        return {"success": False, "code": self.code, "message": self.message}


# Client supplied too little
class MissingFields(ScholarStreamError):
    code = "MISSING_FIELDS"
    http_status = 400
    default_message = "Missing required fields"

    def __init__(self, fields: Iterable[str] = (), message: Optional[str] = None):
        self.fields = list(fields)
        if message is None and self.fields:
            message = f"Missing required fields: {', '.join(self.fields)}"
        super().__init__(message)

    def to_response(self) -> Dict[str, Any]:
        body = super().to_response()
        body["fields"] = self.fields
        return body


class MissingParameter(ScholarStreamError):
    code = "MISSING_PARAMETER"
    http_status = 400
    default_message = "Missing required parameter"


# Client supplied a malformed or out-of-enum value
class InvalidId(ScholarStreamError):
    code = "INVALID_ID"
    http_status = 400
    default_message = "Invalid id format"


class InvalidStatus(ScholarStreamError):
    code = "INVALID_STATUS"
    http_status = 400
    default_message = "Invalid status value"


class InvalidRole(ScholarStreamError):
    code = "INVALID_ROLE"
    http_status = 400
    default_message = "Invalid role value"


class NoChange(ScholarStreamError):
    code = "NO_CHANGE"
    http_status = 400
    default_message = "No changes made"


class InvalidState(ScholarStreamError):
    code = "INVALID_STATE"
    http_status = 400
    default_message = "Operation not allowed in the current state"


# AccessPolicy denials
class Unauthenticated(ScholarStreamError):
    code = "UNAUTHENTICATED"
    http_status = 401
    default_message = "Unauthorized"


class Forbidden(ScholarStreamError):
    code = "FORBIDDEN"
    http_status = 403
    default_message = "Forbidden"


class NotFound(ScholarStreamError):
    code = "NOT_FOUND"
    http_status = 404
    default_message = "Not found"


class Conflict(ScholarStreamError):
    code = "CONFLICT"
    http_status = 409
    default_message = "Already exists"


# Infrastructure
class StoreError(ScholarStreamError):
    code = "STORE_ERROR"
    http_status = 500
    default_message = "Database unavailable"


class LookupFailed(StoreError):
    code = "LOOKUP_FAILED"
    default_message = "Could not resolve caller role"


class GatewayError(ScholarStreamError):
    code = "GATEWAY_ERROR"
    http_status = 502
    default_message = "Payment gateway request failed"
