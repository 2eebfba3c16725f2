"""Error models"""

from enum import Enum
from typing import Optional
import uuid


# Public message for any model/hosting provider failure; internal detail stays in server logs
PROVIDER_UNAVAILABLE_MESSAGE = "The AI service is currently unavailable. Please try again."


class ErrorCode(str, Enum):
    """Error codes surfaced to API callers"""
    VALIDATION_ERROR = "VALIDATION_ERROR"
    SUBDOMAIN_INVALID = "SUBDOMAIN_INVALID"
    SUBDOMAIN_RESERVED = "SUBDOMAIN_RESERVED"
    SUBDOMAIN_TAKEN = "SUBDOMAIN_TAKEN"
    SUBDOMAIN_ALLOCATION_FAILED = "SUBDOMAIN_ALLOCATION_FAILED"
    NOT_FOUND = "NOT_FOUND"
    RATE_LIMITED = "RATE_LIMITED"
    INVALID_STATE = "INVALID_STATE"
    PROVIDER_ERROR = "PROVIDER_ERROR"
    DESIGN_SYSTEM_INVALID = "DESIGN_SYSTEM_INVALID"
    GENERATION_FAILED = "GENERATION_FAILED"
    CHECKPOINT_CONFLICT = "CHECKPOINT_CONFLICT"
    PACKAGING_FAILED = "PACKAGING_FAILED"
    DEPLOYMENT_FAILED = "DEPLOYMENT_FAILED"
    CONFIGURATION_ERROR = "CONFIGURATION_ERROR"


class ApplicationError(Exception):
    """Application error carrying a user-facing message and an optional internal detail"""
    def __init__(
        self,
        code: ErrorCode,
        message: str,
        retryable: bool = False,
        hint: Optional[str] = None,
        detail: Optional[str] = None,
        site_spec_id: Optional[str] = None,
    ):
        self.error_id = str(uuid.uuid4())
        self.code = code
        self.message = message
        self.retryable = retryable
        self.hint = hint
        self.detail = detail  # never included in model_dump()
        self.site_spec_id = site_spec_id
        super().__init__(self.message)

    def model_dump(self):
        """Return dict representation for API responses"""
        return {
            "error_id": self.error_id,
            "code": self.code.value,
            "message": self.message,
            "hint": self.hint,
            "retryable": self.retryable,
            "site_spec_id": self.site_spec_id,
        }

    @property
    def http_status(self) -> int:
        """Map error code to HTTP status"""
        mapping = {
            ErrorCode.VALIDATION_ERROR: 400,
            ErrorCode.SUBDOMAIN_INVALID: 400,
            ErrorCode.SUBDOMAIN_RESERVED: 400,
            ErrorCode.SUBDOMAIN_TAKEN: 409,
            ErrorCode.SUBDOMAIN_ALLOCATION_FAILED: 409,
            ErrorCode.NOT_FOUND: 404,
            ErrorCode.RATE_LIMITED: 429,
            ErrorCode.INVALID_STATE: 409,
            ErrorCode.PROVIDER_ERROR: 502,
            ErrorCode.DESIGN_SYSTEM_INVALID: 422,
            ErrorCode.GENERATION_FAILED: 500,
            ErrorCode.CHECKPOINT_CONFLICT: 409,
            ErrorCode.PACKAGING_FAILED: 500,
            ErrorCode.DEPLOYMENT_FAILED: 502,
            ErrorCode.CONFIGURATION_ERROR: 500,
        }
        return mapping.get(self.code, 500)


def provider_error(detail: str, site_spec_id: Optional[str] = None) -> ApplicationError:
    """Build the generic provider-unavailable error, keeping the real cause in `detail`"""
    return ApplicationError(
        code=ErrorCode.PROVIDER_ERROR,
        message=PROVIDER_UNAVAILABLE_MESSAGE,
        retryable=True,
        detail=detail,
        site_spec_id=site_spec_id,
    )
