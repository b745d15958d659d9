"""
Exceptions raised by the synchronization engine.

Pipelines catch these at their boundary and fold them into a log row and a
result object; endpoints translate whatever reaches them into HTTP errors.
"""

from typing import Any, Dict, Optional


class CommerceSyncError(Exception):
    """Base exception for every sync engine error"""

    error_code = "COMMERCE_SYNC_ERROR"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error": True,
            "message": self.message,
            "error_code": self.error_code,
            "details": self.details
        }


class ConfigurationError(CommerceSyncError):
    """Integration missing, inactive, of the wrong platform type, or lacking credentials"""

    error_code = "CONFIGURATION_ERROR"


class NotFoundError(CommerceSyncError):
    error_code = "NOT_FOUND"


class ValidationError(CommerceSyncError):
    """Input or invariant violation. Never retried."""

    error_code = "VALIDATION_ERROR"


class ChannelSegregationError(ValidationError):
    """An order channel was about to be written to a platform it does not belong to"""

    error_code = "CHANNEL_SEGREGATION_VIOLATION"

    def __init__(self, channel: str, platform_type: str, expected_platform: Optional[str]):
        message = (
            f"Channel segregation violation: {channel} orders cannot sync to "
            f"{platform_type}. Expected: {expected_platform}"
        )
        super().__init__(message, {
            "channel": channel,
            "platform_type": platform_type,
            "expected_platform": expected_platform
        })
        self.channel = channel
        self.platform_type = platform_type
        self.expected_platform = expected_platform


class TransientPlatformError(CommerceSyncError):
    """The platform could not be reached or refused the call; eligible for manual retry"""

    error_code = "PLATFORM_ERROR"


class PlatformConnectionError(TransientPlatformError):
    error_code = "PLATFORM_UNREACHABLE"


class PlatformResponseError(TransientPlatformError):
    """Non-2xx answer from an external platform"""

    error_code = "PLATFORM_RESPONSE_ERROR"

    def __init__(self, platform: str, status_code: int, body: Any):
        message = f"{platform} API Error: {status_code} - {body}"
        super().__init__(message, {"status_code": status_code, "body": body})
        self.platform = platform
        self.status_code = status_code
        self.body = body


class DuplicateRecordError(CommerceSyncError):
    """Record already exists; callers count it as skipped, not failed"""

    error_code = "DUPLICATE_RECORD"


class PersistenceError(CommerceSyncError):
    error_code = "PERSISTENCE_ERROR"


class SigningError(CommerceSyncError):
    """Malformed input handed to the request signer"""

    error_code = "SIGNING_ERROR"


class RetryLimitExceededError(ValidationError):
    error_code = "RETRY_LIMIT_EXCEEDED"

    def __init__(self, limit: int):
        super().__init__(f"Maximum retry attempts exceeded ({limit})", {"limit": limit})
        self.limit = limit
