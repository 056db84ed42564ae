"""
Exception hierarchy for the title-improver pipeline.

Every failure a stage can hit maps to one ``ErrorCode``; the message of the
exception is what ends up in the Job's ``error`` field.

Pattern: Exception Hierarchy + Error Codes
"""

from typing import Optional, Dict, Any
from enum import Enum
import traceback

from common.datetime_utils import utcnow_aware


class ErrorCode(Enum):
    """
    Standard error codes

    - 1xxx: Input errors
    - 2xxx: Channel / video lookup errors
    - 3xxx: Title generation errors
    - 4xxx: External service errors
    - 5xxx: System errors
    """
    # Input Errors (1xxx)
    INVALID_EVENT = 1001
    MISSING_FIELDS = 1002
    STALE_EVENT = 1003

    # Lookup Errors (2xxx)
    CHANNEL_NOT_FOUND = 2001
    NO_VIDEOS_FOUND = 2002

    # Generation Errors (3xxx)
    TITLE_GENERATION_FAILED = 3001
    TITLE_MAPPING_MISMATCH = 3002
    INVALID_AI_RESPONSE = 3003

    # External Service Errors (4xxx)
    CHANNEL_LOOKUP_UNAVAILABLE = 4001
    AI_SERVICE_UNAVAILABLE = 4002
    API_INVALID_RESPONSE = 4003

    # System Errors (5xxx)
    REDIS_UNAVAILABLE = 5001
    EVENT_BUS_UNAVAILABLE = 5002
    CONFIGURATION_ERROR = 5003
    PROCESSING_STAGE_FAILED = 5004
    UNKNOWN_ERROR = 5999


class TitleImproverException(Exception):
    """
    Base exception for the service.

    Carries an error code, free-form details, the root cause and the job it
    concerns so logs and API responses can be correlated.
    """

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.UNKNOWN_ERROR,
        details: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None,
        job_id: Optional[str] = None,
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        self.cause = cause
        self.job_id = job_id
        self.timestamp = utcnow_aware()

        if cause:
            self.cause_traceback = ''.join(
                traceback.format_exception(type(cause), cause, cause.__traceback__)
            )
        else:
            self.cause_traceback = None

    def to_dict(self) -> Dict[str, Any]:
        """Serialize for logs and API responses"""
        result = {
            "error": self.__class__.__name__,
            "message": self.message,
            "error_code": self.error_code.value,
            "error_name": self.error_code.name,
            "details": self.details,
            "timestamp": self.timestamp.isoformat(),
        }
        if self.job_id:
            result["job_id"] = self.job_id
        if self.cause:
            result["cause"] = {
                "type": type(self.cause).__name__,
                "message": str(self.cause),
            }
        return result

    def __str__(self) -> str:
        return self.message


# ==================== INPUT ====================

class InvalidEventError(TitleImproverException):
    """Event payload lacks a field the stage cannot work without"""

    def __init__(self, message: str, **kwargs):
        super().__init__(message, ErrorCode.INVALID_EVENT, **kwargs)


class StaleEventError(TitleImproverException):
    """Delivery for a job that already moved past this stage (or failed)"""

    def __init__(self, job_id: str, current_status: str, stage: str):
        super().__init__(
            f"Job {job_id} is '{current_status}', ignoring {stage} delivery",
            ErrorCode.STALE_EVENT,
            details={"current_status": current_status, "stage": stage},
            job_id=job_id,
        )


# ==================== LOOKUP ====================

class ChannelNotFoundError(TitleImproverException):
    def __init__(self, channel: str, **kwargs):
        super().__init__(
            "Channel not found!",
            ErrorCode.CHANNEL_NOT_FOUND,
            details={"channel": channel},
            **kwargs,
        )


class NoVideosFoundError(TitleImproverException):
    def __init__(self, channel_id: Optional[str], **kwargs):
        super().__init__(
            "No videos found!",
            ErrorCode.NO_VIDEOS_FOUND,
            details={"channel_id": channel_id},
            **kwargs,
        )


# ==================== GENERATION ====================

class TitleGenerationError(TitleImproverException):
    def __init__(self, message: str, error_code: ErrorCode = ErrorCode.TITLE_GENERATION_FAILED, **kwargs):
        super().__init__(message, error_code, **kwargs)


class TitleMappingError(TitleImproverException):
    """AI answered with a different number of titles than videos sent"""

    def __init__(self, titles_count: int, videos_count: int, **kwargs):
        super().__init__(
            f"AI returned {titles_count} titles for {videos_count} videos",
            ErrorCode.TITLE_MAPPING_MISMATCH,
            details={"titles_count": titles_count, "videos_count": videos_count},
            **kwargs,
        )


# ==================== EXTERNAL SERVICES ====================

class CollaboratorError(TitleImproverException):
    """Network failure or non-2xx answer from a collaborator API"""

    def __init__(
        self,
        service: str,
        message: str,
        status_code: Optional[int] = None,
        error_code: ErrorCode = ErrorCode.CHANNEL_LOOKUP_UNAVAILABLE,
        **kwargs,
    ):
        details = kwargs.pop("details", {}) or {}
        details.update({"service": service, "status_code": status_code})
        super().__init__(message, error_code, details=details, **kwargs)
        self.service = service
        self.status_code = status_code


# ==================== SYSTEM ====================

class ConfigurationError(TitleImproverException):
    def __init__(self, message: str, **kwargs):
        super().__init__(message, ErrorCode.CONFIGURATION_ERROR, **kwargs)


class JobStoreError(TitleImproverException):
    def __init__(self, message: str, **kwargs):
        super().__init__(message, ErrorCode.REDIS_UNAVAILABLE, **kwargs)
