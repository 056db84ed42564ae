"""
HTTP error mapping for FastAPI apps
"""
from .handlers import (
    BaseServiceException,
    ConflictException,
    ValidationException,
    ResourceNotFoundException,
    error_body,
    setup_exception_handlers,
)

__all__ = [
    'BaseServiceException',
    'ConflictException',
    'ValidationException',
    'ResourceNotFoundException',
    'error_body',
    'setup_exception_handlers',
]
