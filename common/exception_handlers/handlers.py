"""
FastAPI error mapping shared by the HTTP-facing services.

Every error answer has the same body: ``{"error": CODE, "message": text}``
plus ``details`` when there is something useful to add.
"""
import logging
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


def error_body(code: str, message: str, details: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    body: Dict[str, Any] = {'error': code, 'message': message}
    if details:
        body['details'] = details
    return body


class BaseServiceException(Exception):
    """Error that knows its own HTTP status and error code"""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    error_code = "INTERNAL_ERROR"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_response(self) -> JSONResponse:
        return JSONResponse(
            status_code=self.status_code,
            content=error_body(self.error_code, self.message, self.details),
        )


class ValidationException(BaseServiceException):
    """Request is well-formed JSON but unusable (400)"""
    status_code = status.HTTP_400_BAD_REQUEST
    error_code = "VALIDATION_ERROR"


class ResourceNotFoundException(BaseServiceException):
    status_code = status.HTTP_404_NOT_FOUND
    error_code = "RESOURCE_NOT_FOUND"

    def __init__(self, resource_type: str, resource_id: str):
        super().__init__(
            f"{resource_type} not found: {resource_id}",
            details={'resource_type': resource_type, 'resource_id': resource_id},
        )


class ConflictException(BaseServiceException):
    """Resource already exists (409)"""
    status_code = status.HTTP_409_CONFLICT
    error_code = "RESOURCE_CONFLICT"

    def __init__(self, resource_type: str, resource_id: str):
        super().__init__(
            f"{resource_type} already exists: {resource_id}",
            details={'resource_type': resource_type, 'resource_id': resource_id},
        )


def _request_info(request: Request) -> Dict[str, str]:
    return {'path': request.url.path, 'method': request.method}


def jsonable_errors(exc: RequestValidationError) -> list:
    """Pydantic errors reduced to loc/msg/type (``ctx`` may not be JSON-serializable)"""
    return [
        {'loc': list(err.get('loc', ())), 'msg': err.get('msg'), 'type': err.get('type')}
        for err in exc.errors()
    ]


def setup_exception_handlers(app: FastAPI, debug: bool = False):
    """
    Install the handlers on ``app``.

    Args:
        app: FastAPI instance
        debug: Expose exception type and text in 500 bodies
    """

    @app.exception_handler(BaseServiceException)
    async def on_service_exception(request: Request, exc: BaseServiceException):
        level = logging.WARNING if exc.status_code < 500 else logging.ERROR
        logger.log(level, f"{exc.error_code}: {exc.message}", extra=_request_info(request))
        return exc.to_response()

    @app.exception_handler(RequestValidationError)
    async def on_request_validation(request: Request, exc: RequestValidationError):
        logger.warning("Request body rejected", extra=_request_info(request))
        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content=error_body('VALIDATION_ERROR', 'Request validation failed', {'errors': jsonable_errors(exc)}),
        )

    @app.exception_handler(StarletteHTTPException)
    async def on_http_exception(request: Request, exc: StarletteHTTPException):
        logger.warning(f"HTTP {exc.status_code}", extra=_request_info(request))
        return JSONResponse(status_code=exc.status_code, content=error_body('HTTP_ERROR', str(exc.detail)))

    @app.exception_handler(Exception)
    async def on_unhandled(request: Request, exc: Exception):
        logger.critical(
            f"Unhandled {type(exc).__name__}: {exc}",
            exc_info=True,
            extra=_request_info(request),
        )
        details = {'exception_type': type(exc).__name__, 'exception_message': str(exc)} if debug else None
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=error_body('INTERNAL_ERROR', 'Internal server error', details),
        )

    logger.info("Exception handlers configured")
