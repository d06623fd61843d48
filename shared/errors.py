"""Lỗi nghiệp vụ dùng chung và ánh xạ sang HTTP status."""
import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class DomainError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(DomainError):
    status_code = 404


class BadRequestError(DomainError):
    status_code = 400


class ConflictError(DomainError):
    status_code = 409


class InvalidStateTransition(ConflictError):
    """Chuyển trạng thái không hợp lệ (vd: duyệt một quán không còn PENDING)."""


class UpstreamError(DomainError):
    status_code = 503


def register_error_handlers(app: FastAPI):
    @app.exception_handler(DomainError)
    async def handle_domain_error(request: Request, exc: DomainError):
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
        return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})
