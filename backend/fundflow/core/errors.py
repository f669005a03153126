from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class AppError(Exception):
    """Erro de domínio com mensagem pronta para o usuário."""

    status_code = 400
    error_code = "APP_ERROR"

    def __init__(self, message: str, *, error_code: str | None = None, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        if error_code:
            self.error_code = error_code
        if status_code:
            self.status_code = status_code


class ValidationError(AppError):
    status_code = 422
    error_code = "VALIDATION_ERROR"


class TransferValidationError(ValidationError):
    error_code = "INVALID_TRANSFER"


class NotFoundError(AppError):
    status_code = 404
    error_code = "NOT_FOUND"


class AuthError(AppError):
    """Falha do provedor de identidade; `code` no formato "auth/<motivo>"."""

    status_code = 400
    error_code = "AUTH_ERROR"

    def __init__(self, code: str, message: str | None = None, *, status_code: int | None = None):
        super().__init__(message or code, error_code=code, status_code=status_code)
        self.code = code


class UploadError(AppError):
    status_code = 502
    error_code = "UPLOAD_FAILED"


class OperationFailed(AppError):
    """Falha de backend já logada e traduzida (rollback feito)."""

    status_code = 503
    error_code = "OPERATION_FAILED"


def _app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": {"error_code": exc.error_code, "message": exc.message}},
    )


def install_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AppError, _app_error_handler)
