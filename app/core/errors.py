"""
Application error hierarchy and FastAPI exception handlers.

Every domain failure is an AppError subclass carrying its HTTP status and a
stable machine-readable code. Handlers render them as:

    {"error": "<CODE>", "message": "<text>", ...extra}

Usage:
    # In main.py
    from app.core.errors import register_exception_handlers
    register_exception_handlers(app)
"""
import traceback
from typing import Any, Iterable, Optional

from fastapi import FastAPI, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from slowapi.errors import RateLimitExceeded
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from app.utils import get_logger


log = get_logger(__name__)


class AppError(Exception):
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    code: str = "INTERNAL_ERROR"
    message: str = "An unexpected error occurred"
    headers: Optional[dict[str, str]] = None

    def __init__(self, message: Optional[str] = None, **extra: Any):
        self.message = message or self.message
        self.extra = extra
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        return {"error": self.code, "message": self.message, **self.extra}


# ============================================================================
# 401 - Authentication
# ============================================================================

class AuthenticationError(AppError):
    status_code = status.HTTP_401_UNAUTHORIZED
    code = "UNAUTHENTICATED"
    message = "Authentication required"
    headers = {"WWW-Authenticate": "Bearer"}


class MissingToken(AuthenticationError):
    code = "MISSING_TOKEN"
    message = "No authorization token provided"


class InvalidToken(AuthenticationError):
    code = "INVALID_TOKEN"
    message = "Invalid token"


class TokenExpired(AuthenticationError):
    code = "TOKEN_EXPIRED"
    message = "Token has expired"


class WrongTokenType(AuthenticationError):
    code = "WRONG_TOKEN_TYPE"
    message = "Token is not valid for this resource"


class InvalidCredentials(AuthenticationError):
    code = "INVALID_CREDENTIALS"
    message = "Invalid email or password"


class TenantContextMissing(AuthenticationError):
    code = "TENANT_CONTEXT_MISSING"
    message = "Organization context required"


# ============================================================================
# 403 - Authorization
# ============================================================================

class AuthorizationError(AppError):
    status_code = status.HTTP_403_FORBIDDEN
    code = "FORBIDDEN"
    message = "Access denied"


class AccountDeactivated(AuthorizationError):
    code = "ACCOUNT_DEACTIVATED"
    message = "Account is deactivated"


class InsufficientPermission(AuthorizationError):
    code = "INSUFFICIENT_PERMISSIONS"
    message = "You do not have permission to perform this action"

    def __init__(self, required: Iterable[str], current_role: Optional[str] = None, *, any_of: bool = False):
        required = list(required)
        extra: dict[str, Any] = {"current_role": current_role}
        if len(required) == 1:
            extra["required_permission"] = required[0]
        else:
            extra["required_permissions"] = required
            extra["match"] = "any" if any_of else "all"
        super().__init__(**extra)
        self.required = required


class CrossTenantAccess(AuthorizationError):
    code = "CROSS_TENANT_ACCESS"
    message = "Access denied: resource belongs to another organization"


class SystemRoleImmutable(AuthorizationError):
    code = "SYSTEM_ROLE_IMMUTABLE"
    message = "System roles cannot be modified or deleted"


# ============================================================================
# 404 / 409 / 400
# ============================================================================

class NotFoundError(AppError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "NOT_FOUND"
    message = "Resource not found"


class RoleNotFound(NotFoundError):
    code = "ROLE_NOT_FOUND"
    message = "Role not found"


class UserNotFound(NotFoundError):
    code = "USER_NOT_FOUND"
    message = "User not found"


class OrganizationNotFound(NotFoundError):
    code = "ORGANIZATION_NOT_FOUND"
    message = "Organization not found"


class ConflictError(AppError):
    status_code = status.HTTP_409_CONFLICT
    code = "CONFLICT"
    message = "Conflict"


class DuplicateSlug(ConflictError):
    code = "DUPLICATE_SLUG"
    message = "A role with this slug already exists"


class RoleInUse(ConflictError):
    code = "ROLE_IN_USE"
    message = "Cannot delete a role that is assigned to users"


class OrganizationExists(ConflictError):
    code = "ORGANIZATION_EXISTS"
    message = "An organization with this slug already exists"


class EmailInUse(ConflictError):
    code = "EMAIL_IN_USE"
    message = "An account with this email already exists"


class InvitationExists(ConflictError):
    code = "INVITATION_EXISTS"
    message = "A pending invitation already exists for this email"


class BadRequestError(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    code = "BAD_REQUEST"
    message = "Bad request"


class UnknownPermission(BadRequestError):
    code = "UNKNOWN_PERMISSION"
    message = "Unknown permission"


class CannotModifySelf(BadRequestError):
    code = "CANNOT_MODIFY_SELF"
    message = "You cannot change your own access"


class InvalidResetCode(BadRequestError):
    code = "INVALID_RESET_CODE"
    message = "Invalid or expired reset code"


class InvalidInvitation(BadRequestError):
    code = "INVALID_INVITATION"
    message = "Invalid or expired invitation"


class WeakPassword(BadRequestError):
    code = "WEAK_PASSWORD"
    message = "Password is too short"


class AuditWriteFailure(AppError):
    """Raised inside the audit logger only; never reaches a client."""
    code = "AUDIT_WRITE_FAILURE"
    message = "Failed to write audit log entry"


# ============================================================================
# Handlers
# ============================================================================

def register_exception_handlers(app: FastAPI) -> None:
    """Register application exception handlers on the FastAPI app."""

    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError) -> Response:
        if exc.status_code >= 500:
            log.error("%s on %s %s", exc.code, request.method, request.url.path)
        else:
            log.info("%s %s -> %s %s", request.method, request.url.path, exc.status_code, exc.code)
        return JSONResponse(
            status_code=exc.status_code,
            content=jsonable_encoder(exc.to_dict()),
            headers=exc.headers,
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(_request: Request, exc: RequestValidationError) -> Response:
        errors = dict()
        for error in exc.errors():
            if "loc" not in error or "msg" not in error:
                continue
            key = error["loc"][-1]
            if key == "__root__":
                key = "root"
            errors[key] = error["msg"]
        log.info("Request validation error %s", errors)
        return JSONResponse(status_code=400, content=jsonable_encoder(errors))

    @app.exception_handler(RateLimitExceeded)
    def rate_limit_exceeded_handler(_request: Request, _exc: RateLimitExceeded) -> Response:
        return JSONResponse({"error": "You are going too fast"}, status_code=429)

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> Response:
        log.error(
            "Unhandled exception on %s %s:\n%s",
            request.method, request.url.path, traceback.format_exc(),
        )
        return JSONResponse(
            status_code=500,
            content={"error": "INTERNAL_ERROR", "message": "An unexpected error occurred. Please try again later."},
        )
