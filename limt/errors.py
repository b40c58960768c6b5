"""Application error hierarchy and action result translation."""

from __future__ import annotations

import logging
from functools import wraps
from typing import Any, Callable, Optional, Union

from flask import Flask, jsonify
from pydantic import ValidationError as PydanticValidationError
from werkzeug.exceptions import HTTPException

from .schemas.common import ActionFailure, ActionSuccess, ErrorResponse

logger = logging.getLogger(__name__)

UNEXPECTED_ERROR_MESSAGE = "An unexpected error occurred"


class AppError(Exception):
    """Base class for errors that are safe to show to the end user."""

    status_code = 400
    code = "BAD_REQUEST"

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        code: Optional[str] = None,
    ):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        if code is not None:
            self.code = code

    def to_failure(self) -> ActionFailure:
        return ActionFailure(error=self.message, code=self.code)


class UnauthorizedError(AppError):
    status_code = 401
    code = "UNAUTHORIZED"

    def __init__(self, message: str = "You must be signed in to perform this action"):
        super().__init__(message)


class ForbiddenError(AppError):
    status_code = 403
    code = "FORBIDDEN"

    def __init__(self, message: str = "You do not have permission to perform this action"):
        super().__init__(message)


class NotFoundError(AppError):
    status_code = 404
    code = "NOT_FOUND"

    def __init__(self, resource: str = "Resource"):
        super().__init__(f"{resource} not found")
        self.resource = resource


class ConflictError(AppError):
    status_code = 409
    code = "CONFLICT"

    def __init__(self, message: str = "This resource already exists"):
        super().__init__(message)


class RateLimitError(AppError):
    status_code = 429
    code = "RATE_LIMIT"

    def __init__(
        self,
        message: str = "Too many requests. Please try again later",
        retry_after: Optional[float] = None,
    ):
        super().__init__(message)
        self.retry_after = retry_after


class ValidationError(AppError):
    """Input failed validation. Carries messages keyed by field name."""

    status_code = 422
    code = "VALIDATION_ERROR"

    def __init__(self, errors: dict[str, list[str]]):
        super().__init__("Validation failed")
        self.errors = errors

    @classmethod
    def from_pydantic(cls, exc: PydanticValidationError) -> "ValidationError":
        errors: dict[str, list[str]] = {}
        for item in exc.errors():
            field = ".".join(str(part) for part in item["loc"]) or "__root__"
            errors.setdefault(field, []).append(item["msg"])
        return cls(errors)

    def first_message(self) -> str:
        for messages in self.errors.values():
            if messages:
                return messages[0]
        return self.message

    def to_failure(self) -> ActionFailure:
        return ActionFailure(
            error=self.first_message(),
            code=self.code,
            details={"errors": self.errors},
        )


# Plan guard errors


class UnknownPlanError(AppError):
    code = "UNKNOWN_PLAN"

    def __init__(self, plan_id: Any):
        super().__init__(f"Unknown plan: {plan_id!r}")
        self.plan_id = plan_id


class UnknownResourceError(AppError):
    code = "UNKNOWN_RESOURCE"

    def __init__(self, resource: Any):
        super().__init__(f"Unknown plan resource: {resource!r}")
        self.resource = resource


class UnknownFeatureError(AppError):
    code = "UNKNOWN_FEATURE"

    def __init__(self, feature: Any):
        super().__init__(f"Unknown plan feature: {feature!r}")
        self.feature = feature


class InvalidStateError(AppError):
    code = "INVALID_STATE"


class InvalidArgumentError(AppError):
    code = "INVALID_ARGUMENT"


class PlanLimitError(AppError):
    status_code = 403
    code = "PLAN_LIMIT_REACHED"


class DomainInUseError(ConflictError):
    code = "DOMAIN_HAS_LINKS"


ActionResult = Union[ActionSuccess, ActionFailure]


def safe_action(failure_message: str = UNEXPECTED_ERROR_MESSAGE) -> Callable:
    """Wrap an action so it always returns an ActionResult.

    AppErrors and pydantic validation errors become ActionFailure with
    their message and code. Anything else is logged and reported with
    ``failure_message`` so internal details never reach the caller.

    Usage:
        @safe_action("Failed to load plan")
        def get_plan_guard_state(self, data):
            ...
    """
    def decorator(func: Callable[..., Any]) -> Callable[..., ActionResult]:
        @wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> ActionResult:
            try:
                data = func(*args, **kwargs)
            except AppError as e:
                return e.to_failure()
            except PydanticValidationError as e:
                return ValidationError.from_pydantic(e).to_failure()
            except Exception:
                logger.exception(f"Unexpected error in action {func.__qualname__}")
                return ActionFailure(error=failure_message)
            return ActionSuccess(data=data)
        return wrapper
    return decorator


# Codes that do not come from an AppError subclass default status
_CODE_STATUS = {
    "UNAUTHORIZED": 401,
    "FORBIDDEN": 403,
    "NOT_FOUND": 404,
    "CONFLICT": 409,
    "DOMAIN_HAS_LINKS": 409,
    "RATE_LIMIT": 429,
    "VALIDATION_ERROR": 422,
    "PLAN_LIMIT_REACHED": 403,
}


def status_for_code(code: Optional[str]) -> int:
    """Map a failure code to an HTTP status. Uncoded failures are 500."""
    if code is None:
        return 500
    return _CODE_STATUS.get(code, 400)


def result_response(result: ActionResult, success_status: int = 200):
    """Render an ActionResult as a Flask JSON response tuple."""
    if result.success:
        return jsonify(result.model_dump(mode="json")), success_status
    return jsonify(result.model_dump(mode="json", exclude_none=True)), status_for_code(result.code)


def register_error_handlers(app: Flask) -> None:
    """Render errors that escape a view as JSON ErrorResponse bodies."""

    @app.errorhandler(AppError)
    def handle_app_error(error: AppError):
        body = ErrorResponse(error=error.message, code=error.code)
        return jsonify(body.model_dump(exclude_none=True)), error.status_code

    @app.errorhandler(HTTPException)
    def handle_http_error(error: HTTPException):
        body = ErrorResponse(error=error.description or error.name, code=error.name.upper().replace(" ", "_"))
        return jsonify(body.model_dump(exclude_none=True)), error.code

    @app.errorhandler(Exception)
    def handle_unexpected_error(error: Exception):
        logger.exception("Unhandled error during request")
        body = ErrorResponse(error=UNEXPECTED_ERROR_MESSAGE)
        return jsonify(body.model_dump(exclude_none=True)), 500
