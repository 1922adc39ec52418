"""Custom exceptions and RFC 7807 Problem Detail error handlers."""

from __future__ import annotations

from datetime import date
from typing import Any, Optional, Sequence

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

BASE_ERROR_URI = "https://leaveflow.local/errors"


# ── Exception hierarchy ─────────────────────────────────────────────

class AppException(Exception):
    """Base for all application exceptions → RFC 7807 JSON."""

    def __init__(
        self,
        status_code: int,
        error_type: str,
        title: str,
        detail: str,
        errors: Optional[dict[str, Any]] = None,
    ) -> None:
        self.status_code = status_code
        self.error_type = error_type
        self.title = title
        self.detail = detail
        self.errors = errors
        super().__init__(detail)


class NotFoundException(AppException):
    """404 — entity not found."""

    def __init__(self, entity_type: str, entity_id: Any) -> None:
        super().__init__(
            status_code=404,
            error_type="not-found",
            title=f"{entity_type} Not Found",
            detail=f"{entity_type} with id '{entity_id}' does not exist.",
        )
        self.entity_type = entity_type
        self.entity_id = entity_id


class ConflictError(AppException):
    """409 — an overlapping leave request already blocks these dates."""

    def __init__(
        self,
        category: str,
        start_date: date,
        end_date: date,
        conflicts: Sequence[dict[str, Any]],
    ) -> None:
        super().__init__(
            status_code=409,
            error_type="leave-conflict",
            title="Conflicting Leave Request",
            detail=(
                f"A pending or approved request already overlaps "
                f"{start_date.isoformat()} to {end_date.isoformat()}."
            ),
            errors={
                "category": category,
                "start_date": start_date.isoformat(),
                "end_date": end_date.isoformat(),
                "conflicts": list(conflicts),
            },
        )


class InsufficientBalanceError(AppException):
    """422 — request would exceed the allocation or the monthly cap."""

    def __init__(
        self,
        category: str,
        requested: int,
        remaining: Optional[int],
        *,
        reason: str = "allocation",
        limit: Optional[int] = None,
    ) -> None:
        if reason == "monthly_cap":
            detail = (
                f"Monthly limit of {limit} approved {category} requests reached."
            )
        else:
            detail = (
                f"Insufficient {category} balance. "
                f"Remaining: {remaining}, Requested: {requested}."
            )
        super().__init__(
            status_code=422,
            error_type="insufficient-balance",
            title="Insufficient Balance",
            detail=detail,
            errors={
                "category": category,
                "requested": requested,
                "remaining": remaining,
                "reason": reason,
                "limit": limit,
            },
        )
        self.category = category
        self.requested = requested
        self.remaining = remaining
        self.reason = reason


class ForbiddenException(AppException):
    """403 — the authorization policy denied the action."""

    def __init__(
        self,
        detail: str = "You do not have permission to perform this action.",
        *,
        action: Optional[str] = None,
    ) -> None:
        super().__init__(
            status_code=403,
            error_type="forbidden",
            title="Forbidden",
            detail=detail,
            errors={"action": action} if action else None,
        )


class IllegalStateTransitionError(AppException):
    """409 — the action is not legal from the request's current state."""

    def __init__(self, manager_status: str, hr_status: str, action: str) -> None:
        super().__init__(
            status_code=409,
            error_type="illegal-state-transition",
            title="Illegal State Transition",
            detail=(
                f"Cannot apply '{action}' to a request in state "
                f"(manager={manager_status}, hr={hr_status})."
            ),
            errors={
                "manager_status": manager_status,
                "hr_status": hr_status,
                "action": action,
            },
        )
        self.manager_status = manager_status
        self.hr_status = hr_status
        self.action = action


class ConcurrencyError(AppException):
    """412 — stale concurrency token; reload and retry."""

    def __init__(
        self,
        entity_type: str,
        entity_id: Any,
        *,
        expected_version: Optional[int] = None,
        current_version: Optional[int] = None,
    ) -> None:
        super().__init__(
            status_code=412,
            error_type="concurrency-conflict",
            title="Concurrent Modification",
            detail=(
                f"{entity_type} '{entity_id}' was modified by another request. "
                "Reload it and try again."
            ),
            errors={
                "expected_version": expected_version,
                "current_version": current_version,
            },
        )
        self.entity_type = entity_type
        self.entity_id = entity_id


class ValidationException(AppException):
    """422 — business-logic validation failures."""

    def __init__(self, errors: dict[str, list[str]]) -> None:
        super().__init__(
            status_code=422,
            error_type="validation-error",
            title="Validation Error",
            detail="One or more fields failed validation.",
            errors=errors,
        )


# ── RFC 7807 builder ────────────────────────────────────────────────

def _build_problem_detail(exc: AppException, request: Request) -> dict[str, Any]:
    body: dict[str, Any] = {
        "type": f"{BASE_ERROR_URI}/{exc.error_type}",
        "title": exc.title,
        "status": exc.status_code,
        "detail": exc.detail,
        "instance": str(request.url.path),
    }
    if exc.errors:
        body["errors"] = exc.errors
    return body


# ── FastAPI handlers ────────────────────────────────────────────────

async def _handle_app_exception(
    request: Request,
    exc: AppException,
) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=_build_problem_detail(exc, request),
        media_type="application/problem+json",
    )


async def _handle_validation_error(
    request: Request,
    exc: RequestValidationError,
) -> JSONResponse:
    field_errors: dict[str, list[str]] = {}
    for err in exc.errors():
        loc = err.get("loc", ())
        name = (
            ".".join(str(p) for p in loc[1:])
            if len(loc) > 1
            else str(loc[0]) if loc else "unknown"
        )
        field_errors.setdefault(name, []).append(err.get("msg", "Invalid value"))

    return JSONResponse(
        status_code=422,
        content={
            "type": f"{BASE_ERROR_URI}/validation-error",
            "title": "Validation Error",
            "status": 422,
            "detail": "Request validation failed.",
            "instance": str(request.url.path),
            "errors": field_errors,
        },
        media_type="application/problem+json",
    )


# ── Registration helper (called from main.py) ──────────────────────

def register_exception_handlers(app: FastAPI) -> None:
    """Attach all custom exception handlers to the FastAPI app."""
    app.add_exception_handler(AppException, _handle_app_exception)          # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, _handle_validation_error)  # type: ignore[arg-type]
