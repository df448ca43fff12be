import logging
import uuid

from fastapi import HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class AvidLearnerError(Exception):
    """Base for errors reported to the caller as a distinct, actionable kind."""

    code = "error"
    status_code = 400

    def __init__(self, message: str, *, status_code: int | None = None, details=None):
        super().__init__(message)
        self.message = message
        self.details = details
        if status_code is not None:
            self.status_code = status_code


class InvalidRequest(AvidLearnerError):
    code = "invalid_request"
    status_code = 400


class NotFound(AvidLearnerError):
    code = "not_found"
    status_code = 404


class NoQuizAvailable(AvidLearnerError):
    code = "no_quiz_available"
    status_code = 400


class NoActiveQuiz(AvidLearnerError):
    code = "no_active_quiz"
    status_code = 400


class GenerationError(AvidLearnerError):
    code = "generation_error"
    status_code = 502


class FeatureDisabled(AvidLearnerError):
    code = "feature_disabled"
    status_code = 503


class JudgeUnavailable(AvidLearnerError):
    code = "judge_unavailable"
    status_code = 503


class ScoreRejected(AvidLearnerError):
    code = "score_rejected"
    status_code = 403


class RateLimited(AvidLearnerError):
    code = "rate_limited"
    status_code = 429


class SessionBusy(AvidLearnerError):
    code = "session_busy"
    status_code = 409


class SessionStoreUnavailable(AvidLearnerError):
    code = "session_store_unavailable"
    status_code = 503


def get_request_id(request: Request) -> str:
    return getattr(request.state, "request_id", "unknown")


def error_response(
    request: Request,
    *,
    code: str,
    message: str,
    status_code: int,
    details=None,
) -> JSONResponse:
    payload = {
        "success": False,
        "error": {
            "code": code,
            "message": message,
            "request_id": get_request_id(request),
            "details": details,
        },
    }
    return JSONResponse(status_code=status_code, content=payload)


async def domain_exception_handler(request: Request, exc: AvidLearnerError):
    return error_response(
        request,
        code=exc.code,
        message=exc.message,
        status_code=exc.status_code,
        details=exc.details,
    )


async def http_exception_handler(request: Request, exc: HTTPException):
    return error_response(
        request,
        code="http_error",
        message=str(exc.detail),
        status_code=exc.status_code,
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    return error_response(
        request,
        code="validation_error",
        message="Request validation failed",
        status_code=422,
        details=jsonable_errors(exc),
    )


def jsonable_errors(exc: RequestValidationError) -> list[dict]:
    # pydantic v2 may put exception instances under "ctx"; keep the envelope JSON safe.
    out = []
    for err in exc.errors():
        item = {k: v for k, v in err.items() if k != "ctx"}
        if "ctx" in err:
            item["ctx"] = {k: str(v) for k, v in err["ctx"].items()}
        out.append(item)
    return out


async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled exception | request_id=%s", get_request_id(request), exc_info=exc)
    return error_response(
        request,
        code="internal_error",
        message="Internal server error",
        status_code=500,
    )


async def request_id_middleware(request: Request, call_next):
    incoming = request.headers.get("x-request-id")
    request.state.request_id = incoming or str(uuid.uuid4())
    response = await call_next(request)
    response.headers["x-request-id"] = request.state.request_id
    return response
