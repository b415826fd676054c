from __future__ import annotations

from typing import Any, Dict

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from veronika.db.models import CreditPlan, CryptoPaymentTransaction, PaymentRequest, User
from veronika.services.accounts import AccountsService
from veronika.services.errors import ServiceError
from veronika.utils.logging import get_logger
from veronika.utils.money import amount_to_float


logger = get_logger("web")

SERVICE_ERROR_STATUS: Dict[str, int] = {
    "invalid_input": 400,
    "email_taken": 400,
    "registration_conflict": 409,
    "invalid_credentials": 401,
    "invalid_prompt": 400,
    "prompt_too_long": 400,
    "insufficient_credits": 402,
    "order_not_found": 404,
    "payment_not_verified": 400,
    "request_not_found": 404,
    "user_not_found": 404,
    "plan_not_found": 404,
    "already_processed": 409,
    "cannot_delete_self": 400,
    "invalid_plan": 400,
    "invalid_credits": 400,
    "invalid_rate": 400,
    "gateway_not_configured": 503,
}


class ApiError(Exception):
    def __init__(self, status_code: int, code: str, message: str | None = None) -> None:
        super().__init__(message or code)
        self.status_code = status_code
        self.code = code
        self.message = message or code

    @classmethod
    def from_service(cls, exc: ServiceError) -> "ApiError":
        return cls(SERVICE_ERROR_STATUS.get(exc.code, 400), exc.code, exc.message)


def error_response(status_code: int, code: str, message: str, **extra: Any) -> JSONResponse:
    return JSONResponse({"error": code, "message": message, **extra}, status_code=status_code)


def add_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(ApiError)
    async def api_error_handler(request: Request, exc: ApiError):
        return error_response(exc.status_code, exc.code, exc.message)

    @app.exception_handler(ServiceError)
    async def service_error_handler(request: Request, exc: ServiceError):
        err = ApiError.from_service(exc)
        return error_response(err.status_code, err.code, err.message)

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        return error_response(exc.status_code, "http_error", str(exc.detail))

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        return error_response(422, "validation_error", "Input validation failed", details=jsonable_errors(exc))

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception("unhandled_error", method=request.method, path=request.url.path)
        return error_response(500, "internal_error", "Internal Server Error")


def jsonable_errors(exc: RequestValidationError) -> list[dict[str, Any]]:
    return [
        {"loc": [str(part) for part in err.get("loc", ())], "msg": str(err.get("msg", ""))}
        for err in exc.errors()
    ]


def bearer_token(request: Request) -> str:
    header = request.headers.get("authorization", "")
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer":
        return ""
    return token.strip()


async def require_user(session, request: Request) -> User:
    user = await AccountsService(session).get_by_token(bearer_token(request))
    if not user:
        raise ApiError(401, "unauthorized", "Unauthorized.")
    return user


async def require_admin(session, request: Request) -> User:
    user = await require_user(session, request)
    if not user.is_admin:
        raise ApiError(403, "forbidden", "Forbidden: Admin access required.")
    return user


def user_payload(user: User) -> Dict[str, Any]:
    return {
        "id": user.id,
        "name": user.name,
        "email": user.email,
        "credits": int(user.credits or 0),
        "is_admin": bool(user.is_admin),
        "country": user.country,
        "created_at": user.created_at.isoformat() if user.created_at else None,
    }


def plan_payload(plan: CreditPlan) -> Dict[str, Any]:
    return {
        "id": plan.id,
        "credits": plan.credits,
        "inr_price": amount_to_float(plan.inr_price),
        "usd_price": amount_to_float(plan.usd_price),
        "active": bool(plan.active),
    }


def payment_request_payload(item: PaymentRequest) -> Dict[str, Any]:
    return {
        "id": item.id,
        "user_id": item.user_id,
        "user_name": item.user_name,
        "user_email": item.user_email,
        "plan": item.plan,
        "credits": item.credits,
        "amount": amount_to_float(item.amount),
        "order_id": item.order_id,
        "note": item.note,
        "status": item.status,
        "created_at": item.created_at.isoformat() if item.created_at else None,
        "processed_at": item.processed_at.isoformat() if item.processed_at else None,
    }


def crypto_transaction_payload(item: CryptoPaymentTransaction) -> Dict[str, Any]:
    return {
        "id": item.id,
        "user_id": item.user_id,
        "user_name": item.user_name,
        "user_email": item.user_email,
        "order_id": item.order_id,
        "track_id": item.track_id,
        "credits": item.credits,
        "amount": amount_to_float(item.amount),
        "currency": item.currency,
        "gateway": item.gateway,
        "status": item.status,
        "created_at": item.created_at.isoformat() if item.created_at else None,
        "completed_at": item.completed_at.isoformat() if item.completed_at else None,
    }
