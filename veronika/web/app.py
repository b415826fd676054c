from __future__ import annotations

from urllib.parse import urlparse

import httpx
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import Response

from veronika.config import Settings, get_settings
from veronika.db.session import create_engine, create_sessionmaker, create_tables
from veronika.services.accounts import AccountsService
from veronika.services.app_settings import (
    CONTACT_FIELDS,
    CONTACT_INFO,
    CREDITS_PAGE_NOTICE,
    GLOBAL_NOTICE,
    LEGAL_CONTENT,
    LEGAL_FIELDS,
    SOCIAL_FIELDS,
    SOCIAL_LINKS,
    AppSettingsService,
)
from veronika.services.cashfree import CashfreeClient, CashfreeError
from veronika.services.generation import GenerationService
from veronika.services.image_client import ImageProviderClient, ImageProviderError
from veronika.services.oxapay import OxapayClient, OxapayError
from veronika.services.payments import PaymentsService
from veronika.services.plans import PlansService
from veronika.services.seeding import seed_defaults
from veronika.utils.logging import get_logger
from veronika.utils.money import amount_to_float
from veronika.web.admin import register_admin_routes
from veronika.web.common import (
    ApiError,
    add_exception_handlers,
    bearer_token,
    crypto_transaction_payload,
    payment_request_payload,
    plan_payload,
    require_user,
    user_payload,
)
from veronika.web.schemas import (
    CashfreeCheckoutBody,
    GenerateBody,
    LoginBody,
    OxapayCheckoutBody,
    RegisterBody,
    VerifyBody,
)


logger = get_logger("web")


def _relay_status(status_code: int | None, default: int = 502) -> int:
    if status_code and 400 <= status_code <= 599:
        return status_code
    return default


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or get_settings()
    app = FastAPI(title="VERONIKAextra API")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origin_list(),
        allow_methods=["*"],
        allow_headers=["*"],
    )
    add_exception_handlers(app)
    app.state.settings = settings
    app.state.engine = create_engine(settings)
    app.state.sessionmaker = create_sessionmaker(app.state.engine)
    # replaced with httpx.MockTransport in tests
    app.state.http_transport = None

    @app.on_event("startup")
    async def startup() -> None:
        if settings.auto_create_tables:
            await create_tables(app.state.engine)
        async with app.state.sessionmaker() as session:
            await seed_defaults(session, settings)
            await session.commit()

    @app.on_event("shutdown")
    async def shutdown() -> None:
        await app.state.engine.dispose()

    def image_client() -> ImageProviderClient:
        return ImageProviderClient(
            api_key=settings.a4f_api_key,
            endpoint=settings.a4f_endpoint(),
            model=settings.a4f_model,
            size=settings.image_size,
            transport=app.state.http_transport,
        )

    def payments_service(session) -> PaymentsService:
        cashfree = None
        if settings.is_cashfree_enabled():
            cashfree = CashfreeClient(
                app_id=settings.cashfree_app_id,
                secret_key=settings.cashfree_secret_key,
                base_url=settings.cashfree_base_url(),
                api_version=settings.cashfree_api_version,
                transport=app.state.http_transport,
            )
        oxapay = None
        if settings.is_oxapay_enabled():
            oxapay = OxapayClient(
                merchant_key=settings.oxapay_merchant_id,
                base_url=settings.oxapay_base_url,
                transport=app.state.http_transport,
            )
        return PaymentsService(session, settings=settings, cashfree=cashfree, oxapay=oxapay)

    @app.get("/api/health")
    async def health():
        return {"ok": True}

    # Accounts

    @app.post("/api/auth/register")
    async def api_register(body: RegisterBody):
        async with app.state.sessionmaker() as session:
            user, token = await AccountsService(session).register(
                body.name,
                body.email,
                body.password,
                country=body.country,
                device_id=body.device_id,
                initial_credits=settings.initial_credits,
            )
            await session.commit()
            return {"user": user_payload(user), "token": token}

    @app.post("/api/auth/login")
    async def api_login(body: LoginBody):
        async with app.state.sessionmaker() as session:
            user, token = await AccountsService(session).login(body.email, body.password)
            await session.commit()
            return {"user": user_payload(user), "token": token}

    @app.get("/api/auth/profile")
    async def api_profile(request: Request):
        async with app.state.sessionmaker() as session:
            user = await require_user(session, request)
            return {"user": user_payload(user)}

    @app.post("/api/auth/logout")
    async def api_logout(request: Request):
        async with app.state.sessionmaker() as session:
            await AccountsService(session).logout(bearer_token(request))
            await session.commit()
        return {"ok": True}

    # Generation

    @app.post("/api/generate")
    async def api_generate(body: GenerateBody, request: Request):
        async with app.state.sessionmaker() as session:
            user = await require_user(session, request)
            if not settings.a4f_api_key.strip():
                raise ApiError(503, "provider_not_configured", "Missing A4F_API_KEY")
            service = GenerationService(session, image_client(), settings)
            try:
                result = await service.generate(user, body.prompt, body.number_of_images)
            except ImageProviderError as exc:
                raise ApiError(_relay_status(exc.status_code), "provider_error", str(exc))
            return {
                "images": result.images,
                "credits": result.credits,
                "charged": result.charged,
                "refunded": result.refunded,
            }

    # Plans and payments

    @app.get("/api/plans")
    async def api_plans():
        async with app.state.sessionmaker() as session:
            plans = await PlansService(session).list_plans()
            return {"plans": [plan_payload(plan) for plan in plans]}

    async def _active_plan(session, plan_id: int):
        plan = await PlansService(session).get_plan(plan_id)
        if not plan:
            raise ApiError(404, "plan_not_found", "Credit plan not found.")
        return plan

    @app.post("/api/payments/cashfree")
    async def api_cashfree_create(body: CashfreeCheckoutBody, request: Request):
        async with app.state.sessionmaker() as session:
            user = await require_user(session, request)
            plan = await _active_plan(session, body.plan_id)
            try:
                checkout = await payments_service(session).create_cashfree_order(
                    user, plan, phone=body.phone, return_url=body.return_url
                )
            except CashfreeError as exc:
                raise ApiError(400, "gateway_error", str(exc))
            return {
                "order_id": checkout.order_id,
                "payment_link": checkout.payment_url,
                "payment_session_id": checkout.payment_session_id,
                "credits": checkout.credits,
                "amount": amount_to_float(checkout.amount),
                "currency": checkout.currency,
            }

    @app.post("/api/payments/cashfree/verify")
    async def api_cashfree_verify(body: VerifyBody, request: Request):
        async with app.state.sessionmaker() as session:
            user = await require_user(session, request)
            try:
                result = await payments_service(session).verify_cashfree(user, body.order_id.strip())
            except CashfreeError as exc:
                raise ApiError(400, "gateway_error", str(exc))
            return {
                "status": result.status,
                "gateway_status": result.gateway_status,
                "credits_added": result.credits_added,
                "credits": result.credits,
            }

    @app.post("/api/payments/oxapay")
    async def api_oxapay_create(body: OxapayCheckoutBody, request: Request):
        async with app.state.sessionmaker() as session:
            user = await require_user(session, request)
            plan = await _active_plan(session, body.plan_id)
            try:
                checkout = await payments_service(session).create_oxapay_invoice(
                    user, plan, return_url=body.return_url
                )
            except OxapayError as exc:
                raise ApiError(400, "gateway_error", f"Payment Gateway Error: {exc}")
            return {
                "order_id": checkout.order_id,
                "payment_url": checkout.payment_url,
                "track_id": checkout.track_id,
                "credits": checkout.credits,
                "amount": amount_to_float(checkout.amount),
                "currency": checkout.currency,
            }

    @app.post("/api/payments/oxapay/verify")
    async def api_oxapay_verify(body: VerifyBody, request: Request):
        async with app.state.sessionmaker() as session:
            user = await require_user(session, request)
            try:
                result = await payments_service(session).verify_oxapay(user, body.order_id.strip())
            except OxapayError as exc:
                raise ApiError(400, "gateway_error", str(exc))
            return {
                "status": result.status,
                "gateway_status": result.gateway_status,
                "credits_added": result.credits_added,
                "credits": result.credits,
            }

    @app.get("/api/payments/history")
    async def api_payment_history(request: Request):
        async with app.state.sessionmaker() as session:
            user = await require_user(session, request)
            requests, transactions = await payments_service(session).user_history(user)
            return {
                "payment_requests": [payment_request_payload(item) for item in requests],
                "crypto_transactions": [crypto_transaction_payload(item) for item in transactions],
            }

    # Image proxy

    @app.get("/api/proxy-image")
    async def api_proxy_image(url: str | None = None):
        if not url:
            raise ApiError(400, "missing_url", "Missing url")
        try:
            parsed = urlparse(url)
            hostname = parsed.hostname
        except ValueError:
            raise ApiError(400, "invalid_url", "Invalid url")
        if not parsed.scheme or not hostname:
            raise ApiError(400, "invalid_url", "Invalid url")
        if parsed.scheme != "https" or hostname.lower() not in settings.proxy_hosts():
            raise ApiError(400, "forbidden_host", "Forbidden host")
        try:
            async with httpx.AsyncClient(timeout=30.0, transport=app.state.http_transport) as client:
                resp = await client.get(url)
        except httpx.HTTPError as exc:
            logger.warning("proxy_image_failed", url=url, error=str(exc))
            raise ApiError(502, "upstream_error", "Upstream image error")
        if not resp.is_success:
            raise ApiError(_relay_status(resp.status_code), "upstream_error", "Upstream image error")
        content_type = resp.headers.get("content-type") or "image/jpeg"
        return Response(
            content=resp.content,
            media_type=content_type,
            headers={"Access-Control-Allow-Origin": "*"},
        )

    # Public site content

    @app.get("/api/content/notice")
    async def api_global_notice():
        async with app.state.sessionmaker() as session:
            message = await AppSettingsService(session).get(GLOBAL_NOTICE)
            await session.commit()
            return {"message": message or ""}

    @app.get("/api/content/credits-notice")
    async def api_credits_notice():
        async with app.state.sessionmaker() as session:
            message = await AppSettingsService(session).get(CREDITS_PAGE_NOTICE)
            await session.commit()
            return {"message": message or ""}

    @app.get("/api/content/exchange-rate")
    async def api_exchange_rate():
        async with app.state.sessionmaker() as session:
            rate = await AppSettingsService(session).get_exchange_rate()
            await session.commit()
            return {"rate": float(rate)}

    @app.get("/api/content/contact")
    async def api_contact():
        async with app.state.sessionmaker() as session:
            data = await AppSettingsService(session).get_json(CONTACT_INFO, CONTACT_FIELDS)
            await session.commit()
            return data

    @app.get("/api/content/social")
    async def api_social():
        async with app.state.sessionmaker() as session:
            data = await AppSettingsService(session).get_json(SOCIAL_LINKS, SOCIAL_FIELDS)
            await session.commit()
            return data

    @app.get("/api/content/legal")
    async def api_legal():
        async with app.state.sessionmaker() as session:
            data = await AppSettingsService(session).get_json(LEGAL_CONTENT, LEGAL_FIELDS)
            await session.commit()
            return data

    register_admin_routes(app, settings)
    return app
