from __future__ import annotations

from fastapi import FastAPI, Request

from veronika.config import Settings
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
from veronika.services.credits import CreditsService
from veronika.services.payments import PaymentsService
from veronika.services.plans import PlansService
from veronika.utils.logging import get_logger
from veronika.web.common import (
    ApiError,
    crypto_transaction_payload,
    payment_request_payload,
    plan_payload,
    require_admin,
    user_payload,
)
from veronika.web.schemas import (
    ContactBody,
    CreditsBody,
    ExchangeRateBody,
    LegalBody,
    NoticeBody,
    PlanUpdateBody,
    SocialBody,
)


logger = get_logger("admin")


def register_admin_routes(app: FastAPI, settings: Settings) -> None:
    async def _target_user(session, user_id: int):
        user = await CreditsService(session).get_user(user_id)
        if not user:
            raise ApiError(404, "user_not_found", "User not found.")
        return user

    @app.get("/api/admin/users")
    async def admin_users(request: Request):
        async with app.state.sessionmaker() as session:
            await require_admin(session, request)
            users = await AccountsService(session).list_users()
            return {"users": [user_payload(user) for user in users]}

    @app.put("/api/admin/users/{user_id}/credits")
    async def admin_set_credits(user_id: int, body: CreditsBody, request: Request):
        async with app.state.sessionmaker() as session:
            admin = await require_admin(session, request)
            user = await _target_user(session, user_id)
            await CreditsService(session).set_balance(user, body.credits, "admin_set", meta={"admin_id": admin.id})
            await session.commit()
            logger.info("admin_credits_set", admin_id=admin.id, user_id=user.id, credits=user.credits)
            return {"user": user_payload(user), "message": "Credits updated successfully."}

    @app.post("/api/admin/users/{user_id}/credits")
    async def admin_add_credits(user_id: int, body: CreditsBody, request: Request):
        async with app.state.sessionmaker() as session:
            admin = await require_admin(session, request)
            user = await _target_user(session, user_id)
            if body.credits <= 0:
                raise ApiError(400, "invalid_credits", "Amount must be a positive integer.")
            await CreditsService(session).credit(user, body.credits, "admin_add", meta={"admin_id": admin.id})
            await session.commit()
            logger.info("admin_credits_added", admin_id=admin.id, user_id=user.id, amount=body.credits)
            return {"user": user_payload(user)}

    @app.delete("/api/admin/users/{user_id}")
    async def admin_delete_user(user_id: int, request: Request):
        async with app.state.sessionmaker() as session:
            admin = await require_admin(session, request)
            await AccountsService(session).delete_user(admin, user_id)
            await session.commit()
            return {"message": "User deleted successfully."}

    @app.get("/api/admin/payment-requests")
    async def admin_payment_requests(request: Request):
        async with app.state.sessionmaker() as session:
            await require_admin(session, request)
            items = await PaymentsService(session, settings=settings).list_requests()
            return {"payment_requests": [payment_request_payload(item) for item in items]}

    @app.get("/api/admin/crypto-transactions")
    async def admin_crypto_transactions(request: Request):
        async with app.state.sessionmaker() as session:
            await require_admin(session, request)
            items = await PaymentsService(session, settings=settings).list_transactions()
            return {"crypto_transactions": [crypto_transaction_payload(item) for item in items]}

    @app.post("/api/admin/payment-requests/{request_id}/approve")
    async def admin_approve_request(request_id: int, request: Request):
        async with app.state.sessionmaker() as session:
            admin = await require_admin(session, request)
            item, added = await PaymentsService(session, settings=settings).approve_request(request_id, admin)
            await session.commit()
            return {
                "payment_request": payment_request_payload(item),
                "credits_added": added,
                "message": f"Payment request approved. {added} credits added.",
            }

    @app.post("/api/admin/payment-requests/{request_id}/reject")
    async def admin_reject_request(request_id: int, request: Request):
        async with app.state.sessionmaker() as session:
            admin = await require_admin(session, request)
            item = await PaymentsService(session, settings=settings).reject_request(request_id, admin)
            await session.commit()
            return {"payment_request": payment_request_payload(item), "message": "Payment request rejected."}

    @app.get("/api/admin/plans")
    async def admin_plans(request: Request):
        async with app.state.sessionmaker() as session:
            await require_admin(session, request)
            plans = await PlansService(session).list_plans(active_only=False)
            return {"plans": [plan_payload(plan) for plan in plans]}

    @app.put("/api/admin/plans/{plan_id}")
    async def admin_update_plan(plan_id: int, body: PlanUpdateBody, request: Request):
        async with app.state.sessionmaker() as session:
            await require_admin(session, request)
            plan = await PlansService(session).update_plan(
                plan_id,
                credits=body.credits,
                inr_price=body.inr_price,
                usd_price=body.usd_price,
                active=body.active,
            )
            await session.commit()
            return {"plan": plan_payload(plan), "message": "Credit plan updated successfully."}

    async def _set_text(request: Request, key: str, value: str) -> dict:
        async with app.state.sessionmaker() as session:
            await require_admin(session, request)
            await AppSettingsService(session).set(key, value.strip())
            await session.commit()
        return {"message": value.strip()}

    @app.put("/api/admin/notice")
    async def admin_global_notice(body: NoticeBody, request: Request):
        return await _set_text(request, GLOBAL_NOTICE, body.message)

    @app.put("/api/admin/credits-notice")
    async def admin_credits_notice(body: NoticeBody, request: Request):
        return await _set_text(request, CREDITS_PAGE_NOTICE, body.message)

    @app.put("/api/admin/exchange-rate")
    async def admin_exchange_rate(body: ExchangeRateBody, request: Request):
        async with app.state.sessionmaker() as session:
            await require_admin(session, request)
            rate = await AppSettingsService(session).set_exchange_rate(body.rate)
            await session.commit()
            return {"rate": float(rate), "message": "Exchange rate updated successfully."}

    async def _set_json(request: Request, key: str, fields: tuple[str, ...], value: dict) -> dict:
        async with app.state.sessionmaker() as session:
            await require_admin(session, request)
            data = await AppSettingsService(session).set_json(key, fields, value)
            await session.commit()
        return data

    @app.put("/api/admin/contact")
    async def admin_contact(body: ContactBody, request: Request):
        return await _set_json(request, CONTACT_INFO, CONTACT_FIELDS, body.model_dump())

    @app.put("/api/admin/social")
    async def admin_social(body: SocialBody, request: Request):
        return await _set_json(request, SOCIAL_LINKS, SOCIAL_FIELDS, body.model_dump())

    @app.put("/api/admin/legal")
    async def admin_legal(body: LegalBody, request: Request):
        return await _set_json(request, LEGAL_CONTENT, LEGAL_FIELDS, body.model_dump())
