from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Optional, Type

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from veronika.config import Settings, get_settings
from veronika.db.models import CreditPlan, CryptoPaymentTransaction, PaymentRequest, User
from veronika.services.cashfree import FAILED_STATUSES, PAID_STATUSES, CashfreeClient, CashfreeError
from veronika.services.credits import CreditsService
from veronika.services.errors import ServiceError
from veronika.services.oxapay import OxapayClient, OxapayError
from veronika.utils.logging import get_logger
from veronika.utils.money import to_amount
from veronika.utils.text import credits_from_plan_label, plan_label
from veronika.utils.time import epoch_millis, utcnow


logger = get_logger('payments')

PENDING = 'pending'
APPROVED = 'approved'
REJECTED = 'rejected'
COMPLETED = 'completed'
ALREADY_PROCESSED = 'already_processed'


@dataclass
class Checkout:
    order_id: str
    payment_url: str
    credits: int
    amount: Decimal
    currency: str
    payment_session_id: str | None = None
    track_id: str | None = None


@dataclass
class Verification:
    status: str
    credits: int
    credits_added: int = 0
    gateway_status: str = ''


def make_order_id(user_id: int, credits: int) -> str:
    return f'{user_id}-{credits}-{epoch_millis()}'


class PaymentsService:
    """Payment intents for Cashfree (UPI, INR) and OXAPAY (crypto, USD).

    An intent is stored as pending before the gateway is called and settled
    by a conditional status update, so a verify call racing with another
    verify call or with an admin approval credits the user at most once.
    """

    def __init__(
        self,
        session: AsyncSession,
        settings: Settings | None = None,
        cashfree: CashfreeClient | None = None,
        oxapay: OxapayClient | None = None,
    ) -> None:
        self.session = session
        self.settings = settings or get_settings()
        self.cashfree = cashfree
        self.oxapay = oxapay

    async def _transition(
        self,
        model: Type[PaymentRequest] | Type[CryptoPaymentTransaction],
        row: Any,
        to_status: str,
        stamp_field: str,
    ) -> bool:
        result = await self.session.execute(
            update(model)
            .where(model.id == row.id, model.status == PENDING)
            .values({'status': to_status, stamp_field: utcnow()})
            .execution_options(synchronize_session=False)
        )
        await self.session.refresh(row)
        return result.rowcount == 1

    async def _credit_purchase(self, user: User, credits: int, key: str, meta: dict) -> int:
        added = await CreditsService(self.session).credit(user, credits, 'purchase', meta=meta, idempotency_key=key)
        return credits if added else 0

    # Cashfree

    async def create_cashfree_order(
        self,
        user: User,
        plan: CreditPlan,
        phone: str | None = None,
        return_url: str | None = None,
    ) -> Checkout:
        if not self.cashfree:
            raise ServiceError('gateway_not_configured', 'Cashfree credentials missing')
        order_id = make_order_id(user.id, plan.credits)
        request = PaymentRequest(
            user_id=user.id,
            user_name=user.name,
            user_email=user.email,
            plan=plan_label(plan.credits),
            credits=plan.credits,
            amount=to_amount(plan.inr_price),
            order_id=order_id,
            note='Cashfree UPI Intent',
            status=PENDING,
            created_at=utcnow(),
        )
        self.session.add(request)
        await self.session.commit()

        phone = (phone or '').strip() or self.settings.default_customer_phone
        try:
            data = await self.cashfree.create_order(
                order_id=order_id,
                amount=request.amount,
                customer_name=user.name,
                customer_email=user.email,
                customer_phone=phone,
                return_url=return_url,
            )
        except CashfreeError as exc:
            logger.warning('cashfree_create_failed', order_id=order_id, status=exc.status_code, error=str(exc))
            await self._transition(PaymentRequest, request, REJECTED, 'processed_at')
            await self.session.commit()
            raise

        request.payment_session_id = str(data.get('payment_session_id') or '') or None
        await self.session.commit()
        logger.info('cashfree_order_created', order_id=order_id, user_id=user.id, amount=str(request.amount))
        return Checkout(
            order_id=order_id,
            payment_url=str(data['payment_link']),
            credits=request.credits,
            amount=request.amount,
            currency='INR',
            payment_session_id=request.payment_session_id,
        )

    async def get_user_request(self, user: User, order_id: str) -> Optional[PaymentRequest]:
        result = await self.session.execute(
            select(PaymentRequest).where(PaymentRequest.order_id == order_id, PaymentRequest.user_id == user.id)
        )
        return result.scalar_one_or_none()

    async def verify_cashfree(self, user: User, order_id: str) -> Verification:
        request = await self.get_user_request(user, order_id)
        if not request:
            raise ServiceError('order_not_found', 'Transaction record not found.')
        if request.status == APPROVED:
            return Verification(ALREADY_PROCESSED, user.credits)
        if request.status == REJECTED:
            return Verification(REJECTED, user.credits)
        if not self.cashfree:
            raise ServiceError('gateway_not_configured', 'Cashfree credentials missing')
        await self.session.commit()

        data = await self.cashfree.get_order(order_id)
        gateway_status = CashfreeClient.order_status(data)
        if gateway_status in PAID_STATUSES:
            added = await self.settle_request(request, user, source='cashfree_verify')
            await self.session.commit()
            if added is None:
                return Verification(ALREADY_PROCESSED, user.credits, gateway_status=gateway_status)
            return Verification(APPROVED, user.credits, added, gateway_status)
        if gateway_status in FAILED_STATUSES:
            await self._transition(PaymentRequest, request, REJECTED, 'processed_at')
            await self.session.commit()
            logger.info('cashfree_order_failed', order_id=order_id, gateway_status=gateway_status)
            return Verification(REJECTED, user.credits, gateway_status=gateway_status)
        return Verification(PENDING, user.credits, gateway_status=gateway_status)

    async def settle_request(self, request: PaymentRequest, user: User, source: str) -> Optional[int]:
        """Approve a pending request and credit its buyer.

        Returns None when the request was no longer pending.
        """
        credits = int(request.credits or 0)
        if credits <= 0:
            credits = credits_from_plan_label(request.plan)
        if not await self._transition(PaymentRequest, request, APPROVED, 'processed_at'):
            return None
        added = await self._credit_purchase(
            user,
            credits,
            f'cashfree:{request.order_id}',
            {'gateway': 'cashfree', 'order_id': request.order_id, 'amount': str(request.amount), 'source': source},
        )
        logger.info('payment_request_approved', order_id=request.order_id, user_id=user.id, credits=added, source=source)
        return added

    # OXAPAY

    async def create_oxapay_invoice(self, user: User, plan: CreditPlan, return_url: str | None = None) -> Checkout:
        if not self.oxapay:
            raise ServiceError('gateway_not_configured', 'OXAPAY merchant key missing')
        order_id = make_order_id(user.id, plan.credits)
        currency = self.settings.oxapay_currency.upper()
        transaction = CryptoPaymentTransaction(
            user_id=user.id,
            user_name=user.name,
            user_email=user.email,
            order_id=order_id,
            credits=plan.credits,
            amount=to_amount(plan.usd_price),
            currency=currency,
            gateway='OXAPAY',
            status=PENDING,
            created_at=utcnow(),
        )
        self.session.add(transaction)
        await self.session.commit()

        try:
            data = await self.oxapay.create_invoice(
                amount=transaction.amount,
                order_id=order_id,
                description=f'Purchase {plan.credits} Credits - {user.name}',
                email=user.email,
                return_url=return_url,
                currency=currency,
                lifetime=self.settings.oxapay_lifetime_minutes,
            )
        except OxapayError as exc:
            logger.warning('oxapay_create_failed', order_id=order_id, status=exc.status_code, error=str(exc))
            raise

        transaction.track_id = str(data.get('trackId') or '') or None
        await self.session.commit()
        logger.info('oxapay_invoice_created', order_id=order_id, user_id=user.id, track_id=transaction.track_id)
        return Checkout(
            order_id=order_id,
            payment_url=str(data['payLink']),
            credits=transaction.credits,
            amount=transaction.amount,
            currency=currency,
            track_id=transaction.track_id,
        )

    async def verify_oxapay(self, user: User, order_id: str) -> Verification:
        result = await self.session.execute(
            select(CryptoPaymentTransaction).where(
                CryptoPaymentTransaction.order_id == order_id,
                CryptoPaymentTransaction.user_id == user.id,
            )
        )
        transaction = result.scalar_one_or_none()
        if not transaction:
            raise ServiceError('order_not_found', 'Transaction record not found.')
        if transaction.status == COMPLETED:
            return Verification(ALREADY_PROCESSED, user.credits)
        if not self.oxapay:
            raise ServiceError('gateway_not_configured', 'OXAPAY merchant key missing')
        if not transaction.track_id:
            raise ServiceError('payment_not_verified', 'Payment verification failed.')
        await self.session.commit()

        data = await self.oxapay.inquiry(transaction.track_id)
        gateway_status = str(data.get('status') or '')
        if not OxapayClient.is_paid(data):
            return Verification(PENDING, user.credits, gateway_status=gateway_status)

        if not await self._transition(CryptoPaymentTransaction, transaction, COMPLETED, 'completed_at'):
            await self.session.commit()
            return Verification(ALREADY_PROCESSED, user.credits, gateway_status=gateway_status)
        added = await self._credit_purchase(
            user,
            int(transaction.credits or 0),
            f'oxapay:{transaction.order_id}',
            {'gateway': 'oxapay', 'order_id': transaction.order_id, 'track_id': transaction.track_id},
        )
        await self.session.commit()
        logger.info('oxapay_payment_completed', order_id=order_id, user_id=user.id, credits=added)
        return Verification(COMPLETED, user.credits, added, gateway_status)

    # Listings and admin actions

    async def user_history(self, user: User) -> tuple[list[PaymentRequest], list[CryptoPaymentTransaction]]:
        requests = await self.session.execute(
            select(PaymentRequest).where(PaymentRequest.user_id == user.id).order_by(PaymentRequest.id.desc())
        )
        transactions = await self.session.execute(
            select(CryptoPaymentTransaction)
            .where(CryptoPaymentTransaction.user_id == user.id)
            .order_by(CryptoPaymentTransaction.id.desc())
        )
        return list(requests.scalars().all()), list(transactions.scalars().all())

    async def list_requests(self) -> list[PaymentRequest]:
        result = await self.session.execute(select(PaymentRequest).order_by(PaymentRequest.id.desc()))
        return list(result.scalars().all())

    async def list_transactions(self) -> list[CryptoPaymentTransaction]:
        result = await self.session.execute(
            select(CryptoPaymentTransaction).order_by(CryptoPaymentTransaction.id.desc())
        )
        return list(result.scalars().all())

    async def _pending_request(self, request_id: int) -> PaymentRequest:
        request = await self.session.get(PaymentRequest, request_id)
        if not request:
            raise ServiceError('request_not_found', 'Payment request not found.')
        if request.status != PENDING:
            raise ServiceError('already_processed', 'Payment request already processed.')
        return request

    async def approve_request(self, request_id: int, admin: User) -> tuple[PaymentRequest, int]:
        request = await self._pending_request(request_id)
        user = await self.session.get(User, request.user_id) if request.user_id else None
        if not user:
            raise ServiceError('user_not_found', 'User associated with request not found.')
        added = await self.settle_request(request, user, source=f'admin:{admin.id}')
        if added is None:
            raise ServiceError('already_processed', 'Payment request already processed.')
        return request, added

    async def reject_request(self, request_id: int, admin: User) -> PaymentRequest:
        request = await self._pending_request(request_id)
        if not await self._transition(PaymentRequest, request, REJECTED, 'processed_at'):
            raise ServiceError('already_processed', 'Payment request already processed.')
        logger.info('payment_request_rejected', order_id=request.order_id, admin_id=admin.id)
        return request
