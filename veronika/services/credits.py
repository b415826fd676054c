from __future__ import annotations

from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from veronika.db.models import CreditLedger, User
from veronika.services.errors import ServiceError
from veronika.utils.logging import get_logger
from veronika.utils.time import utcnow


logger = get_logger('credits')


class CreditsService:
    """Balance changes for users.

    Every change is a single conditional UPDATE plus a ledger row, so two
    requests racing on the same user can never push the balance below zero,
    and a repeated idempotency key is rejected by the unique constraint on
    ``credit_ledger.idempotency_key``.
    """

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get_user(self, user_id: int) -> Optional[User]:
        return await self.session.get(User, user_id)

    async def has_entry(self, idempotency_key: str) -> bool:
        result = await self.session.execute(
            select(CreditLedger.id).where(CreditLedger.idempotency_key == idempotency_key)
        )
        return result.scalar_one_or_none() is not None

    def _add_entry(
        self,
        user: User,
        delta: int,
        reason: str,
        meta: dict | None,
        idempotency_key: str | None,
    ) -> CreditLedger:
        entry = CreditLedger(
            user_id=user.id,
            delta_credits=delta,
            reason=reason,
            meta=meta or {},
            idempotency_key=idempotency_key,
            created_at=utcnow(),
        )
        self.session.add(entry)
        return entry

    async def debit(
        self,
        user: User,
        amount: int,
        reason: str,
        meta: dict | None = None,
        idempotency_key: str | None = None,
    ) -> bool:
        if amount <= 0:
            return True
        if idempotency_key and await self.has_entry(idempotency_key):
            return False
        result = await self.session.execute(
            update(User)
            .where(User.id == user.id, User.credits >= amount)
            .values(credits=User.credits - amount)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            await self.session.refresh(user, ['credits'])
            return False
        self._add_entry(user, -amount, reason, meta, idempotency_key)
        await self.session.flush()
        await self.session.refresh(user, ['credits'])
        logger.info('credits_debited', user_id=user.id, amount=amount, reason=reason, balance=user.credits)
        return True

    async def credit(
        self,
        user: User,
        amount: int,
        reason: str,
        meta: dict | None = None,
        idempotency_key: str | None = None,
    ) -> bool:
        if amount <= 0:
            return False
        if idempotency_key and await self.has_entry(idempotency_key):
            return False
        await self.session.execute(
            update(User)
            .where(User.id == user.id)
            .values(credits=User.credits + amount)
            .execution_options(synchronize_session=False)
        )
        self._add_entry(user, amount, reason, meta, idempotency_key)
        await self.session.flush()
        await self.session.refresh(user, ['credits'])
        logger.info('credits_added', user_id=user.id, amount=amount, reason=reason, balance=user.credits)
        return True

    async def set_balance(self, user: User, value: int, reason: str, meta: dict | None = None) -> int:
        if value < 0:
            raise ServiceError('invalid_credits', 'Credits cannot be negative.')
        await self.session.refresh(user, ['credits'])
        delta = value - int(user.credits or 0)
        await self.session.execute(
            update(User)
            .where(User.id == user.id)
            .values(credits=value)
            .execution_options(synchronize_session=False)
        )
        if delta:
            self._add_entry(user, delta, reason, {**(meta or {}), 'set_to': value}, None)
        await self.session.flush()
        await self.session.refresh(user, ['credits'])
        return delta

    async def apply_signup_bonus(self, user: User, bonus: int) -> bool:
        return await self.credit(
            user,
            bonus,
            'signup_bonus',
            meta={'bonus': bonus},
            idempotency_key=f'signup:{user.id}',
        )
