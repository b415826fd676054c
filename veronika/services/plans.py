from __future__ import annotations

from decimal import Decimal
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from veronika.content import DEFAULT_PLANS
from veronika.db.models import CreditPlan
from veronika.services.errors import ServiceError
from veronika.utils.money import inr_to_usd, to_amount


class PlansService:
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def list_plans(self, active_only: bool = True) -> list[CreditPlan]:
        stmt = select(CreditPlan).order_by(CreditPlan.sort_order, CreditPlan.id)
        if active_only:
            stmt = stmt.where(CreditPlan.active.is_(True))
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def get_plan(self, plan_id: Any, active_only: bool = True) -> CreditPlan | None:
        try:
            plan_id = int(plan_id)
        except (TypeError, ValueError):
            return None
        plan = await self.session.get(CreditPlan, plan_id)
        if plan and active_only and not plan.active:
            return None
        return plan

    async def ensure_defaults(self, usd_to_inr_rate: Decimal) -> int:
        count = await self.session.scalar(select(func.count()).select_from(CreditPlan))
        if count:
            return 0
        for order, (credits, inr_price) in enumerate(DEFAULT_PLANS, start=1):
            self.session.add(
                CreditPlan(
                    credits=credits,
                    inr_price=to_amount(inr_price),
                    usd_price=inr_to_usd(inr_price, usd_to_inr_rate),
                    active=True,
                    sort_order=order,
                )
            )
        await self.session.flush()
        return len(DEFAULT_PLANS)

    async def update_plan(
        self,
        plan_id: Any,
        credits: Any = None,
        inr_price: Any = None,
        usd_price: Any = None,
        active: bool | None = None,
    ) -> CreditPlan:
        plan = await self.get_plan(plan_id, active_only=False)
        if not plan:
            raise ServiceError('plan_not_found', 'Credit plan not found.')
        if credits is not None:
            try:
                value = int(credits)
            except (TypeError, ValueError):
                raise ServiceError('invalid_plan', 'Credits must be a positive integer.')
            if value <= 0:
                raise ServiceError('invalid_plan', 'Credits must be a positive integer.')
            plan.credits = value
        if inr_price is not None:
            price = to_amount(inr_price, default='-1')
            if price <= 0:
                raise ServiceError('invalid_plan', 'INR price must be positive.')
            plan.inr_price = price
        if usd_price is not None:
            price = to_amount(usd_price, default='-1')
            if price <= 0:
                raise ServiceError('invalid_plan', 'USD price must be positive.')
            plan.usd_price = price
        if active is not None:
            plan.active = bool(active)
        await self.session.flush()
        return plan
