from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncSession

from veronika.config import Settings
from veronika.services.accounts import AccountsService
from veronika.services.app_settings import AppSettingsService
from veronika.services.plans import PlansService
from veronika.utils.logging import get_logger


logger = get_logger('seed')


async def seed_defaults(session: AsyncSession, settings: Settings) -> None:
    """Default site settings, credit plans and the bootstrap admin. Safe to rerun."""
    app_settings = AppSettingsService(session)
    await app_settings.ensure_defaults()
    rate = await app_settings.get_exchange_rate()
    created = await PlansService(session).ensure_defaults(rate)
    admin = await AccountsService(session).ensure_admin(
        settings.admin_email,
        settings.admin_password,
        settings.admin_initial_credits,
    )
    logger.info('seed_done', plans_created=created, admin_id=admin.id if admin else None)
