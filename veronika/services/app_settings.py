from __future__ import annotations

import json
from decimal import Decimal, InvalidOperation
from typing import Any, Dict

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from veronika.content import (
    DEFAULT_CONTACT,
    DEFAULT_PRIVACY,
    DEFAULT_SOCIAL,
    DEFAULT_TERMS,
    DEFAULT_USD_TO_INR_RATE,
)
from veronika.db.models import AppSetting
from veronika.services.errors import ServiceError
from veronika.utils.time import utcnow


GLOBAL_NOTICE = 'global_notice'
CREDITS_PAGE_NOTICE = 'credits_page_notice'
EXCHANGE_RATE = 'usd_to_inr_rate'
CONTACT_INFO = 'contact_info'
SOCIAL_LINKS = 'social_links'
LEGAL_CONTENT = 'legal_content'

DEFAULT_SETTINGS: Dict[str, str] = {
    GLOBAL_NOTICE: '',
    CREDITS_PAGE_NOTICE: '',
    EXCHANGE_RATE: DEFAULT_USD_TO_INR_RATE,
    CONTACT_INFO: json.dumps(DEFAULT_CONTACT),
    SOCIAL_LINKS: json.dumps(DEFAULT_SOCIAL),
    LEGAL_CONTENT: json.dumps({'terms': DEFAULT_TERMS, 'privacy': DEFAULT_PRIVACY}),
}

CONTACT_FIELDS = tuple(DEFAULT_CONTACT)
SOCIAL_FIELDS = tuple(DEFAULT_SOCIAL)
LEGAL_FIELDS = ('terms', 'privacy')


class AppSettingsService:
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get(self, key: str, default: str | None = None) -> str | None:
        result = await self.session.execute(select(AppSetting).where(AppSetting.key == key))
        row = result.scalar_one_or_none()
        if row:
            return row.value
        if default is None:
            default = DEFAULT_SETTINGS.get(key)
        if default is None:
            return None
        self.session.add(AppSetting(key=key, value=str(default), updated_at=utcnow()))
        await self.session.flush()
        return str(default)

    async def set(self, key: str, value: str) -> None:
        result = await self.session.execute(select(AppSetting).where(AppSetting.key == key))
        row = result.scalar_one_or_none()
        if row:
            row.value = value
            row.updated_at = utcnow()
        else:
            self.session.add(AppSetting(key=key, value=value, updated_at=utcnow()))
        await self.session.flush()

    async def ensure_defaults(self) -> None:
        for key in DEFAULT_SETTINGS:
            await self.get(key)

    async def get_json(self, key: str, fields: tuple[str, ...]) -> Dict[str, str]:
        raw = await self.get(key) or '{}'
        try:
            data = json.loads(raw)
        except json.JSONDecodeError:
            data = {}
        if not isinstance(data, dict):
            data = {}
        return {field: str(data.get(field) or '') for field in fields}

    async def set_json(self, key: str, fields: tuple[str, ...], value: Dict[str, Any]) -> Dict[str, str]:
        cleaned = {field: str(value.get(field) or '') for field in fields}
        await self.set(key, json.dumps(cleaned))
        return cleaned

    async def get_exchange_rate(self) -> Decimal:
        raw = await self.get(EXCHANGE_RATE)
        try:
            rate = Decimal(str(raw))
        except (InvalidOperation, ValueError):
            return Decimal(DEFAULT_USD_TO_INR_RATE)
        if not rate.is_finite() or rate <= 0:
            return Decimal(DEFAULT_USD_TO_INR_RATE)
        return rate

    async def set_exchange_rate(self, rate: Decimal | float | str) -> Decimal:
        try:
            value = Decimal(str(rate))
        except (InvalidOperation, ValueError):
            raise ServiceError('invalid_rate', 'Exchange rate must be a positive number.')
        if not value.is_finite() or value <= 0:
            raise ServiceError('invalid_rate', 'Exchange rate must be a positive number.')
        await self.set(EXCHANGE_RATE, format(value.normalize(), 'f'))
        return value
