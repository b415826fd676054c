from __future__ import annotations

from decimal import Decimal
from typing import Any

import httpx

from veronika.utils.money import amount_to_float


PAID_STATUSES = {'PAID'}
FAILED_STATUSES = {'EXPIRED', 'TERMINATED'}


class CashfreeError(Exception):
    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


def customer_id_from_order(order_id: str) -> str:
    return str(order_id).split('-')[0] or 'guest'


class CashfreeClient:
    def __init__(
        self,
        app_id: str,
        secret_key: str,
        base_url: str = 'https://api.cashfree.com/pg',
        api_version: str = '2022-09-01',
        timeout: float = 20.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.app_id = app_id.strip()
        self.secret_key = secret_key.strip()
        self.base_url = base_url.rstrip('/')
        self.api_version = api_version
        self.timeout = timeout
        self.transport = transport

    def _headers(self) -> dict[str, str]:
        return {
            'Content-Type': 'application/json',
            'x-client-id': self.app_id,
            'x-client-secret': self.secret_key,
            'x-api-version': self.api_version,
        }

    async def _request(self, method: str, path: str, payload: dict[str, Any] | None = None) -> tuple[int, Any]:
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                resp = await client.request(method, f'{self.base_url}{path}', headers=self._headers(), json=payload)
        except httpx.HTTPError as exc:
            raise CashfreeError(f'cashfree_unreachable:{exc}', 502) from exc
        try:
            data = resp.json()
        except ValueError:
            data = None
        return resp.status_code, data

    @staticmethod
    def _message(data: Any, default: str) -> str:
        if isinstance(data, dict) and data.get('message'):
            return str(data['message'])
        return default

    async def create_order(
        self,
        *,
        order_id: str,
        amount: Decimal | float | int | str,
        customer_name: str,
        customer_email: str,
        customer_phone: str,
        return_url: str | None = None,
        currency: str = 'INR',
    ) -> dict[str, Any]:
        payload = {
            'order_id': order_id,
            'order_amount': amount_to_float(amount),
            'order_currency': currency,
            'customer_details': {
                'customer_id': customer_id_from_order(order_id),
                'customer_name': customer_name,
                'customer_email': customer_email,
                'customer_phone': customer_phone,
            },
        }
        if return_url:
            payload['order_meta'] = {'return_url': return_url}
        status, data = await self._request('POST', '/orders', payload)
        if status >= 400 or not isinstance(data, dict) or not data.get('payment_link'):
            raise CashfreeError(self._message(data, 'Failed to initiate Cashfree payment'), status)
        return data

    async def get_order(self, order_id: str) -> dict[str, Any]:
        status, data = await self._request('GET', f'/orders/{order_id}')
        if status >= 400 or not isinstance(data, dict):
            raise CashfreeError(self._message(data, 'Failed to verify payment with Cashfree'), status)
        return data

    @staticmethod
    def order_status(data: dict[str, Any] | None) -> str:
        return str((data or {}).get('order_status') or '').strip().upper()
