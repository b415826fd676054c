from __future__ import annotations

from decimal import Decimal
from typing import Any

import httpx

from veronika.utils.money import amount_to_float


RESULT_OK = 100
PAID_STATUSES = {'paid'}


class OxapayError(Exception):
    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class OxapayClient:
    def __init__(
        self,
        merchant_key: str,
        base_url: str = 'https://api.oxapay.com',
        timeout: float = 20.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.merchant_key = merchant_key.strip()
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self.transport = transport

    async def _call(self, method: str, payload: dict[str, Any]) -> dict[str, Any]:
        body = {'merchant': self.merchant_key, **payload}
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                resp = await client.post(
                    f'{self.base_url}/merchants/{method}',
                    headers={'Content-Type': 'application/json'},
                    json=body,
                )
        except httpx.HTTPError as exc:
            raise OxapayError(f'{method}_unreachable:{exc}', 502) from exc
        try:
            data = resp.json()
        except ValueError:
            raise OxapayError(f'{method}_invalid_response:{resp.text[:200]}', resp.status_code)
        if resp.status_code >= 400 or not isinstance(data, dict):
            raise OxapayError(f'{method}_http_failed:{resp.text[:200]}', resp.status_code)
        return data

    @staticmethod
    def _message(data: dict[str, Any], default: str) -> str:
        return str(data.get('message') or default)

    async def create_invoice(
        self,
        *,
        amount: Decimal | float | int | str,
        order_id: str,
        description: str,
        email: str,
        return_url: str | None = None,
        currency: str = 'USD',
        lifetime: int = 30,
    ) -> dict[str, Any]:
        body: dict[str, Any] = {
            'amount': amount_to_float(amount),
            'currency': currency,
            'lifeTime': lifetime,
            'feePaidByPayer': 0,
            'underPaidCover': 0,
            'description': description,
            'orderId': order_id,
            'email': email,
        }
        if return_url:
            body['returnUrl'] = return_url
        data = await self._call('request', body)
        if data.get('result') != RESULT_OK or not data.get('payLink'):
            raise OxapayError(self._message(data, 'Failed to create crypto invoice'))
        return data

    async def inquiry(self, track_id: str) -> dict[str, Any]:
        data = await self._call('inquiry', {'trackId': track_id})
        if data.get('result') != RESULT_OK:
            raise OxapayError(self._message(data, 'Failed to verify crypto payment'))
        return data

    @staticmethod
    def is_paid(data: dict[str, Any] | None) -> bool:
        return str((data or {}).get('status') or '').strip().lower() in PAID_STATUSES
