from __future__ import annotations

from typing import Any, Dict, List

import httpx

from veronika.utils.logging import get_logger


logger = get_logger('a4f')

DATA_URL_PREFIX = 'data:image/png;base64,'


class ImageProviderError(Exception):
    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


def _image_url(item: Any, keys: tuple[str, ...]) -> str:
    if isinstance(item, str):
        return item
    if not isinstance(item, dict):
        return ''
    url = item.get('url')
    if isinstance(url, str) and url:
        return url
    for key in keys:
        value = item.get(key)
        if isinstance(value, str) and value:
            return f'{DATA_URL_PREFIX}{value}'
    return ''


def parse_images(payload: Any) -> List[str]:
    """Image URLs from a provider response.

    ``images[]`` entries may be bare strings or objects with ``url``,
    ``base64``, ``b64`` or ``b64_json``; ``data[]`` (OpenAI shape) entries carry
    ``url`` or ``b64_json``. Base64 payloads become PNG data URLs.
    """
    if not isinstance(payload, dict):
        return []
    images = payload.get('images') if isinstance(payload.get('images'), list) else []
    data = payload.get('data') if isinstance(payload.get('data'), list) else []
    if images:
        urls = [_image_url(item, ('base64', 'b64', 'b64_json')) for item in images]
    else:
        urls = [_image_url(item, ('b64_json',)) for item in data if not isinstance(item, str)]
    return [url for url in urls if url]


def provider_message(payload: Any, default: str = 'Image provider error') -> str:
    if isinstance(payload, dict):
        for key in ('message', 'error', 'detail', 'reason'):
            value = payload.get(key)
            if isinstance(value, dict):
                value = value.get('message')
            if value:
                return str(value)
    return default


class ImageProviderClient:
    def __init__(
        self,
        api_key: str,
        endpoint: str,
        model: str,
        size: str = '1024x1024',
        timeout: float = 120.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.api_key = api_key.strip()
        self.endpoint = endpoint
        self.model = model
        self.size = size
        self.timeout = timeout
        self.transport = transport

    def _headers(self) -> Dict[str, str]:
        return {
            'Authorization': f'Bearer {self.api_key}',
            'Content-Type': 'application/json',
        }

    def _payload(self, prompt: str, count: int) -> Dict[str, Any]:
        return {
            'model': self.model,
            'prompt': prompt,
            'num_images': count,
            'size': self.size,
        }

    async def generate(self, prompt: str, count: int) -> List[str]:
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                resp = await client.post(self.endpoint, headers=self._headers(), json=self._payload(prompt, count))
        except httpx.HTTPError as exc:
            raise ImageProviderError(f'Image provider unreachable: {exc}', 502) from exc

        try:
            data = resp.json()
        except ValueError:
            data = None

        if resp.status_code >= 400:
            logger.warning('a4f_error', status=resp.status_code, body=resp.text[:500])
            raise ImageProviderError(provider_message(data), resp.status_code)
        if not isinstance(data, dict):
            logger.warning('a4f_malformed_response', body=resp.text[:200])
            raise ImageProviderError('Malformed provider response', 502)
        return parse_images(data)
