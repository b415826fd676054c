from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from typing import Any, List

from sqlalchemy.ext.asyncio import AsyncSession

from veronika.config import Settings, get_settings
from veronika.db.models import User
from veronika.services.credits import CreditsService
from veronika.services.errors import ServiceError
from veronika.services.image_client import ImageProviderClient, ImageProviderError
from veronika.utils.logging import get_logger


logger = get_logger('generation')


@dataclass
class GenerationResult:
    images: List[str] = field(default_factory=list)
    credits: int = 0
    charged: int = 0
    refunded: int = 0
    padded: int = 0


def clamp_count(value: Any, maximum: int = 6) -> int:
    try:
        count = int(float(value))
    except (TypeError, ValueError, OverflowError):
        count = 1
    return min(max(count, 1), maximum)


def pad_images(images: List[str], count: int) -> List[str]:
    """Fill up to ``count`` by repeating images, walking back from the last one."""
    if not images:
        return []
    original = list(images)
    padded = list(images)
    idx = len(original) - 1
    while len(padded) < count:
        if idx < 0:
            idx = len(original) - 1
        padded.append(original[idx])
        idx -= 1
    return padded


class GenerationService:
    def __init__(self, session: AsyncSession, client: ImageProviderClient, settings: Settings | None = None) -> None:
        self.session = session
        self.client = client
        self.settings = settings or get_settings()

    def validate_prompt(self, prompt: Any) -> str:
        if not isinstance(prompt, str) or not prompt.strip():
            raise ServiceError('invalid_prompt', 'Invalid prompt')
        if len(prompt) > self.settings.max_prompt_length:
            raise ServiceError('prompt_too_long', f'Prompt must be at most {self.settings.max_prompt_length} characters')
        return prompt.strip()

    async def collect_images(self, prompt: str, count: int) -> List[str]:
        first = await self.client.generate(prompt, count)
        images: List[str] = []
        seen: set[str] = set()
        for url in first:
            if url not in seen:
                seen.add(url)
                images.append(url)

        attempts = 0
        while len(images) < count and attempts < self.settings.generation_topup_attempts:
            attempts += 1
            remaining = count - len(images)
            logger.info('generation_topup', attempt=attempts, remaining=remaining)
            try:
                extra = await self.client.generate(prompt, remaining)
            except ImageProviderError as exc:
                logger.warning('generation_topup_failed', attempt=attempts, status=exc.status_code)
                break
            for url in extra:
                if url in seen:
                    continue
                seen.add(url)
                images.append(url)
                if len(images) >= count:
                    break
        return images[:count]

    async def generate(self, user: User, prompt: Any, number_of_images: Any) -> GenerationResult:
        prompt = self.validate_prompt(prompt)
        count = clamp_count(number_of_images, self.settings.max_images_per_request)
        per_image = self.settings.image_cost_credits
        cost = per_image * count
        request_id = uuid.uuid4().hex

        credits = CreditsService(self.session)
        charged = await credits.debit(
            user,
            cost,
            'generation_charge',
            meta={'request_id': request_id, 'images': count},
            idempotency_key=f'gen:{request_id}',
        )
        if not charged:
            raise ServiceError('insufficient_credits', 'Insufficient credits.')
        # the charge must be visible before the slow provider call
        await self.session.commit()

        try:
            images = await self.collect_images(prompt, count)
        except Exception:
            await self._refund(user, cost, request_id, 'provider_error')
            raise

        if not images:
            await self._refund(user, cost, request_id, 'no_images')
            raise ImageProviderError('Image provider returned no images', 502)

        unique = len(images)
        if unique < count and self.settings.generation_pad_duplicates:
            logger.warning('generation_padded', requested=count, unique=unique)
            images = pad_images(images, count)

        refunded = 0
        undelivered = count - len(images)
        if undelivered > 0:
            refunded = per_image * undelivered
            await self._refund(user, refunded, request_id, 'partial')
        else:
            await self.session.commit()

        logger.info(
            'generation_done',
            user_id=user.id,
            requested=count,
            delivered=len(images),
            unique=unique,
            charged=cost - refunded,
        )
        return GenerationResult(
            images=images,
            credits=user.credits,
            charged=cost - refunded,
            refunded=refunded,
            padded=len(images) - unique,
        )

    async def _refund(self, user: User, amount: int, request_id: str, cause: str) -> None:
        await CreditsService(self.session).credit(
            user,
            amount,
            'generation_refund',
            meta={'request_id': request_id, 'cause': cause},
            idempotency_key=f'gen_refund:{request_id}',
        )
        await self.session.commit()
