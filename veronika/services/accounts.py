from __future__ import annotations

from typing import Optional

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from veronika.content import DEFAULT_COUNTRY
from veronika.db.models import AuthSession, ClaimedDevice, User
from veronika.services.credits import CreditsService
from veronika.services.errors import ServiceError
from veronika.utils.logging import get_logger
from veronika.utils.security import MAX_PASSWORD_BYTES, hash_password, new_token, password_fits, verify_password
from veronika.utils.text import normalize_email
from veronika.utils.time import utcnow


logger = get_logger('accounts')


class AccountsService:
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get_by_email(self, email: str) -> Optional[User]:
        result = await self.session.execute(select(User).where(User.email == normalize_email(email)))
        return result.scalar_one_or_none()

    async def get_by_token(self, token: str | None) -> Optional[User]:
        token = (token or '').strip()
        if not token:
            return None
        result = await self.session.execute(
            select(User).join(AuthSession, AuthSession.user_id == User.id).where(AuthSession.token == token)
        )
        return result.scalar_one_or_none()

    async def create_session(self, user: User) -> str:
        token = new_token()
        self.session.add(AuthSession(token=token, user_id=user.id, created_at=utcnow()))
        await self.session.flush()
        return token

    async def logout(self, token: str | None) -> None:
        token = (token or '').strip()
        if token:
            await self.session.execute(delete(AuthSession).where(AuthSession.token == token))

    async def claim_device(self, device_id: str | None, user: User) -> bool:
        """Mark a device as having received the free credits.

        Returns False when another account already claimed it. A missing
        device id is treated as an unclaimed device.
        """
        device_id = (device_id or '').strip()[:128]
        if not device_id:
            return True
        existing = await self.session.get(ClaimedDevice, device_id)
        if existing:
            return False
        self.session.add(ClaimedDevice(device_id=device_id, user_id=user.id, claimed_at=utcnow()))
        await self.session.flush()
        return True

    async def register(
        self,
        name: str,
        email: str,
        password: str,
        country: str | None = None,
        device_id: str | None = None,
        initial_credits: int = 0,
    ) -> tuple[User, str]:
        name = (name or '').strip()
        email = normalize_email(email)
        if not name or not email or '@' not in email or not password:
            raise ServiceError('invalid_input', 'Name, email and password are required.')
        if not password_fits(password):
            raise ServiceError('invalid_input', f'Password must be at most {MAX_PASSWORD_BYTES} bytes.')
        if await self.get_by_email(email):
            raise ServiceError('email_taken', 'Email already registered.')

        user = User(
            name=name[:255],
            email=email,
            password_hash=hash_password(password),
            credits=0,
            is_admin=False,
            country=(country or '').strip() or DEFAULT_COUNTRY,
            created_at=utcnow(),
        )
        self.session.add(user)
        try:
            await self.session.flush()
        except IntegrityError:
            await self.session.rollback()
            raise ServiceError('email_taken', 'Email already registered.')

        # the device may be claimed by a concurrent signup
        try:
            claimed = await self.claim_device(device_id, user)
        except IntegrityError:
            await self.session.rollback()
            raise ServiceError('registration_conflict', 'Registration conflicted with another request, please retry.')
        bonus = initial_credits if claimed else 0
        if bonus > 0:
            await CreditsService(self.session).apply_signup_bonus(user, bonus)
        token = await self.create_session(user)
        logger.info('user_registered', user_id=user.id, bonus=bonus, device=bool(device_id))
        return user, token

    async def login(self, email: str, password: str) -> tuple[User, str]:
        user = await self.get_by_email(email)
        if not user or not verify_password(password or '', user.password_hash):
            raise ServiceError('invalid_credentials', 'Invalid credentials.')
        token = await self.create_session(user)
        return user, token

    async def list_users(self) -> list[User]:
        result = await self.session.execute(select(User).order_by(User.id))
        return list(result.scalars().all())

    async def delete_user(self, admin: User, user_id: int) -> None:
        if admin.id == user_id:
            raise ServiceError('cannot_delete_self', 'Cannot delete your own admin account.')
        user = await self.session.get(User, user_id)
        if not user:
            raise ServiceError('user_not_found', 'User not found.')
        await self.session.delete(user)
        await self.session.flush()
        logger.info('user_deleted', user_id=user_id, admin_id=admin.id)

    async def ensure_admin(self, email: str, password: str, credits: int) -> Optional[User]:
        email = normalize_email(email)
        if not email or not password:
            return None
        if not password_fits(password):
            logger.warning('admin_password_too_long', email=email)
            return None
        user = await self.get_by_email(email)
        if user:
            user.is_admin = True
            if not verify_password(password, user.password_hash):
                user.password_hash = hash_password(password)
            await self.session.flush()
            return user
        user = User(
            name='Admin',
            email=email,
            password_hash=hash_password(password),
            credits=credits,
            is_admin=True,
            country=DEFAULT_COUNTRY,
            created_at=utcnow(),
        )
        self.session.add(user)
        await self.session.flush()
        logger.info('admin_created', user_id=user.id)
        return user
