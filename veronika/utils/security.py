from __future__ import annotations

import secrets

import bcrypt


# bcrypt only looks at the first 72 bytes
MAX_PASSWORD_BYTES = 72


def password_fits(password: str) -> bool:
    return len(password.encode('utf-8')) <= MAX_PASSWORD_BYTES


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode('utf-8'), bcrypt.gensalt()).decode('utf-8')


def verify_password(plain_password: str, hashed_password: str) -> bool:
    if not hashed_password or not password_fits(plain_password):
        return False
    try:
        return bcrypt.checkpw(plain_password.encode('utf-8'), hashed_password.encode('utf-8'))
    except ValueError:
        return False


def new_token() -> str:
    return secrets.token_urlsafe(32)
