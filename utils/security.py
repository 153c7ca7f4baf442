from datetime import timedelta
from typing import Optional, Tuple
from argon2 import PasswordHasher
from argon2.exceptions import VerifyMismatchError, InvalidHashError
from jose import JWTError, jwt
from config import settings
from utils.clock import utcnow
import re
import secrets

ph = PasswordHasher(
    time_cost=3,
    memory_cost=65536,
    parallelism=4,
    hash_len=32,
    salt_len=16
)

def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against its Argon2 hash"""
    if not plain_password or not hashed_password:
        return False

    peppered_password = plain_password + settings.password_pepper
    try:
        return ph.verify(hashed_password, peppered_password)
    except (VerifyMismatchError, InvalidHashError):
        return False

def get_password_hash(password: str) -> str:
    """Hash a password using Argon2id with pepper"""
    return ph.hash(password + settings.password_pepper)

def generate_password(length: int = 10) -> str:
    """Random initial password handed to a newly created user"""
    return secrets.token_urlsafe(length)[:length]

def validate_password_strength(password: str) -> Tuple[bool, str]:
    """Validate password meets security requirements"""
    if len(password) < settings.min_password_length:
        return False, f"Password must be at least {settings.min_password_length} characters"

    if not re.search(r'[A-Za-z]', password):
        return False, "Password must contain at least one letter"

    if not re.search(r'\d', password):
        return False, "Password must contain at least one number"

    return True, "Password is strong"

def _encode(data: dict, expires_delta: timedelta, token_type: str, secret: str) -> str:
    to_encode = data.copy()
    now = utcnow()
    to_encode.update({
        "exp": now + expires_delta,
        "iat": now,
        "type": token_type,
        "jti": secrets.token_urlsafe(16)
    })
    return jwt.encode(to_encode, secret, algorithm=settings.algorithm)

def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """Create a short-lived access token"""
    expires_delta = expires_delta or timedelta(minutes=settings.access_token_expire_minutes)
    return _encode(data, expires_delta, "access", settings.secret_key)

def create_refresh_token(data: dict) -> str:
    """Create a long-lived refresh token"""
    return _encode(data, timedelta(days=settings.refresh_token_expire_days), "refresh", settings.refresh_secret_key)

def decode_token(token: str, token_type: str = "access") -> Optional[dict]:
    """Decode and validate a token"""
    try:
        secret = settings.secret_key if token_type == "access" else settings.refresh_secret_key
        payload = jwt.decode(token, secret, algorithms=[settings.algorithm])

        # Verify token type
        if payload.get("type") != token_type:
            return None

        return payload
    except JWTError:
        return None
