# quoteflow/core/security.py
import secrets
from datetime import datetime, timedelta, timezone
from typing import Optional, Dict
from passlib.context import CryptContext
from jose import jwt, JWTError
from quoteflow.core.config import (
    JWT_SECRET,
    JWT_ALGORITHM,
    ACCESS_TOKEN_EXPIRE_MINUTES,
    REFRESH_TOKEN_EXPIRE_DAYS,
    VERIFICATION_COOKIE_DAYS,
)

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

QUOTE_EMAIL_TOKEN_TYPE = "quote_email"


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain: str, hashed: str) -> bool:
    return pwd_context.verify(plain, hashed)


def create_access_token(data: Dict[str, str], token_version: int, expires_delta: Optional[timedelta] = None) -> str:
    to_encode = data.copy()
    now = datetime.now(timezone.utc)
    expire = now + (expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode.update({
        "exp": expire,
        "iat": now,
        "type": "access",
        "token_version": token_version,
    })
    return jwt.encode(to_encode, JWT_SECRET, algorithm=JWT_ALGORITHM)


def create_refresh_token(data: Dict[str, str], expires_delta: Optional[timedelta] = None) -> str:
    to_encode = data.copy()
    now = datetime.now(timezone.utc)
    expire = now + (expires_delta or timedelta(days=REFRESH_TOKEN_EXPIRE_DAYS))
    to_encode.update({
        "exp": expire,
        "iat": now,
        "type": "refresh",
        # two refresh tokens minted in the same second must still differ
        "jti": secrets.token_hex(8),
    })
    return jwt.encode(to_encode, JWT_SECRET, algorithm=JWT_ALGORITHM)


def decode_token(token: str) -> Dict:
    try:
        payload = jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALGORITHM])
        return payload
    except JWTError:
        raise ValueError("Invalid or expired token")


# -----------------------
# Public quote access
# -----------------------
def generate_public_token() -> str:
    """Opaque URL-safe token with 256 bits of entropy."""
    return secrets.token_urlsafe(32)


def create_email_verification_cookie(public_token: str, verification_id: str) -> str:
    """Signed value for the per-quote 'email verified' cookie."""
    now = datetime.now(timezone.utc)
    payload = {
        "sub": public_token,
        "vid": verification_id,
        "typ": QUOTE_EMAIL_TOKEN_TYPE,
        "iat": now,
        "exp": now + timedelta(days=VERIFICATION_COOKIE_DAYS),
    }
    return jwt.encode(payload, JWT_SECRET, algorithm=JWT_ALGORITHM)


def read_email_verification_cookie(value: str) -> Optional[Dict]:
    try:
        payload = decode_token(value)
    except ValueError:
        return None
    if payload.get("typ") != QUOTE_EMAIL_TOKEN_TYPE:
        return None
    return payload
