from typing import Optional

import bcrypt
from itsdangerous import BadSignature, URLSafeTimedSerializer

from config import get_settings

# bcrypt only looks at the first 72 bytes of a secret.
_BCRYPT_MAX_BYTES = 72


def _secret_bytes(password: str) -> bytes:
    return password.encode("utf-8")[:_BCRYPT_MAX_BYTES]


def hash_password(password: str) -> str:
    return bcrypt.hashpw(_secret_bytes(password), bcrypt.gensalt()).decode("utf-8")


def verify_password(password: str, hashed_password: str) -> bool:
    try:
        return bcrypt.checkpw(_secret_bytes(password), hashed_password.encode("utf-8"))
    except ValueError:
        return False


def _serializer() -> URLSafeTimedSerializer:
    settings = get_settings()
    return URLSafeTimedSerializer(settings.session_secret, salt="finance-session")


def generate_session_token(account_id: str) -> str:
    return _serializer().dumps({"a": account_id})


def read_session_token(token: str) -> Optional[str]:
    """Account id carried by a session token, or None if it is forged or expired."""
    settings = get_settings()
    try:
        data = _serializer().loads(token, max_age=settings.session_max_age_seconds)
    except BadSignature:
        return None
    account_id = data.get("a") if isinstance(data, dict) else None
    return account_id if isinstance(account_id, str) else None
