from datetime import datetime, timedelta, timezone

from jose import jwt

from callhub.core.config import settings

ALGORITHM = "HS256"


def create_access_token(subject: str, role: str = "USER", expires_minutes: int = 60) -> str:
    expire = datetime.now(timezone.utc) + timedelta(minutes=expires_minutes)
    payload = {"sub": subject, "role": role, "exp": expire}
    return jwt.encode(payload, settings.secret_key, algorithm=ALGORITHM)


def decode_token(token: str) -> dict:
    return jwt.decode(token, settings.secret_key, algorithms=[ALGORITHM])
