import asyncio

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError
from sqlalchemy.orm import Session

from callhub.core.database import get_db
from callhub.core.security import decode_token
from callhub.services.storage import SqlAlchemyStorage


oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login")


def get_current_claims(token: str = Depends(oauth2_scheme)) -> dict:
    try:
        payload = decode_token(token)
    except JWTError as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token") from exc
    if not payload.get("sub"):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")
    return payload


def require_admin(claims: dict = Depends(get_current_claims)) -> dict:
    if claims.get("role") != "ADMIN":
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin required")
    return claims


def get_storage(db: Session = Depends(get_db)) -> SqlAlchemyStorage:
    return SqlAlchemyStorage(db)


def get_webhook_queue(request: Request) -> asyncio.Queue:
    return request.app.state.webhook_queue
