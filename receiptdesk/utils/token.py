from jose import jwt, JWTError
from datetime import datetime, timedelta
from typing import Optional
from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from sqlmodel import Session
from receiptdesk.config import settings
from receiptdesk.database import get_session
from receiptdesk.models.admin import Admin
from receiptdesk.models.user import User

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/admin/login")

ADMIN_SCOPE = "admin"
CUSTOMER_SCOPE = "customer"


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None):
    to_encode = data.copy()

    expire = datetime.utcnow() + (
        expires_delta
        if expires_delta
        else timedelta(minutes=settings.access_token_expire_minutes)
    )

    to_encode.update({"exp": expire})

    encoded_jwt = jwt.encode(
        to_encode,
        settings.secret_key,
        algorithm=settings.algorithm
    )
    return encoded_jwt


def decode_access_token(token: str):
    try:
        payload = jwt.decode(
            token,
            settings.secret_key,
            algorithms=[settings.algorithm],
        )
        return payload
    except JWTError:
        return None


def _payload_for_scope(token: str, scope: str) -> dict:
    payload = decode_access_token(token)

    if payload is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if payload.get("scope") != scope:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Token not valid for this resource"
        )

    return payload


def require_admin(
    token: str = Depends(oauth2_scheme),
    session: Session = Depends(get_session)
) -> Admin:
    payload = _payload_for_scope(token, ADMIN_SCOPE)

    admin_id = payload.get("admin_id")
    if admin_id is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token payload"
        )

    admin = session.get(Admin, int(admin_id))

    if admin is None or not admin.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Admin account not found or disabled"
        )

    return admin


def get_current_customer(
    token: str = Depends(oauth2_scheme),
    session: Session = Depends(get_session)
) -> User:
    payload = _payload_for_scope(token, CUSTOMER_SCOPE)

    user = session.get(User, int(payload.get("user_id", 0)))

    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found"
        )

    return user
