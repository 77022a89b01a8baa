# marketplace/api/deps.py
from typing import Generator
from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt

from marketplace.core.config import settings
from marketplace.schemas.token import TokenPayload
from marketplace.db.session import SessionLocal
from marketplace.services.payment.provider_factory import get_payment_provider
from marketplace.services.payment.provider_interface import PaymentProviderInterface
from marketplace.services.notifier import KafkaNotifier, NotifierInterface
from marketplace.services.user_directory import HttpUserDirectory, UserDirectoryInterface


def get_db() -> Generator:
    """Request-scoped session, closed when the response is sent."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


# Tokens are issued by the user service; tokenUrl only feeds the OpenAPI docs.
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="token")


def get_current_user(token: str = Depends(oauth2_scheme)) -> TokenPayload:
    """Decode the bearer token into the caller's id and roles."""
    try:
        claims = jwt.decode(token, settings.JWT_SECRET, algorithms=["HS256"])
        return TokenPayload(**claims)
    except (JWTError, ValueError):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )


_notifier: KafkaNotifier = None
_user_directory: HttpUserDirectory = None


def get_notifier() -> NotifierInterface:
    global _notifier
    if _notifier is None:
        _notifier = KafkaNotifier()
    return _notifier


def get_user_directory() -> UserDirectoryInterface:
    global _user_directory
    if _user_directory is None:
        _user_directory = HttpUserDirectory()
    return _user_directory


def get_payment_gateway() -> PaymentProviderInterface:
    """The provider selected by PAYMENT_PROVIDER."""
    return get_payment_provider()
