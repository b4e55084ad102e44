from jose import JWTError, jwt
from datetime import datetime, timedelta
from barbershop.core.config import settings
import logging
import secrets

logger = logging.getLogger(__name__)

ADMIN_ROLE = "admin"


def create_access_token(data: dict, expires_delta: timedelta = None) -> str:
    """Create a JWT access token"""
    to_encode = data.copy()
    if expires_delta:
        expire = datetime.utcnow() + expires_delta
    else:
        expire = datetime.utcnow() + timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    to_encode.update({"exp": expire, "type": "access"})
    encoded_jwt = jwt.encode(to_encode, settings.SECRET_KEY, algorithm="HS256")
    return encoded_jwt


def verify_access_token(token: str):
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=["HS256"])
        if payload.get("type") != "access":
            raise JWTError("Invalid token type")
        return payload
    except JWTError as e:
        logger.warning(f"Access token verification failed: {e}")
        return None


def authenticate_admin(username: str, password: str) -> bool:
    """Check console credentials against ADMIN_USER / ADMIN_PASSWORD"""
    if not settings.ADMIN_USER or not settings.ADMIN_PASSWORD:
        return False
    valid_user = secrets.compare_digest(username or "", settings.ADMIN_USER)
    valid_pass = secrets.compare_digest(password or "", settings.ADMIN_PASSWORD)
    return valid_user and valid_pass
