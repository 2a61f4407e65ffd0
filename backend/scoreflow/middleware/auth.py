"""Authentication - admin JWT and the internal service token."""

import hmac
from datetime import datetime, timedelta

from fastapi import HTTPException, Security
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import jwt, JWTError

from scoreflow.config import settings

security = HTTPBearer(auto_error=False)

ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_HOURS = 24


def create_admin_token(email: str) -> str:
    """Create a JWT token for admin access."""
    expire = datetime.utcnow() + timedelta(hours=ACCESS_TOKEN_EXPIRE_HOURS)
    payload = {"sub": email, "exp": expire, "type": "admin"}
    return jwt.encode(payload, settings.secret_key, algorithm=ALGORITHM)


def verify_admin_token(credentials: HTTPAuthorizationCredentials = Security(security)) -> str:
    """Verify admin JWT token. Returns admin email."""
    if not credentials:
        raise HTTPException(status_code=401, detail="Authentication required")
    try:
        payload = jwt.decode(credentials.credentials, settings.secret_key, algorithms=[ALGORITHM])
    except JWTError:
        raise HTTPException(status_code=401, detail="Invalid or expired token")
    email = payload.get("sub")
    if not email or payload.get("type") != "admin":
        raise HTTPException(status_code=401, detail="Invalid token")
    return email


def verify_service_token(credentials: HTTPAuthorizationCredentials = Security(security)) -> str:
    """Bearer check for internal triggers (scoring, publish)."""
    if not credentials or not hmac.compare_digest(credentials.credentials.encode(), settings.service_token.encode()):
        raise HTTPException(status_code=401, detail="Unauthorized")
    return "service"
