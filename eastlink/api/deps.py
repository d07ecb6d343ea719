# eastlink/api/deps.py
from typing import Any, Dict

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError
from pymongo.database import Database

from eastlink.core.errors import MarketError
from eastlink.core.logging import security_log
from eastlink.core.rate_limit import client_ip
from eastlink.core.security import decode_token
from eastlink.db.mongo import get_db
from eastlink.utils.serializers import to_object_id

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login", auto_error=False)


def get_current_user(
    request: Request,
    token: str = Depends(oauth2_scheme),
    db: Database = Depends(get_db),
) -> Dict[str, Any]:
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Access denied. No valid token provided.",
        headers={"WWW-Authenticate": "Bearer"},
    )
    if not token:
        raise credentials_exception
    try:
        payload = decode_token(token)
        user_id = to_object_id(payload.get("sub"), "token subject")
    except (JWTError, MarketError):
        raise credentials_exception

    user = db.users.find_one({"_id": user_id})
    if user is None:
        raise credentials_exception
    if not user.get("is_active", True):
        security_log.unauthorized_access(client_ip(request), request.url.path, str(user_id))
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Account has been deactivated")
    return user


def require_roles(*roles: str):
    def checker(request: Request, user: Dict[str, Any] = Depends(get_current_user)):
        if user.get("role") not in roles:
            security_log.unauthorized_access(client_ip(request), request.url.path, str(user["_id"]))
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Access denied. Required role: {' or '.join(roles)}",
            )
        return user
    return checker


def require_approval(user: Dict[str, Any] = Depends(get_current_user)):
    if user.get("role") in ("seller", "delivery_agent") and not user.get("is_approved"):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Account pending approval. Please wait for admin approval.",
        )
    return user


def approved(*roles: str):
    """Role check followed by the approval check."""
    role_checker = require_roles(*roles)

    def checker(user: Dict[str, Any] = Depends(role_checker)):
        return require_approval(user)
    return checker


require_admin = require_roles("admin")
