import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
from fastapi import Depends, HTTPException, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from config import Settings
from database import Store

logger = logging.getLogger(__name__)

JWT_ALGO = "HS256"
TOKEN_LIFETIME = timedelta(hours=1)
ADMIN_ROLE = "admin"

security = HTTPBearer(auto_error=False)


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_store(request: Request) -> Store:
    return request.app.state.store


def create_token(email: str, secret: str) -> str:
    exp = datetime.now(timezone.utc) + TOKEN_LIFETIME
    return jwt.encode({"email": email, "exp": exp}, secret, algorithm=JWT_ALGO)


def decode_token(token: str, secret: str) -> dict:
    try:
        claims = jwt.decode(token, secret, algorithms=[JWT_ALGO], options={"require": ["exp"]})
    except jwt.ExpiredSignatureError:
        raise HTTPException(status_code=403, detail="Token expired")
    except jwt.InvalidTokenError:
        raise HTTPException(status_code=403, detail="Invalid token")
    if not claims.get("email"):
        raise HTTPException(status_code=403, detail="Invalid token payload")
    return claims


def require_token(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    settings: Settings = Depends(get_settings),
) -> dict:
    if credentials is None:
        raise HTTPException(
            status_code=401,
            detail="Unauthorized access",
            headers={"WWW-Authenticate": "Bearer"},
        )
    try:
        return decode_token(credentials.credentials, settings.token_secret)
    except HTTPException:
        logger.warning("Rejected bearer token")
        raise


def has_role(store: Store, claims: dict, role: str) -> bool:
    """True when the user record behind the token carries ``role``.

    The record is looked up on every call; a token for an email with no user
    document simply has no role.
    """
    user = store.users.find_one({"email": claims.get("email")})
    return bool(user) and user.get("role") == role


def is_admin(store: Store, claims: dict) -> bool:
    return has_role(store, claims, ADMIN_ROLE)


def require_admin(claims: dict = Depends(require_token), store: Store = Depends(get_store)) -> dict:
    if not is_admin(store, claims):
        raise HTTPException(status_code=403, detail="Forbidden access")
    return claims


def require_self(request: Request, claims: dict = Depends(require_token)) -> dict:
    if claims["email"] != request.path_params.get("email"):
        raise HTTPException(status_code=403, detail="Forbidden access")
    return claims


def require_self_or_admin(
    request: Request,
    claims: dict = Depends(require_token),
    store: Store = Depends(get_store),
) -> dict:
    if claims["email"] != request.path_params.get("email") and not is_admin(store, claims):
        raise HTTPException(status_code=403, detail="Forbidden access")
    return claims
