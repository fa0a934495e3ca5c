"""Authentication helpers and FastAPI security dependencies.

Tokens are read from the `Authorization: Bearer` header first and from
the `access_token` cookie set by the login form second, so the same
dependencies serve both the JSON API and the HTML pages.
"""

from typing import Optional

import jwt
from fastapi import Depends, HTTPException, Request, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlmodel import Session

from . import models, repositories
from .database import engine
from .services import JWT_ALGORITHM, JWT_SECRET

COOKIE_NAME = "access_token"
bearer_scheme = HTTPBearer(auto_error=False)


def decode_token(token: str):
    """Decode and verify a JWT token.

    Returns the decoded payload on success or raises an HTTPException
    with status 401 on failure.
    """
    try:
        return jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALGORITHM])
    except jwt.ExpiredSignatureError:
        raise HTTPException(status_code=401, detail='token expired')
    except jwt.PyJWTError:
        raise HTTPException(status_code=401, detail='invalid token')


def _token_from(request: Request, credentials: Optional[HTTPAuthorizationCredentials]) -> Optional[str]:
    if credentials is not None and credentials.credentials:
        return credentials.credentials
    return request.cookies.get(COOKIE_NAME)


def get_current_user(request: Request,
                     credentials: Optional[HTTPAuthorizationCredentials] = Security(bearer_scheme)) -> models.User:
    """FastAPI dependency that returns the authenticated, non-deleted user."""
    token = _token_from(request, credentials)
    if not token:
        raise HTTPException(status_code=401, detail='not authenticated')
    payload = decode_token(token)
    user_id = payload.get('user_id')
    if not user_id:
        raise HTTPException(status_code=401, detail='invalid token payload')
    with Session(engine) as session:
        user = repositories.UserRepository(session).get(user_id)
        if not user or user.deleted:
            raise HTTPException(status_code=401, detail='user not found')
        return user


def get_optional_user(request: Request,
                      credentials: Optional[HTTPAuthorizationCredentials] = Security(bearer_scheme)) -> Optional[models.User]:
    """Like `get_current_user` but returns `None` for anonymous visitors."""
    try:
        return get_current_user(request, credentials)
    except HTTPException:
        return None


def require_admin(user: models.User = Depends(get_current_user)) -> models.User:
    if user.role != models.Role.ADMIN:
        raise HTTPException(status_code=403, detail='administrator role required')
    return user
