"""Request gates, used as FastAPI dependencies.

``require_sign_in`` admits requests carrying a valid session token;
``is_admin`` additionally re-reads the caller from storage and admits only
admins. Both short-circuit with a 401 envelope before the handler runs.
"""
import logging
from typing import Optional

from fastapi import Depends, Header, Request
from sqlalchemy.orm import Session

from . import models
from .auth import decode_access_token
from .db import get_db
from .errors import InvalidToken, UnauthorizedRole

logger = logging.getLogger(__name__)


def _extract_token(authorization: Optional[str]) -> str:
    if not authorization:
        raise InvalidToken("missing authorization header")
    # raw token as sent by the client; a Bearer prefix is tolerated
    if authorization.lower().startswith("bearer "):
        return authorization.split(None, 1)[1].strip()
    return authorization.strip()


def current_user_id(claims: dict) -> int:
    try:
        return int(claims["sub"])
    except (KeyError, TypeError, ValueError):
        raise InvalidToken("token subject is not a user id")


async def require_sign_in(request: Request, authorization: Optional[str] = Header(default=None)) -> dict:
    claims = decode_access_token(_extract_token(authorization))
    current_user_id(claims)
    request.state.user = claims
    return claims


async def is_admin(claims: dict = Depends(require_sign_in), db: Session = Depends(get_db)) -> models.User:
    user_id = current_user_id(claims)
    user = db.get(models.User, user_id)
    if not user or user.role != models.Role.admin:
        logger.warning("Admin access denied for user %s", user_id)
        raise UnauthorizedRole("admin role required")
    return user
