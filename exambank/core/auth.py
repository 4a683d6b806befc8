from datetime import datetime, timedelta, timezone
from typing import List, Optional

import jwt
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel

from exambank.core.config import settings
from exambank.core.errors import Unauthorized

ADMIN = "admin"


class CallerContext(BaseModel):
    """Who is calling. Passed explicitly into every privileged service call."""

    sub: str
    roles: List[str] = []

    @property
    def caller_id(self) -> str:
        return self.sub

    def has_role(self, role: str) -> bool:
        return role in self.roles


bearer = HTTPBearer(auto_error=False)


def create_token(user_id: str, roles: List[str], ttl_minutes: Optional[int] = None) -> str:
    now = datetime.now(timezone.utc)
    ttl = ttl_minutes if ttl_minutes is not None else settings.ACCESS_TOKEN_EXPIRE_MINUTES
    payload = {"sub": user_id, "roles": roles, "iat": int(now.timestamp()), "exp": int((now + timedelta(minutes=ttl)).timestamp())}
    return jwt.encode(payload, settings.APP_SECRET.get_secret_value(), algorithm=settings.ALGORITHM)


def get_current_user(creds: Optional[HTTPAuthorizationCredentials] = Depends(bearer)) -> CallerContext:
    if creds is None:
        raise Unauthorized("Missing bearer token")
    try:
        payload = jwt.decode(creds.credentials, settings.APP_SECRET.get_secret_value(), algorithms=[settings.ALGORITHM])
    except jwt.PyJWTError:
        raise Unauthorized("Invalid or expired token")
    return CallerContext(sub=payload["sub"], roles=payload.get("roles", []))


def require_role(ctx: CallerContext, role: str = ADMIN) -> CallerContext:
    """Fail closed unless the caller holds ``role``."""
    if ctx is None or not ctx.has_role(role):
        raise Unauthorized()
    return ctx


def require_roles(*required: str):
    def checker(user: CallerContext = Depends(get_current_user)) -> CallerContext:
        if not set(user.roles).intersection(required):
            raise Unauthorized()
        return user
    return checker
