from typing import List

from fastapi import APIRouter
from pydantic import BaseModel

from exambank.core.auth import create_token
from exambank.core.config import settings
from exambank.core.errors import Forbidden

router = APIRouter()


class MockLogin(BaseModel):
    user_id: str
    roles: List[str]


@router.post("/mock-login")
def mock_login(payload: MockLogin):
    if not settings.ENABLE_MOCK_LOGIN or settings.is_production():
        raise Forbidden("Mock login is disabled")
    token = create_token(payload.user_id, payload.roles)
    return {"access_token": token, "token_type": "bearer", "roles": payload.roles}
