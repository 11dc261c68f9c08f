"""Tests for the bearer-token authentication dependency."""

from datetime import timedelta
from uuid import uuid4

import pytest
from fastapi import HTTPException
from fastapi.security import HTTPAuthorizationCredentials
from jose import jwt

from app.config import settings
from app.core.security import create_access_token
from app.dependencies import get_current_user


def bearer(token: str) -> HTTPAuthorizationCredentials:
    return HTTPAuthorizationCredentials(scheme="Bearer", credentials=token)


@pytest.mark.unit
class TestGetCurrentUser:
    """Tests for get_current_user."""

    @pytest.mark.asyncio
    async def test_valid_token_returns_user(self, db, test_user):
        token = create_access_token({"sub": str(test_user.id)})

        user = await get_current_user(credentials=bearer(token), db=db)

        assert user.id == test_user.id

    @pytest.mark.asyncio
    async def test_expired_token_rejected(self, db, test_user):
        token = create_access_token({"sub": str(test_user.id)}, expires_delta=timedelta(seconds=-30))

        with pytest.raises(HTTPException) as exc_info:
            await get_current_user(credentials=bearer(token), db=db)

        assert exc_info.value.status_code == 401
        assert exc_info.value.headers == {"WWW-Authenticate": "Bearer"}

    @pytest.mark.asyncio
    async def test_wrong_token_type_rejected(self, db, test_user):
        token = jwt.encode(
            {"sub": str(test_user.id), "type": "refresh"}, settings.SECRET_KEY, algorithm=settings.ALGORITHM
        )

        with pytest.raises(HTTPException) as exc_info:
            await get_current_user(credentials=bearer(token), db=db)

        assert exc_info.value.detail == "Invalid token type"

    @pytest.mark.asyncio
    async def test_malformed_subject_rejected(self, db):
        token = create_access_token({"sub": "not-a-uuid"})

        with pytest.raises(HTTPException) as exc_info:
            await get_current_user(credentials=bearer(token), db=db)

        assert exc_info.value.status_code == 401

    @pytest.mark.asyncio
    async def test_unknown_user_rejected(self, db):
        token = create_access_token({"sub": str(uuid4())})

        with pytest.raises(HTTPException) as exc_info:
            await get_current_user(credentials=bearer(token), db=db)

        assert exc_info.value.status_code == 401

    @pytest.mark.asyncio
    async def test_inactive_user_forbidden(self, db, test_user):
        test_user.is_active = False
        await db.commit()
        token = create_access_token({"sub": str(test_user.id)})

        with pytest.raises(HTTPException) as exc_info:
            await get_current_user(credentials=bearer(token), db=db)

        assert exc_info.value.status_code == 403
