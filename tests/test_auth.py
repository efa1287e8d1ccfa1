"""Tests for Appwrite JWT handling."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import jwt
import pytest
from fastapi import HTTPException

from app.features.users.auth import verify_jwt_token


def _token(**claims) -> str:
    return jwt.encode(claims, "not-checked", algorithm="HS256")


class TestVerifyJwtToken:
    def test_returns_payload(self) -> None:
        exp = datetime.now(timezone.utc) + timedelta(minutes=5)
        payload = verify_jwt_token(_token(userId="aw-1", exp=exp))
        assert payload["userId"] == "aw-1"

    def test_expired_token_is_rejected(self) -> None:
        exp = datetime.now(timezone.utc) - timedelta(minutes=5)
        with pytest.raises(HTTPException) as exc_info:
            verify_jwt_token(_token(userId="aw-1", exp=exp))
        assert exc_info.value.status_code == 401
        assert exc_info.value.detail == "Token has expired"

    def test_malformed_token_is_rejected(self) -> None:
        with pytest.raises(HTTPException) as exc_info:
            verify_jwt_token("not-a-jwt")
        assert exc_info.value.status_code == 401
