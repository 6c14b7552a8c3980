"""
ISP Manager - Token Tests
"""

from datetime import datetime, timedelta, timezone
from uuid import uuid4

import pytest

from app.utils.error_handling import TokenExpiredException, TokenInvalidException
from app.utils.security import (
    create_access_token,
    create_customer_token,
    customer_id_from_token,
    verify_access_token,
    verify_customer_token,
)


class TestAccessTokens:
    def test_round_trip(self):
        tenant_id = str(uuid4())
        payload = verify_access_token(create_access_token({"sub": "admin", "tenant_id": tenant_id}))

        assert payload["tenant_id"] == tenant_id
        assert payload["type"] == "access"

    def test_expired(self):
        token = create_access_token({"sub": "admin"}, expires_delta=timedelta(seconds=-5))
        assert verify_access_token(token) is None

    def test_customer_token_is_not_an_access_token(self):
        assert verify_access_token(create_customer_token(uuid4())) is None

    def test_garbage(self):
        assert verify_access_token("abc.def.ghi") is None


class TestCustomerTokens:
    def test_customer_id(self):
        customer_id = uuid4()
        assert customer_id_from_token(create_customer_token(customer_id)) == customer_id

    def test_default_lifetime_is_thirty_days(self):
        payload = verify_customer_token(create_customer_token(uuid4()))
        remaining = payload["exp"] - datetime.now(timezone.utc).timestamp()
        assert timedelta(days=29, hours=23).total_seconds() < remaining <= timedelta(days=30).total_seconds()

    def test_expired(self):
        token = create_customer_token(uuid4(), expires_delta=timedelta(seconds=-5))
        with pytest.raises(TokenExpiredException):
            customer_id_from_token(token)

    def test_access_token_rejected(self):
        token = create_access_token({"sub": str(uuid4()), "tenant_id": str(uuid4())})
        with pytest.raises(TokenInvalidException):
            customer_id_from_token(token)

    @pytest.mark.parametrize("token", ["", "not-a-jwt", "a.b.c"])
    def test_malformed(self, token):
        with pytest.raises(TokenInvalidException):
            verify_customer_token(token)
