"""
Tests for the emailed-OTP password reset and for email verification of
existing, unverified principals.

These tests verify:
  - Unknown emails get a 404 and no message is sent
  - A wrong code is refused and the old password keeps working
  - A correct code swaps the password and can't be reused
  - Codes are accepted strictly before the 10 minute mark
  - Five wrong guesses burn the code
  - A failed send stores nothing
  - A password set at registration stops working once it is reset
  - Email-verification codes are bounded by the same attempt limit
"""

from datetime import datetime, timedelta, timezone

import pytest

from storefront.exceptions import InvalidOTPError
from storefront.services import auth_service
from tests.conftest import USER_PASSWORD, wrong_code


NEW_PASSWORD = "N3w$ecretKey"
T0 = datetime(2026, 3, 1, 9, 0, tzinfo=timezone.utc)


async def request_code(client, email_relay, email="shopper@example.com") -> str:
    response = await client.post("/api/auth/send-otp", json={"email": email})
    assert response.status_code == 200
    return email_relay.last_code(email)


async def can_log_in(client, password, email="shopper@example.com") -> bool:
    response = await client.post(
        "/api/auth/login",
        json={"email": email, "password": password},
    )
    return response.status_code == 200


class TestSendResetCode:

    async def test_unknown_email_is_404(self, client, email_relay):
        response = await client.post("/api/auth/send-otp", json={"email": "nobody@example.com"})
        assert response.status_code == 404
        assert email_relay.sent == []

    async def test_code_is_sent_and_stored_as_digest(self, client, make_user, email_relay, load_user):
        await make_user()
        response = await client.post("/api/auth/send-otp", json={"email": "shopper@example.com"})

        assert response.status_code == 200
        assert response.json() == {"success": True, "message": "OTP sent"}
        code = email_relay.last_code("shopper@example.com")

        user = await load_user("shopper@example.com")
        assert user.reset_otp_hash is not None
        assert user.reset_otp_hash != code
        assert user.reset_otp_expires is not None

    async def test_failed_send_stores_nothing(self, client, make_user, email_relay, load_user):
        await make_user()
        email_relay.fail = True

        response = await client.post("/api/auth/send-otp", json={"email": "shopper@example.com"})

        assert response.status_code == 500
        user = await load_user("shopper@example.com")
        assert user.reset_otp_hash is None
        assert user.reset_otp_expires is None


class TestResetPassword:

    async def test_wrong_code_keeps_old_password(self, client, make_user, email_relay):
        await make_user()
        code = await request_code(client, email_relay)

        response = await client.post(
            "/api/auth/verify-otp",
            json={"email": "shopper@example.com", "otp": wrong_code(code), "new_password": NEW_PASSWORD},
        )

        assert response.status_code == 400
        assert response.json()["detail"] == "Invalid or expired OTP"
        assert await can_log_in(client, USER_PASSWORD)
        assert not await can_log_in(client, NEW_PASSWORD)

    async def test_correct_code_swaps_password(self, client, make_user, email_relay, load_user):
        await make_user()
        code = await request_code(client, email_relay)

        response = await client.post(
            "/api/auth/verify-otp",
            json={"email": "shopper@example.com", "otp": code, "new_password": NEW_PASSWORD},
        )

        assert response.status_code == 200
        assert response.json()["message"] == "Password successfully reset"
        assert await can_log_in(client, NEW_PASSWORD)
        assert not await can_log_in(client, USER_PASSWORD)

        user = await load_user("shopper@example.com")
        assert user.reset_otp_hash is None

    async def test_code_is_single_use(self, client, make_user, email_relay):
        await make_user()
        code = await request_code(client, email_relay)
        body = {"email": "shopper@example.com", "otp": code, "new_password": NEW_PASSWORD}

        first = await client.post("/api/auth/verify-otp", json=body)
        second = await client.post("/api/auth/verify-otp", json={**body, "new_password": "An0ther!Key"})

        assert first.status_code == 200
        assert second.status_code == 400

    async def test_weak_new_password_does_not_cost_an_attempt(self, client, make_user, email_relay, load_user):
        await make_user()
        code = await request_code(client, email_relay)

        response = await client.post(
            "/api/auth/verify-otp",
            json={"email": "shopper@example.com", "otp": code, "new_password": "password"},
        )

        assert response.status_code == 400
        assert response.json()["error_type"] == "weak_password"
        user = await load_user("shopper@example.com")
        assert user.reset_otp_attempts == 0
        assert user.reset_otp_hash is not None

    async def test_unknown_email(self, client):
        response = await client.post(
            "/api/auth/verify-otp",
            json={"email": "nobody@example.com", "otp": "123456", "new_password": NEW_PASSWORD},
        )
        assert response.status_code == 400

    async def test_five_wrong_guesses_burn_the_code(self, client, make_user, email_relay, load_user):
        await make_user()
        code = await request_code(client, email_relay)
        guess = {"email": "shopper@example.com", "otp": wrong_code(code), "new_password": NEW_PASSWORD}

        for _ in range(5):
            response = await client.post("/api/auth/verify-otp", json=guess)
            assert response.status_code == 400

        response = await client.post(
            "/api/auth/verify-otp",
            json={**guess, "otp": code},
        )
        assert response.status_code == 400
        user = await load_user("shopper@example.com")
        assert user.reset_otp_hash is None

    async def test_new_request_resets_attempts(self, client, make_user, email_relay, load_user):
        await make_user()
        code = await request_code(client, email_relay)
        await client.post(
            "/api/auth/verify-otp",
            json={"email": "shopper@example.com", "otp": wrong_code(code), "new_password": NEW_PASSWORD},
        )
        assert (await load_user("shopper@example.com")).reset_otp_attempts == 1

        await request_code(client, email_relay)
        assert (await load_user("shopper@example.com")).reset_otp_attempts == 0


class TestRegisterThenReset:
    """A password set at registration, then reset by code, works only in its new form."""

    async def test_only_new_password_works(self, client, email_relay):
        registration = {
            "name": "Jane Doe",
            "email": "jane@example.com",
            "password": "Gr8!Tulips",
            "phone": "+1-555-123-4567",
        }
        await client.post("/api/auth/register/send-otp", json=registration)
        confirm = await client.post(
            "/api/auth/register/verify-otp",
            json={"email": "jane@example.com", "otp": email_relay.last_code("jane@example.com")},
        )
        assert confirm.status_code == 201
        assert await can_log_in(client, "Gr8!Tulips", email="jane@example.com")

        code = await request_code(client, email_relay, email="jane@example.com")
        response = await client.post(
            "/api/auth/verify-otp",
            json={"email": "jane@example.com", "otp": code, "new_password": NEW_PASSWORD},
        )
        assert response.status_code == 200

        assert await can_log_in(client, NEW_PASSWORD, email="jane@example.com")
        assert not await can_log_in(client, "Gr8!Tulips", email="jane@example.com")


class TestResetExpiry:
    """The 10 minute window, driven through the service's `now` argument."""

    async def issue(self, db_session, email_relay) -> str:
        await auth_service.request_password_reset(db_session, email_relay, "shopper@example.com", now=T0)
        return email_relay.last_code("shopper@example.com")

    async def test_accepted_at_nine_minutes_fifty_nine(self, db_session, make_user, email_relay):
        await make_user()
        code = await self.issue(db_session, email_relay)

        await auth_service.reset_password(
            db_session, "shopper@example.com", code, NEW_PASSWORD,
            now=T0 + timedelta(minutes=9, seconds=59),
        )

    async def test_refused_at_ten_minutes_one(self, db_session, make_user, email_relay):
        await make_user()
        code = await self.issue(db_session, email_relay)

        with pytest.raises(InvalidOTPError):
            await auth_service.reset_password(
                db_session, "shopper@example.com", code, NEW_PASSWORD,
                now=T0 + timedelta(minutes=10, seconds=1),
            )


class TestEmailVerification:
    """Unverified principals (created by an operator) confirm their address."""

    async def test_verify_then_log_in(self, client, make_user, email_relay):
        await make_user(email="new@example.com", is_verified=False)
        assert not await can_log_in(client, USER_PASSWORD, email="new@example.com")

        response = await client.post("/api/auth/verify-email/send-otp", json={"email": "new@example.com"})
        assert response.status_code == 200
        code = email_relay.last_code("new@example.com")

        response = await client.post(
            "/api/auth/verify-email/confirm",
            json={"email": "new@example.com", "otp": code},
        )
        assert response.status_code == 200
        assert await can_log_in(client, USER_PASSWORD, email="new@example.com")

    async def test_already_verified(self, client, make_user, email_relay):
        await make_user()
        response = await client.post("/api/auth/verify-email/send-otp", json={"email": "shopper@example.com"})
        assert response.status_code == 400
        assert response.json()["error_type"] == "already_verified"
        assert email_relay.sent == []

    async def test_wrong_code(self, client, make_user, email_relay, load_user):
        await make_user(email="new@example.com", is_verified=False)
        await client.post("/api/auth/verify-email/send-otp", json={"email": "new@example.com"})
        code = email_relay.last_code("new@example.com")

        response = await client.post(
            "/api/auth/verify-email/confirm",
            json={"email": "new@example.com", "otp": wrong_code(code)},
        )
        assert response.status_code == 400
        assert not (await load_user("new@example.com")).is_verified

    async def test_five_wrong_guesses_burn_the_code(self, client, make_user, email_relay, load_user):
        await make_user(email="new@example.com", is_verified=False)
        await client.post("/api/auth/verify-email/send-otp", json={"email": "new@example.com"})
        code = email_relay.last_code("new@example.com")

        for _ in range(5):
            response = await client.post(
                "/api/auth/verify-email/confirm",
                json={"email": "new@example.com", "otp": wrong_code(code)},
            )
            assert response.status_code == 400

        response = await client.post(
            "/api/auth/verify-email/confirm",
            json={"email": "new@example.com", "otp": code},
        )
        assert response.status_code == 400
        user = await load_user("new@example.com")
        assert not user.is_verified
        assert user.register_otp_hash is None

    async def test_new_code_resets_attempts(self, client, make_user, email_relay, load_user):
        await make_user(email="new@example.com", is_verified=False)
        await client.post("/api/auth/verify-email/send-otp", json={"email": "new@example.com"})
        await client.post(
            "/api/auth/verify-email/confirm",
            json={"email": "new@example.com", "otp": wrong_code(email_relay.last_code("new@example.com"))},
        )
        assert (await load_user("new@example.com")).register_otp_attempts == 1

        await client.post("/api/auth/verify-email/send-otp", json={"email": "new@example.com"})
        assert (await load_user("new@example.com")).register_otp_attempts == 0
