"""Tests for the forgot-password / verify-otp / reset-password flow."""
from datetime import datetime, timedelta, timezone
import uuid

from freezegun import freeze_time

from app.core.config import settings
from app.core.security import create_password_reset_token, decode_token, verify_password
from conftest import API, register_user, login_user, bearer, load_user


def forgot(client, email="jane@x.com"):
    return client.post(f"{API}/auth/forgot-password", json={"email": email})


def verify(client, otp, email="jane@x.com"):
    return client.post(f"{API}/auth/verify-otp", json={"email": email, "otp": otp})


def reset(client, token, password):
    return client.post(f"{API}/auth/reset-password", json={"password": password}, headers=bearer(token))


def other_code(otp):
    return "000000" if otp != "000000" else "111111"


def reset_token_for(client, email="jane@x.com"):
    otp = forgot(client, email).json()["otp"]
    response = verify(client, otp, email)
    assert response.status_code == 200
    return response.json()["access_token"]


class TestForgotPassword:
    """Tests for POST /auth/forgot-password."""

    def test_unknown_email(self, client):
        response = forgot(client, "nobody@x.com")

        assert response.status_code == 404
        assert response.json()["error"] == "User with this email does not exist"

    def test_issues_six_digit_code(self, client, test_db, registered_user, email_outbox):
        """Test that a code is stored hashed, with an expiry, and emailed."""
        response = forgot(client)

        assert response.status_code == 200
        otp = response.json()["otp"]
        assert len(otp) == 6 and otp.isdigit()

        user = load_user(test_db, "jane@x.com")
        assert user.reset_otp_hash != otp
        assert verify_password(otp, user.reset_otp_hash)
        assert user.reset_otp_expiry is not None

        assert "Password Reset OTP" in email_outbox.subjects_for("jane@x.com")
        assert otp in email_outbox.sent[-1]["text"]

    def test_code_hidden_in_production(self, client, registered_user, monkeypatch):
        monkeypatch.setattr(settings, "environment", "production")

        response = forgot(client)

        assert response.status_code == 200
        assert "otp" not in response.json()

    def test_new_code_replaces_pending_one(self, client, registered_user):
        """Test that only the latest code can be verified."""
        first = forgot(client).json()["otp"]
        second = forgot(client).json()["otp"]

        if first != second:
            assert verify(client, first).status_code == 401
        assert verify(client, second).status_code == 200

    def test_email_failure_does_not_fail_request(self, client, registered_user, email_outbox):
        email_outbox.fail = True

        response = forgot(client)

        assert response.status_code == 200
        assert verify(client, response.json()["otp"]).status_code == 200


class TestVerifyOtp:
    """Tests for POST /auth/verify-otp."""

    def test_returns_password_reset_token(self, client, registered_user):
        otp = forgot(client).json()["otp"]

        response = verify(client, otp)

        assert response.status_code == 200
        claims = decode_token(response.json()["access_token"])
        assert claims["sub"] == registered_user["id"]
        assert claims["type"] == "password-reset"
        assert claims["exp"] - claims["iat"] == 15 * 60

    def test_wrong_code(self, client, registered_user):
        otp = forgot(client).json()["otp"]

        response = verify(client, other_code(otp))

        assert response.status_code == 401
        assert response.json()["error"] == "Invalid or expired OTP"

    def test_without_pending_code(self, client, registered_user):
        assert verify(client, "123456").status_code == 401

    def test_unknown_email_looks_like_wrong_code(self, client):
        response = verify(client, "123456", email="nobody@x.com")

        assert response.status_code == 401
        assert response.json()["error"] == "Invalid or expired OTP"

    def test_code_is_single_use(self, client, test_db, registered_user):
        otp = forgot(client).json()["otp"]

        assert verify(client, otp).status_code == 200
        assert verify(client, otp).status_code == 401

        user = load_user(test_db, "jane@x.com")
        assert user.reset_otp_hash is None
        assert user.reset_otp_expiry is None

    def test_malformed_code_rejected(self, client, registered_user):
        assert verify(client, "12ab56").status_code == 422

    def test_code_valid_just_before_expiry(self, client, registered_user):
        issued = datetime(2026, 3, 1, 12, 0, 0, tzinfo=timezone.utc)
        with freeze_time(issued, real_asyncio=True) as frozen:
            otp = forgot(client).json()["otp"]

            frozen.tick(timedelta(minutes=9, seconds=59))
            response = verify(client, otp)

        assert response.status_code == 200

    def test_code_expires_after_ten_minutes(self, client, registered_user):
        issued = datetime(2026, 3, 1, 12, 0, 0, tzinfo=timezone.utc)
        with freeze_time(issued, real_asyncio=True) as frozen:
            otp = forgot(client).json()["otp"]

            frozen.tick(timedelta(minutes=10, seconds=1))
            response = verify(client, otp)

        assert response.status_code == 401

    def test_expired_code_stored_in_the_past(self, client, test_db, registered_user):
        """Test expiry against a code whose deadline already passed."""
        otp = forgot(client).json()["otp"]
        user = load_user(test_db, "jane@x.com")
        user.reset_otp_expiry = datetime.now(timezone.utc) - timedelta(seconds=1)
        test_db.commit()

        assert verify(client, otp).status_code == 401


class TestResetPassword:
    """Tests for POST /auth/reset-password."""

    def test_reset_changes_password(self, client, registered_user, email_outbox):
        token = reset_token_for(client)

        response = reset(client, token, "secret2")

        assert response.status_code == 200
        assert response.json()["message"] == "Password reset successfully"
        assert login_user(client, password="secret1").status_code == 401
        assert login_user(client, password="secret2").status_code == 200
        assert "Password Reset Successful" in email_outbox.subjects_for("jane@x.com")

    def test_reset_requires_token(self, client, registered_user):
        response = client.post(f"{API}/auth/reset-password", json={"password": "secret2"})
        assert response.status_code in (401, 403)

    def test_login_token_is_not_a_reset_token(self, client, registered_user):
        token = login_user(client).json()["access_token"]

        assert reset(client, token, "secret2").status_code == 401
        assert login_user(client).status_code == 200

    def test_reset_for_deleted_user(self, client, registered_user):
        token = reset_token_for(client)
        headers = bearer(login_user(client).json()["access_token"])
        assert client.delete(f"{API}/users/me", headers=headers).status_code == 200

        response = reset(client, token, "secret2")

        assert response.status_code == 404

    def test_reuse_of_current_password(self, client, registered_user):
        token = reset_token_for(client)

        response = reset(client, token, "secret1")

        assert response.status_code == 409
        assert response.json()["error"].startswith("Cannot reuse your current password")

    def test_short_password_rejected(self, client, registered_user):
        token = reset_token_for(client)
        assert reset(client, token, "abc").status_code == 422

    def test_reset_clears_pending_code(self, client, test_db, registered_user):
        token = reset_token_for(client)
        otp = forgot(client).json()["otp"]

        assert reset(client, token, "secret2").status_code == 200

        assert verify(client, otp).status_code == 401
        assert load_user(test_db, "jane@x.com").reset_otp_hash is None

    def test_history_keeps_last_five_hashes(self, client, test_db, registered_user):
        """Test history rotation: newest first, capped, oldest forgotten."""
        token = reset_token_for(client)

        for n in range(1, 7):
            before = load_user(test_db, "jane@x.com").password_hash
            assert reset(client, token, f"newpass{n}").status_code == 200

            user = load_user(test_db, "jane@x.com")
            assert user.password_history[0] == before
            assert len(user.password_history) == min(n, settings.password_history_size)

        # History now holds newpass5..newpass1, the original secret1 has dropped out
        response = reset(client, token, "newpass3")
        assert response.status_code == 409
        assert response.json()["error"].startswith("Cannot reuse a previous password")

        assert reset(client, token, "newpass6").status_code == 409
        assert reset(client, token, "secret1").status_code == 200

    def test_reset_for_oauth_only_account(self, client, test_db, google_verifier):
        """Test that a password-less account gets its first password without history."""
        google_verifier.register("g-token", "google-1", email="gina@x.com", full_name="Gina")
        assert client.post(f"{API}/auth/google", json={"id_token": "g-token"}).status_code == 200

        token = reset_token_for(client, "gina@x.com")
        assert reset(client, token, "secret9").status_code == 200

        user = load_user(test_db, "gina@x.com")
        assert user.password_history == []
        assert login_user(client, email="gina@x.com", password="secret9").status_code == 200


class TestPasswordResetScenario:
    """End to end walk through registration, reset and re-login."""

    def test_full_flow(self, client):
        user = register_user(client).json()["user"]

        login = login_user(client)
        assert login.status_code == 200
        assert decode_token(login.json()["access_token"])["sub"] == user["id"]

        otp = forgot(client).json()["otp"]
        assert verify(client, other_code(otp)).status_code == 401

        verified = verify(client, otp)
        assert verified.status_code == 200
        token = verified.json()["access_token"]
        assert decode_token(token)["sub"] == user["id"]

        assert reset(client, token, "secret1").status_code == 409
        assert reset(client, token, "secret2").status_code == 200

        assert login_user(client, password="secret1").status_code == 401
        assert login_user(client, password="secret2").status_code == 200

    def test_reset_token_for_unknown_user(self, client, registered_user):
        """Test that a valid reset token for a missing user is a 404."""
        token = create_password_reset_token(uuid.uuid4(), "ghost@x.com")

        assert reset(client, token, "secret2").status_code == 404
