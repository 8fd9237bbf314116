import smtplib
from datetime import timedelta

import jwt
import pytest
from django.conf import settings as django_settings
from django.contrib.auth import get_user_model
from django.utils import timezone

from .auth import otp_is_valid
from .tokens import decode_token, issue_token

pytestmark = pytest.mark.django_db(transaction=True)

User = get_user_model()


class FakeResponse:
    def __init__(self, status_code, payload):
        self.status_code = status_code
        self._payload = payload

    def json(self):
        return self._payload


@pytest.fixture
def google(monkeypatch, settings):
    settings.GOOGLE_CLIENT_ID = "client-123"
    claims = {
        "sub": "g-1",
        "aud": "client-123",
        "email": "grower@test.com",
        "email_verified": "true",
        "name": "Grower",
    }

    def fake_get(url, params=None, timeout=None):
        return FakeResponse(200, claims)

    monkeypatch.setattr("users.auth.requests.get", fake_get)
    return claims


def test_token_round_trip(user):
    claims = decode_token(issue_token(user))
    assert claims["userId"] == user.pk
    assert claims["email"] == user.email
    assert claims["role"] == "user"


def test_passwords_hash_with_bcrypt(settings):
    settings.PASSWORD_HASHERS = ["django.contrib.auth.hashers.BCryptSHA256PasswordHasher"]
    account = User.objects.create_user("b@test.com", "s3cret-pass")
    assert account.password.startswith("bcrypt_sha256$")
    assert account.check_password("s3cret-pass")


def test_otp_expiry(user):
    user.otp = "123456"
    user.otp_expiry = timezone.now() + timedelta(minutes=1)
    assert otp_is_valid(user, "123456")
    assert not otp_is_valid(user, "654321")
    user.otp_expiry = timezone.now() - timedelta(seconds=1)
    assert not otp_is_valid(user, "123456")


def test_registration_flow(api_client, mailoutbox):
    resp = api_client.post("/api/register/send-otp", {"name": "Asha", "email": "asha@test.com"}, format="json")
    assert resp.status_code == 200
    assert len(mailoutbox) == 1

    pending = User.objects.get(email="asha@test.com")
    assert not pending.is_verified
    assert pending.otp in mailoutbox[0].body

    resp = api_client.post(
        "/api/register/verify-otp",
        {"email": "asha@test.com", "otp": "wrong", "password": "secret1", "confirmPassword": "secret1"},
        format="json",
    )
    assert resp.status_code == 400
    assert resp.json()["message"] == "Invalid or expired OTP."

    resp = api_client.post(
        "/api/register/verify-otp",
        {"email": "asha@test.com", "otp": pending.otp, "password": "secret1", "confirmPassword": "secret1"},
        format="json",
    )
    assert resp.status_code == 201
    body = resp.json()
    assert body["user"]["email"] == "asha@test.com"
    assert decode_token(body["token"])["userId"] == pending.pk

    verified = User.objects.get(pk=pending.pk)
    assert verified.is_verified
    assert verified.otp is None

    resp = api_client.post("/api/register/send-otp", {"name": "Asha", "email": "asha@test.com"}, format="json")
    assert resp.status_code == 409


def test_registration_password_rules(api_client):
    base = {"email": "x@test.com", "otp": "123456"}
    resp = api_client.post(
        "/api/register/verify-otp", {**base, "password": "abc", "confirmPassword": "abc"}, format="json"
    )
    assert resp.status_code == 400
    assert "at least 6" in resp.json()["message"]

    resp = api_client.post(
        "/api/register/verify-otp", {**base, "password": "abcdef", "confirmPassword": "abcdeg"}, format="json"
    )
    assert resp.json()["message"] == "Passwords do not match."


def test_password_login(user, api_client):
    resp = api_client.post("/api/login/password", {"email": user.email, "password": "pw123456"}, format="json")
    assert resp.status_code == 200
    assert resp.json()["user"]["id"] == user.pk

    resp = api_client.post("/api/login/password", {"email": user.email, "password": "nope"}, format="json")
    assert resp.status_code == 400

    user.is_verified = False
    user.save()
    resp = api_client.post("/api/login/password", {"email": user.email, "password": "pw123456"}, format="json")
    assert resp.status_code == 403


def test_otp_login(user, api_client, mailoutbox):
    assert api_client.post("/api/login/send-otp", {"email": "ghost@test.com"}, format="json").status_code == 404

    resp = api_client.post("/api/login/send-otp", {"email": user.email}, format="json")
    assert resp.status_code == 200
    user.refresh_from_db()
    assert user.otp in mailoutbox[-1].body

    resp = api_client.post("/api/login/verify-otp", {"email": user.email, "otp": user.otp}, format="json")
    assert resp.status_code == 200
    assert "token" in resp.json()
    user.refresh_from_db()
    assert user.otp is None


def test_forgot_password_flow(user, api_client, mailoutbox):
    api_client.post("/api/forgot-password/send-otp", {"email": user.email}, format="json")
    user.refresh_from_db()
    otp = user.otp

    resp = api_client.post("/api/forgot-password/verify-otp", {"email": user.email, "otp": otp}, format="json")
    assert resp.status_code == 200

    resp = api_client.post(
        "/api/forgot-password/reset",
        {"email": user.email, "otp": otp, "newPassword": "fresh-pass", "confirmNewPassword": "fresh-pass"},
        format="json",
    )
    assert resp.status_code == 200
    assert mailoutbox[-1].subject == "Your Agri-Ecommerce Password Has Been Reset"

    user.refresh_from_db()
    assert user.check_password("fresh-pass")
    assert user.otp is None

    resp = api_client.post(
        "/api/forgot-password/reset",
        {"email": user.email, "otp": otp, "newPassword": "again-pass", "confirmNewPassword": "again-pass"},
        format="json",
    )
    assert resp.status_code == 400


def test_reset_survives_mail_outage(user, api_client, monkeypatch):
    api_client.post("/api/forgot-password/send-otp", {"email": user.email}, format="json")
    user.refresh_from_db()

    def smtp_down(*args, **kwargs):
        raise smtplib.SMTPException("connection refused")

    monkeypatch.setattr("users.auth.send_mail", smtp_down)
    resp = api_client.post(
        "/api/forgot-password/reset",
        {"email": user.email, "otp": user.otp, "newPassword": "fresh-pass", "confirmNewPassword": "fresh-pass"},
        format="json",
    )

    assert resp.status_code == 200
    user.refresh_from_db()
    assert user.check_password("fresh-pass")
    assert not user.check_password("pw123456")
    assert user.otp is None


def test_google_creates_verified_user_without_password(google, api_client):
    resp = api_client.post("/api/auth/google", {"credential": "id-token"}, format="json")

    assert resp.status_code == 200
    body = resp.json()
    assert body["requiresPasswordSetup"] is True
    created = User.objects.get(email="grower@test.com")
    assert created.google_id == "g-1"
    assert created.is_verified


def test_google_links_existing_account(google, user, api_client):
    google["email"] = user.email

    resp = api_client.post("/api/auth/google", {"credential": "id-token"}, format="json")

    assert resp.json()["requiresPasswordSetup"] is False
    user.refresh_from_db()
    assert user.google_id == "g-1"
    assert User.objects.count() == 1


def test_google_rejects_foreign_audience(google, api_client):
    google["aud"] = "someone-else"
    resp = api_client.post("/api/auth/google", {"credential": "id-token"}, format="json")
    assert resp.status_code == 401


def test_set_password_and_profile(google, api_client, client_for):
    api_client.post("/api/auth/google", {"credential": "id-token"}, format="json")
    account = User.objects.get(email="grower@test.com")
    client = client_for(account)

    assert client.post("/api/user/set-password", {"password": "longenough"}, format="json").status_code == 200
    account.refresh_from_db()
    assert account.has_usable_password()

    resp = client.put("/api/user/profile", {"phone_number": "9876543210"}, format="json")
    assert resp.status_code == 200
    assert resp.json()["user"]["phone_number"] == "9876543210"
    assert resp.json()["user"]["name"] == "Grower"

    assert client.put("/api/user/profile", {}, format="json").status_code == 400
    assert client.put("/api/user/profile", {"phone_number": "12ab"}, format="json").status_code == 400
    assert client.put("/api/user/profile", {"name": ""}, format="json").status_code == 400

    resp = client.put("/api/user/profile", {"phone_number": ""}, format="json")
    assert resp.json()["user"]["phone_number"] is None
    assert client.get("/api/user/profile").json()["email"] == "grower@test.com"


def test_bearer_token_errors(user, api_client):
    assert api_client.get("/api/user/profile").status_code == 401

    api_client.credentials(HTTP_AUTHORIZATION="Bearer not-a-token")
    resp = api_client.get("/api/user/profile")
    assert resp.status_code == 401
    assert resp.json()["message"] == "Invalid or expired token."

    expired = jwt.encode(
        {"userId": user.pk, "exp": timezone.now() - timedelta(minutes=1)},
        django_settings.JWT_SECRET,
        algorithm="HS256",
    )
    api_client.credentials(HTTP_AUTHORIZATION=f"Bearer {expired}")
    assert api_client.get("/api/user/profile").status_code == 401
