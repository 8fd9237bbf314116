"""Identity flows: OTP registration/login/reset, password login, Google
federation."""
import hmac
import logging
import secrets
import smtplib
import string
from datetime import timedelta
from functools import partial

import requests
from django.conf import settings
from django.core.mail import send_mail
from django.db import transaction
from django.utils import timezone

from agrishop.exceptions import ApiError, ConflictError, NotFoundError

from .exceptions import (
    EmailDeliveryError,
    GoogleAuthError,
    InvalidCredentialsError,
    InvalidOtpError,
    UnverifiedEmailError,
)
from .models import User

logger = logging.getLogger(__name__)

OTP_LENGTH = 6
REGISTRATION_OTP_TTL = timedelta(minutes=10)
LOGIN_OTP_TTL = timedelta(minutes=5)
RESET_OTP_TTL = timedelta(minutes=10)


def generate_otp() -> str:
    return "".join(secrets.choice(string.digits) for _ in range(OTP_LENGTH))


def otp_is_valid(user: User, otp: str) -> bool:
    if not user.otp or not otp or user.otp_expiry is None:
        return False
    if timezone.now() > user.otp_expiry:
        return False
    return hmac.compare_digest(user.otp, str(otp))


def _send(to, subject, text, html=None, failure="Failed to send OTP. Please try again later."):
    try:
        send_mail(subject, text, settings.DEFAULT_FROM_EMAIL, [to], html_message=html)
    except (smtplib.SMTPException, OSError) as exc:
        logger.exception("failed to send %r to %s", subject, to)
        raise EmailDeliveryError(failure) from exc
    logger.info("email %r sent to %s", subject, to)


def _send_otp(user, otp, *, subject, purpose, ttl):
    minutes = int(ttl.total_seconds() // 60)
    _send(
        user.email,
        subject,
        f"Your OTP for {purpose} is: {otp}. This OTP is valid for {minutes} minutes.",
        f"<p>Your OTP for {purpose} is: <strong>{otp}</strong></p><p>This OTP is valid for {minutes} minutes.</p>",
    )


def _store_otp(user, ttl) -> str:
    otp = generate_otp()
    user.otp = otp
    user.otp_expiry = timezone.now() + ttl
    user.save(update_fields=["otp", "otp_expiry", "updated_at"])
    return otp


def _clear_otp(user, *extra_fields):
    user.otp = None
    user.otp_expiry = None
    user.save(update_fields=["otp", "otp_expiry", "updated_at", *extra_fields])


def _verified_user(email, *, missing_message):
    user = User.objects.filter(email__iexact=email).first()
    if user is None:
        raise NotFoundError(missing_message)
    if not user.is_verified:
        raise UnverifiedEmailError()
    return user


@transaction.atomic
def start_registration(*, name, email) -> User:
    user = User.objects.select_for_update().filter(email__iexact=email).first()
    if user is not None and user.is_verified:
        raise ConflictError("User with this email already exists. Please login or use forgot password.")
    if user is None:
        user = User.objects.create_user(email, name=name)
    else:
        user.name = name
        user.save(update_fields=["name", "updated_at"])
    otp = _store_otp(user, REGISTRATION_OTP_TTL)
    _send_otp(user, otp, subject="Your Agri-Ecommerce Registration OTP", purpose="registration", ttl=REGISTRATION_OTP_TTL)
    return user


@transaction.atomic
def complete_registration(*, email, otp, password) -> User:
    user = User.objects.select_for_update().filter(email__iexact=email).first()
    if user is None:
        raise NotFoundError("User not found or OTP not requested for this email.")
    if user.is_verified:
        raise ApiError("This email is already verified. Please proceed to login.")
    if not otp_is_valid(user, otp):
        raise InvalidOtpError()
    user.set_password(password)
    user.is_verified = True
    _clear_otp(user, "password", "is_verified")
    logger.info("user %s completed registration", user.pk)
    return user


def login_with_password(*, email, password) -> User:
    user = User.objects.filter(email__iexact=email).first()
    if user is None or not user.has_usable_password():
        raise InvalidCredentialsError(
            "Invalid credentials or user not registered with password. Try OTP login or Google."
        )
    if not user.check_password(password):
        raise InvalidCredentialsError()
    if not user.is_verified:
        raise UnverifiedEmailError("Your email is not verified. Please complete verification or try OTP login.")
    return user


def send_login_otp(*, email) -> User:
    user = _verified_user(email, missing_message="No user found with this email. Please register.")
    otp = _store_otp(user, LOGIN_OTP_TTL)
    _send_otp(user, otp, subject="Your Agri-Ecommerce Login OTP", purpose="login", ttl=LOGIN_OTP_TTL)
    return user


@transaction.atomic
def login_with_otp(*, email, otp) -> User:
    user = User.objects.select_for_update().filter(email__iexact=email).first()
    if user is None:
        raise NotFoundError("User not found or OTP not requested.")
    if not user.is_verified:
        raise UnverifiedEmailError()
    if not otp_is_valid(user, otp):
        raise InvalidOtpError()
    _clear_otp(user)
    return user


def send_reset_otp(*, email) -> User:
    user = _verified_user(email, missing_message="No user found with this email.")
    otp = _store_otp(user, RESET_OTP_TTL)
    _send_otp(user, otp, subject="Agri-Ecommerce Password Reset OTP", purpose="resetting your password", ttl=RESET_OTP_TTL)
    return user


def verify_reset_otp(*, email, otp) -> User:
    user = User.objects.filter(email__iexact=email).first()
    if user is None:
        raise NotFoundError("User not found or OTP not requested.")
    if not otp_is_valid(user, otp):
        raise InvalidOtpError()
    return user


@transaction.atomic
def reset_password(*, email, otp, new_password) -> User:
    user = User.objects.select_for_update().filter(email__iexact=email).first()
    if user is None:
        raise NotFoundError("User not found or OTP process not initiated.")
    if not otp_is_valid(user, otp):
        raise InvalidOtpError("OTP either expired or not verified. Please re-initiate forgot password process.")
    user.set_password(new_password)
    _clear_otp(user, "password")
    transaction.on_commit(partial(_send_reset_notice, user.email))
    return user


def _send_reset_notice(email):
    """Runs after commit; the new password stands even if SMTP is down."""
    try:
        _send(
            email,
            "Your Agri-Ecommerce Password Has Been Reset",
            f"Your password for the Agri-Ecommerce account associated with {email} has been successfully reset. "
            "If you did not authorize this, please contact support immediately.",
        )
    except EmailDeliveryError:
        logger.warning("password for %s was reset but the notice was not delivered", email)


def verify_google_credential(credential: str) -> dict:
    """Validate a Google ID token and return its claims."""
    if not settings.GOOGLE_CLIENT_ID:
        raise ApiError("Google sign-in is not configured.")
    try:
        resp = requests.get(settings.GOOGLE_TOKENINFO_URL, params={"id_token": credential}, timeout=10)
    except requests.RequestException as exc:
        logger.exception("google tokeninfo request failed")
        raise GoogleAuthError("Could not reach Google to verify the credential.") from exc
    if resp.status_code != 200:
        raise GoogleAuthError("Invalid Google credential.")
    claims = resp.json()
    if claims.get("aud") != settings.GOOGLE_CLIENT_ID:
        raise GoogleAuthError("Google credential was issued for a different client.")
    if not claims.get("email"):
        raise GoogleAuthError("Google account must have an email address.")
    if str(claims.get("email_verified", "")).lower() != "true":
        raise GoogleAuthError("Google account email is not verified.")
    return claims


@transaction.atomic
def federate_google_user(*, google_id, email, name=None):
    """Find, link or create the local account. Returns ``(user, requires_password_setup)``."""
    user = User.objects.select_for_update().filter(google_id=google_id).first()
    if user is None:
        user = User.objects.select_for_update().filter(email__iexact=email).first()
        if user is not None:
            if not user.google_id:
                user.google_id = google_id
                user.save(update_fields=["google_id", "updated_at"])
                logger.info("linked user %s to google account", user.pk)
        else:
            user = User.objects.create_user(email, name=name or email, google_id=google_id, is_verified=True)
            logger.info("created user %s from google sign-in", user.pk)
    return user, not user.has_usable_password()
