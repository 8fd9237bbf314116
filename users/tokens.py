"""HS256 bearer tokens. Kept free of view and exception-handler imports so
the DRF authentication class can load it while ``rest_framework.views`` is
still importing."""
from datetime import timedelta

import jwt
from django.conf import settings
from django.utils import timezone


def issue_token(user) -> str:
    now = timezone.now()
    payload = {
        "userId": user.pk,
        "email": user.email,
        "name": user.name,
        "role": user.role,
        "phone_number": user.phone_number,
        "iat": now,
        "exp": now + timedelta(minutes=settings.JWT_EXPIRY_MINUTES),
    }
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def decode_token(token: str) -> dict:
    return jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
