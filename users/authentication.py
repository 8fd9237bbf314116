import jwt
from rest_framework.authentication import BaseAuthentication, get_authorization_header
from rest_framework.exceptions import AuthenticationFailed

from .tokens import decode_token
from .models import User


class JWTAuthentication(BaseAuthentication):
    """``Authorization: Bearer <jwt>``; the token's ``userId`` claim names the user."""

    keyword = b"bearer"

    def authenticate(self, request):
        parts = get_authorization_header(request).split()
        if not parts or parts[0].lower() != self.keyword:
            return None
        if len(parts) != 2:
            raise AuthenticationFailed("Invalid authorization header.")
        try:
            claims = decode_token(parts[1].decode())
        except (jwt.PyJWTError, UnicodeDecodeError):
            raise AuthenticationFailed("Invalid or expired token.")
        user = User.objects.filter(pk=claims.get("userId"), is_active=True).first()
        if user is None:
            raise AuthenticationFailed("Invalid or expired token.")
        return user, claims

    def authenticate_header(self, request):
        return "Bearer"
