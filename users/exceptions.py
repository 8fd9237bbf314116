from rest_framework import status

from agrishop.exceptions import ApiError


class InvalidOtpError(ApiError):
    default_detail = "Invalid or expired OTP."


class InvalidCredentialsError(ApiError):
    default_detail = "Invalid credentials."


class UnverifiedEmailError(ApiError):
    status_code = status.HTTP_403_FORBIDDEN
    default_detail = "Your email is not verified. Please complete registration verification first."


class EmailDeliveryError(ApiError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_detail = "Failed to send email. Please try again later."


class GoogleAuthError(ApiError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_detail = "Google sign-in failed."
