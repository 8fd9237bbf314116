from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from shop.models import CartItem, Favorite, WishlistItem
from shop.serializers import CartLineSerializer, FavoriteSerializer, WishlistSerializer

from . import auth, services
from .models import User
from .permissions import IsAdminRole
from .serializers import (
    AddressSerializer,
    AdminUserDetailSerializer,
    AdminUserSerializer,
    AdminUserUpdateSerializer,
    EmailSerializer,
    GoogleCredentialSerializer,
    OtpSerializer,
    PasswordLoginSerializer,
    PasswordResetSerializer,
    ProfileUpdateSerializer,
    RegistrationOtpSerializer,
    RegistrationVerifySerializer,
    SetPasswordSerializer,
    UserSerializer,
)
from .tokens import issue_token


def _validated(serializer_class, request, **kwargs):
    ser = serializer_class(data=request.data, **kwargs)
    ser.is_valid(raise_exception=True)
    return ser.validated_data


def _session(user, message, code=status.HTTP_200_OK, **extra):
    payload = {"message": message, "token": issue_token(user), "user": UserSerializer(user).data}
    payload.update(extra)
    return Response(payload, status=code)


# registration / login / password reset


@api_view(["POST"])
def register_send_otp(request):
    data = _validated(RegistrationOtpSerializer, request)
    auth.start_registration(name=data["name"], email=data["email"])
    return Response({"message": "OTP sent to your email for registration. It is valid for 10 minutes."})


@api_view(["POST"])
def register_verify_otp(request):
    data = _validated(RegistrationVerifySerializer, request)
    user = auth.complete_registration(email=data["email"], otp=data["otp"], password=data["password"])
    return _session(user, "Registration successful!", status.HTTP_201_CREATED)


@api_view(["POST"])
def login_password(request):
    data = _validated(PasswordLoginSerializer, request)
    user = auth.login_with_password(email=data["email"], password=data["password"])
    return _session(user, "Login successful")


@api_view(["POST"])
def login_send_otp(request):
    data = _validated(EmailSerializer, request)
    auth.send_login_otp(email=data["email"])
    return Response({"message": "OTP sent to your email for login. It is valid for 5 minutes."})


@api_view(["POST"])
def login_verify_otp(request):
    data = _validated(OtpSerializer, request)
    user = auth.login_with_otp(email=data["email"], otp=data["otp"])
    return _session(user, "Login successful")


@api_view(["POST"])
def forgot_password_send_otp(request):
    data = _validated(EmailSerializer, request)
    auth.send_reset_otp(email=data["email"])
    return Response({"message": "OTP sent to your email for password reset. It is valid for 10 minutes."})


@api_view(["POST"])
def forgot_password_verify_otp(request):
    data = _validated(OtpSerializer, request)
    auth.verify_reset_otp(email=data["email"], otp=data["otp"])
    return Response({"message": "OTP verified. You can now reset your password."})


@api_view(["POST"])
def forgot_password_reset(request):
    data = _validated(PasswordResetSerializer, request)
    auth.reset_password(email=data["email"], otp=data["otp"], new_password=data["newPassword"])
    return Response({"message": "Password has been reset successfully. You can now login with your new password."})


@api_view(["POST"])
def google_sign_in(request):
    data = _validated(GoogleCredentialSerializer, request)
    claims = auth.verify_google_credential(data["credential"])
    user, needs_password = auth.federate_google_user(
        google_id=claims["sub"], email=claims["email"], name=claims.get("name")
    )
    return _session(user, "Google sign-in successful", requiresPasswordSetup=needs_password)


# profile


@api_view(["POST"])
@permission_classes([IsAuthenticated])
def set_password(request):
    data = _validated(SetPasswordSerializer, request)
    services.set_password(user=request.user, password=data["password"])
    return Response({"message": "Password set successfully."})


@api_view(["GET", "PUT"])
@permission_classes([IsAuthenticated])
def profile(request):
    if request.method == "GET":
        return Response(UserSerializer(request.user).data)
    data = _validated(ProfileUpdateSerializer, request)
    user = services.update_profile(user=request.user, changes=data)
    return _session(user, "Profile updated successfully")


# addresses


@api_view(["GET", "POST"])
@permission_classes([IsAuthenticated])
def addresses(request):
    if request.method == "GET":
        return Response(AddressSerializer(request.user.addresses.all(), many=True).data)
    data = _validated(AddressSerializer, request)
    address = services.create_address(user=request.user, data=data)
    return Response(AddressSerializer(address).data, status=status.HTTP_201_CREATED)


@api_view(["PUT", "DELETE"])
@permission_classes([IsAuthenticated])
def address_detail(request, address_id):
    if request.method == "DELETE":
        services.delete_address(user=request.user, address_id=address_id)
        return Response({"message": "Address deleted successfully."})
    data = _validated(AddressSerializer, request, partial=True)
    address = services.update_address(user=request.user, address_id=address_id, data=data)
    return Response(AddressSerializer(address).data)


@api_view(["PATCH"])
@permission_classes([IsAuthenticated])
def address_set_default(request, address_id):
    address = services.set_default_address(user=request.user, address_id=address_id)
    return Response(AddressSerializer(address).data)


# admin


@api_view(["GET"])
@permission_classes([IsAdminRole])
def admin_users(request):
    return Response(AdminUserSerializer(User.objects.all(), many=True).data)


@api_view(["GET", "PUT", "DELETE"])
@permission_classes([IsAdminRole])
def admin_user_detail(request, user_id):
    if request.method == "GET":
        return Response(AdminUserDetailSerializer(services.get_user(user_id)).data)
    if request.method == "DELETE":
        services.admin_delete_user(user_id=user_id, actor=request.user)
        return Response({"message": "User deleted successfully."})
    data = _validated(AdminUserUpdateSerializer, request)
    user = services.admin_update_user(user_id=user_id, data=data)
    return Response({"message": "User updated successfully", "user": AdminUserDetailSerializer(user).data})


@api_view(["GET"])
@permission_classes([IsAdminRole])
def admin_user_cart(request, user_id):
    user = services.get_user(user_id)
    lines = CartItem.objects.filter(user=user).select_related("product", "product__category")
    return Response(CartLineSerializer(lines, many=True).data)


@api_view(["GET"])
@permission_classes([IsAdminRole])
def admin_user_favorites(request, user_id):
    user = services.get_user(user_id)
    entries = Favorite.objects.filter(user=user).select_related("product", "product__category")
    return Response(FavoriteSerializer(entries, many=True).data)


@api_view(["GET"])
@permission_classes([IsAdminRole])
def admin_user_wishlist(request, user_id):
    user = services.get_user(user_id)
    entries = WishlistItem.objects.filter(user=user).select_related("product", "product__category")
    return Response(WishlistSerializer(entries, many=True).data)
