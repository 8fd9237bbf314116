import re

from rest_framework import serializers

from .models import Address, User

PHONE_RE = re.compile(r"^\d{10,15}$")
PASSWORD_MIN = {"min_length": "Password must be at least 6 characters long."}


def validate_phone(value):
    if value and not PHONE_RE.match(value):
        raise serializers.ValidationError("Invalid phone number format. Must be 10-15 digits or null/empty.")
    return value


class UserSerializer(serializers.ModelSerializer):
    class Meta:
        model = User
        fields = ["id", "name", "email", "phone_number", "role"]


class AddressSerializer(serializers.ModelSerializer):
    user_id = serializers.IntegerField(read_only=True)

    class Meta:
        model = Address
        fields = [
            "id",
            "user_id",
            "house_name",
            "area_street_sector_village",
            "landmark",
            "pincode",
            "town_city",
            "state",
            "is_default",
            "created_at",
            "updated_at",
        ]
        read_only_fields = ["is_default", "created_at", "updated_at"]
        extra_kwargs = {"landmark": {"required": False}}


class AdminAddressSerializer(AddressSerializer):
    class Meta(AddressSerializer.Meta):
        read_only_fields = ["created_at", "updated_at"]


class ProfileUpdateSerializer(serializers.Serializer):
    name = serializers.CharField(required=False, trim_whitespace=True, allow_blank=False, max_length=255)
    phone_number = serializers.CharField(
        required=False, allow_null=True, allow_blank=True, validators=[validate_phone]
    )

    def validate(self, attrs):
        if not attrs:
            raise serializers.ValidationError("At least one field (name or phone_number) is required for update.")
        return attrs


class RegistrationOtpSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=255)
    email = serializers.EmailField(error_messages={"invalid": "Invalid email format."})


class RegistrationVerifySerializer(serializers.Serializer):
    email = serializers.EmailField()
    otp = serializers.CharField()
    password = serializers.CharField(min_length=6, error_messages=PASSWORD_MIN)
    confirmPassword = serializers.CharField()

    def validate(self, attrs):
        if attrs["password"] != attrs["confirmPassword"]:
            raise serializers.ValidationError("Passwords do not match.")
        return attrs


class PasswordLoginSerializer(serializers.Serializer):
    email = serializers.EmailField()
    password = serializers.CharField()


class EmailSerializer(serializers.Serializer):
    email = serializers.EmailField()


class OtpSerializer(serializers.Serializer):
    email = serializers.EmailField()
    otp = serializers.CharField()


class PasswordResetSerializer(serializers.Serializer):
    email = serializers.EmailField()
    otp = serializers.CharField()
    newPassword = serializers.CharField(min_length=6, error_messages=PASSWORD_MIN)
    confirmNewPassword = serializers.CharField()

    def validate(self, attrs):
        if attrs["newPassword"] != attrs["confirmNewPassword"]:
            raise serializers.ValidationError("New passwords do not match.")
        return attrs


class SetPasswordSerializer(serializers.Serializer):
    password = serializers.CharField(min_length=6, error_messages=PASSWORD_MIN)


class GoogleCredentialSerializer(serializers.Serializer):
    credential = serializers.CharField()


class AdminUserSerializer(serializers.ModelSerializer):
    has_google_auth = serializers.SerializerMethodField()
    has_password = serializers.BooleanField(read_only=True)

    class Meta:
        model = User
        fields = [
            "id",
            "name",
            "email",
            "phone_number",
            "is_verified",
            "role",
            "created_at",
            "updated_at",
            "has_google_auth",
            "has_password",
        ]

    def get_has_google_auth(self, obj):
        return bool(obj.google_id)


class AdminUserDetailSerializer(AdminUserSerializer):
    address_count = serializers.SerializerMethodField()
    addresses = AddressSerializer(many=True, read_only=True)

    class Meta(AdminUserSerializer.Meta):
        fields = AdminUserSerializer.Meta.fields + ["address_count", "addresses"]

    def get_address_count(self, obj):
        return obj.addresses.count()


class AdminUserUpdateSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=255)
    email = serializers.EmailField(error_messages={"invalid": "Invalid email format."})
    phone_number = serializers.CharField(
        required=False, allow_null=True, allow_blank=True, validators=[validate_phone]
    )
    is_verified = serializers.BooleanField()
    role = serializers.ChoiceField(
        choices=User.Role.choices,
        error_messages={"invalid_choice": 'Invalid role specified. Must be "user" or "admin".'},
    )
    addresses = AdminAddressSerializer(many=True, required=False)
