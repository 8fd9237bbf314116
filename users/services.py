import logging

from django.db import transaction
from rest_framework.exceptions import PermissionDenied

from agrishop.exceptions import ConflictError, NotFoundError

from .models import Address, User

logger = logging.getLogger(__name__)

ADDRESS_FIELDS = ("house_name", "area_street_sector_village", "landmark", "pincode", "town_city", "state")


def _owned_address(user, address_id, *, lock=False):
    qs = Address.objects.filter(pk=address_id, user=user)
    if lock:
        qs = qs.select_for_update()
    address = qs.first()
    if address is None:
        raise NotFoundError("Address not found or does not belong to user.")
    return address


def _ensure_default(user):
    """Leave exactly one default when the user has any address."""
    addresses = Address.objects.select_for_update().filter(user=user).order_by("created_at", "id")
    defaults = [a.pk for a in addresses if a.is_default]
    if len(defaults) == 1:
        return
    if defaults:
        Address.objects.filter(pk__in=defaults[1:]).update(is_default=False)
        return
    first = addresses.first()
    if first is not None:
        first.is_default = True
        first.save(update_fields=["is_default", "updated_at"])


@transaction.atomic
def create_address(*, user, data) -> Address:
    # lock the owner so two concurrent "first address" inserts cannot both become default
    User.objects.select_for_update().filter(pk=user.pk).first()
    is_first = not Address.objects.filter(user=user).exists()
    fields = {k: data.get(k) for k in ADDRESS_FIELDS}
    return Address.objects.create(user=user, is_default=is_first, **fields)


def update_address(*, user, address_id, data) -> Address:
    address = _owned_address(user, address_id)
    for field in ADDRESS_FIELDS:
        if field in data:
            setattr(address, field, data[field])
    address.save()
    return address


@transaction.atomic
def set_default_address(*, user, address_id) -> Address:
    address = _owned_address(user, address_id, lock=True)
    Address.objects.filter(user=user, is_default=True).exclude(pk=address.pk).update(is_default=False)
    address.is_default = True
    address.save(update_fields=["is_default", "updated_at"])
    return address


@transaction.atomic
def delete_address(*, user, address_id):
    address = _owned_address(user, address_id, lock=True)
    was_default = address.is_default
    address.delete()
    if was_default:
        replacement = Address.objects.filter(user=user).order_by("created_at", "id").first()
        if replacement is not None:
            replacement.is_default = True
            replacement.save(update_fields=["is_default", "updated_at"])


def update_profile(*, user, changes) -> User:
    """Apply only the fields present in ``changes``; absent keys are left as-is."""
    if "name" in changes:
        user.name = changes["name"].strip()
    if "phone_number" in changes:
        user.phone_number = changes["phone_number"] or None
    user.save()
    return user


def set_password(*, user, password) -> User:
    user.set_password(password)
    user.save(update_fields=["password", "updated_at"])
    return user


def get_user(user_id) -> User:
    user = User.objects.filter(pk=user_id).first()
    if user is None:
        raise NotFoundError("User not found.")
    return user


@transaction.atomic
def admin_update_user(*, user_id, data) -> User:
    user = User.objects.select_for_update().filter(pk=user_id).first()
    if user is None:
        raise NotFoundError("User not found.")
    if User.objects.filter(email__iexact=data["email"]).exclude(pk=user.pk).exists():
        raise ConflictError("This email is already taken by another user.")

    user.name = data["name"]
    user.email = data["email"]
    user.phone_number = data.get("phone_number") or None
    user.is_verified = data["is_verified"]
    user.role = data["role"]
    user.save()

    if data.get("addresses") is not None:
        Address.objects.filter(user=user).delete()
        Address.objects.bulk_create(
            [
                Address(
                    user=user,
                    is_default=bool(entry.get("is_default")),
                    **{k: entry.get(k) for k in ADDRESS_FIELDS},
                )
                for entry in data["addresses"]
            ]
        )
        _ensure_default(user)

    logger.info("user %s updated by admin", user.pk)
    return user


@transaction.atomic
def admin_delete_user(*, user_id, actor):
    if int(user_id) == actor.pk:
        raise PermissionDenied("Admins cannot delete their own account via this endpoint.")
    deleted, _ = User.objects.filter(pk=user_id).delete()
    if not deleted:
        raise NotFoundError("User not found.")
    logger.info("user %s deleted by admin %s", user_id, actor.pk)
