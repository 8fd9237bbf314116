from decimal import Decimal

import pytest

from shop.models import CartItem, Favorite, Order, WishlistItem

from .models import Address, User

pytestmark = pytest.mark.django_db(transaction=True)


def _payload(target, **changes):
    body = {
        "name": target.name,
        "email": target.email,
        "phone_number": target.phone_number or "",
        "is_verified": target.is_verified,
        "role": target.role,
    }
    body.update(changes)
    return body


def test_admin_lists_and_reads_users(admin, user, client_for):
    client = client_for(admin)
    Address.objects.create(
        user=user, house_name="1", area_street_sector_village="x", pincode="1", town_city="y", state="z"
    )

    rows = client.get("/api/admin/users").json()
    assert {r["email"] for r in rows} == {admin.email, user.email}
    row = next(r for r in rows if r["id"] == user.pk)
    assert row["has_password"] is True
    assert row["has_google_auth"] is False

    detail = client.get(f"/api/admin/users/{user.pk}").json()
    assert detail["address_count"] == 1
    assert client.get("/api/admin/users/9999").status_code == 404


def test_admin_endpoints_reject_plain_users(user, client_for, api_client):
    assert api_client.get("/api/admin/users").status_code == 401
    assert client_for(user).get("/api/admin/users").status_code == 403


def test_admin_update_user(admin, user, client_for):
    client = client_for(admin)

    resp = client.put(f"/api/admin/users/{user.pk}", _payload(user, name="Renamed", role="admin"), format="json")

    assert resp.status_code == 200
    user.refresh_from_db()
    assert user.name == "Renamed"
    assert user.role == User.Role.ADMIN

    resp = client.put(f"/api/admin/users/{user.pk}", _payload(user, email=admin.email), format="json")
    assert resp.status_code == 409

    resp = client.put(f"/api/admin/users/{user.pk}", _payload(user, role="owner"), format="json")
    assert resp.status_code == 400


def test_admin_replaces_addresses_with_one_default(admin, user, client_for):
    address = {"house_name": "1", "area_street_sector_village": "x", "pincode": "1", "town_city": "y", "state": "z"}
    Address.objects.create(user=user, is_default=True, **address)

    resp = client_for(admin).put(
        f"/api/admin/users/{user.pk}",
        _payload(user, addresses=[{**address, "is_default": True}, {**address, "is_default": True}, address]),
        format="json",
    )

    assert resp.status_code == 200
    assert Address.objects.filter(user=user).count() == 3
    assert Address.objects.filter(user=user, is_default=True).count() == 1


def test_admin_cannot_delete_self(admin, client_for):
    resp = client_for(admin).delete(f"/api/admin/users/{admin.pk}")
    assert resp.status_code == 403
    assert User.objects.filter(pk=admin.pk).exists()


def test_admin_delete_user_removes_owned_rows(admin, user, make_product, client_for):
    p = make_product()
    CartItem.objects.create(user=user, product=p, quantity=1)
    Favorite.objects.create(user=user, product=p)
    WishlistItem.objects.create(user=user, product=p)
    Order.objects.create(user=user, total_amount=Decimal("1.00"))

    resp = client_for(admin).delete(f"/api/admin/users/{user.pk}")

    assert resp.status_code == 200
    assert not User.objects.filter(pk=user.pk).exists()
    assert not CartItem.objects.exists()
    assert not Favorite.objects.exists()
    assert not WishlistItem.objects.exists()
    assert not Order.objects.exists()


def test_admin_views_of_user_collections(admin, user, make_product, client_for):
    p = make_product(name="Shears")
    CartItem.objects.create(user=user, product=p, quantity=2)
    Favorite.objects.create(user=user, product=p)
    client = client_for(admin)

    assert client.get(f"/api/admin/users/{user.pk}/cart").json()[0]["quantity"] == 2
    assert client.get(f"/api/admin/users/{user.pk}/favorites").json()[0]["name"] == "Shears"
    assert client.get(f"/api/admin/users/{user.pk}/wishlist").json() == []


def test_admin_orders(admin, user, client_for):
    client = client_for(admin)
    order = Order.objects.create(user=user, total_amount=Decimal("9.00"))
    Order.objects.create(user=user, total_amount=Decimal("3.00"), status=Order.Status.SHIPPED)

    assert len(client.get("/api/admin/orders").json()) == 2
    shipped = client.get("/api/admin/orders", {"status": "shipped"}).json()
    assert [o["status"] for o in shipped] == ["shipped"]

    detail = client.get(f"/api/admin/orders/{order.pk}").json()
    assert detail["order"]["user_email"] == user.email
    assert detail["items"] == []

    resp = client.put(f"/api/admin/orders/{order.pk}/status", {"status": "delivered"}, format="json")
    assert resp.json()["order"]["status"] == "delivered"
    # moving backwards is allowed
    resp = client.put(f"/api/admin/orders/{order.pk}/status", {"status": "pending"}, format="json")
    assert resp.status_code == 200

    resp = client.put(f"/api/admin/orders/{order.pk}/status", {"status": "lost"}, format="json")
    assert resp.status_code == 400
    assert resp.json()["message"] == "status: Invalid status"
    assert client.get("/api/admin/orders/9999").status_code == 404
