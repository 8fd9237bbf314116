from decimal import Decimal

import pytest
from django.db import IntegrityError
from django.db.models.query import QuerySet

from agrishop.exceptions import NotFoundError

from .cart import add_to_cart, cart_lines, cart_total, update_quantity
from .exceptions import InsufficientStockError
from .models import CartItem

pytestmark = pytest.mark.django_db(transaction=True)


def test_add_twice_upserts_one_row(user, make_product):
    p = make_product(stock=10)

    _, created_first = add_to_cart(user=user, product_id=p.pk, quantity=2)
    item, created_second = add_to_cart(user=user, product_id=p.pk, quantity=3)

    assert created_first is True
    assert created_second is False
    assert item.quantity == 5
    assert CartItem.objects.filter(user=user).count() == 1


def test_add_unknown_product(user):
    with pytest.raises(NotFoundError):
        add_to_cart(user=user, product_id=12345, quantity=1)


def test_product_deleted_mid_insert_is_not_found(user, make_product, client_for, monkeypatch):
    p = make_product(stock=10)

    def dangling_fk(self, defaults=None, **kwargs):
        raise IntegrityError("FOREIGN KEY constraint failed")

    monkeypatch.setattr(QuerySet, "get_or_create", dangling_fk)
    resp = client_for(user).post("/api/cart", {"productId": p.pk, "quantity": 1}, format="json")

    assert resp.status_code == 404
    assert resp.json()["message"] == "Product not found"
    assert not CartItem.objects.exists()


def test_update_quantity_bounds(user, make_product):
    p = make_product(stock=4)
    item, _ = add_to_cart(user=user, product_id=p.pk, quantity=1)

    assert update_quantity(user=user, item_id=item.pk, quantity=4).quantity == 4
    with pytest.raises(InsufficientStockError):
        update_quantity(user=user, item_id=item.pk, quantity=5)
    with pytest.raises(InsufficientStockError):
        update_quantity(user=user, item_id=item.pk, quantity=0)


def test_update_quantity_is_scoped_to_owner(user, admin, make_product):
    p = make_product(stock=4)
    item, _ = add_to_cart(user=admin, product_id=p.pk, quantity=1)
    with pytest.raises(NotFoundError):
        update_quantity(user=user, item_id=item.pk, quantity=2)


def test_total_skips_out_of_stock_lines(user, make_product):
    a = make_product(name="A", price="3.00", stock=5)
    b = make_product(name="B", price="7.00", stock=1)
    add_to_cart(user=user, product_id=a.pk, quantity=2)
    add_to_cart(user=user, product_id=b.pk, quantity=1)
    b.stock = 0
    b.save()

    lines = list(cart_lines(user))

    assert len(lines) == 2
    assert cart_total(lines) == Decimal("6.00")


def test_cart_endpoints(user, make_product, client_for):
    p = make_product(name="Spade", price="12.50", stock=9)
    client = client_for(user)

    resp = client.post("/api/cart", {"productId": p.pk, "quantity": 2}, format="json")
    assert resp.status_code == 201
    resp = client.post("/api/cart", {"productId": p.pk}, format="json")
    assert resp.status_code == 200
    assert resp.json()["item"]["quantity"] == 3

    body = client.get("/api/cart").json()
    assert body["total"] == "37.50"
    line = body["items"][0]
    assert line["name"] == "Spade"
    assert line["quantity"] == 3

    resp = client.put(f"/api/cart/{line['cart_item_id']}", {"quantity": 20}, format="json")
    assert resp.status_code == 400
    assert resp.json()["message"] == "Not enough stock available"

    assert client.delete(f"/api/cart/{line['cart_item_id']}").status_code == 200
    assert client.delete(f"/api/cart/{line['cart_item_id']}").status_code == 404

    client.post("/api/cart", {"productId": p.pk}, format="json")
    assert client.delete("/api/cart").status_code == 200
    assert client.get("/api/cart").json() == {"items": [], "total": "0.00"}


def test_cart_rejects_bad_quantity(user, make_product, client_for):
    p = make_product()
    resp = client_for(user).post("/api/cart", {"productId": p.pk, "quantity": 0}, format="json")
    assert resp.status_code == 400
    assert "errors" in resp.json()
