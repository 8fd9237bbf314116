import threading
from decimal import Decimal

import pytest
from django.contrib.auth import get_user_model
from django.db import connection

from agrishop.exceptions import NotFoundError
from users.models import Address

from . import services
from .exceptions import CartEmptyError, StockInsufficientError
from .models import CartItem, Order, OrderItem, Product, StockLog
from .services import CHECKOUT_REASON, checkout

pytestmark = pytest.mark.django_db(transaction=True)


def _address(user, **extra):
    fields = dict(
        house_name="12",
        area_street_sector_village="Main road",
        pincode="560001",
        town_city="Bengaluru",
        state="KA",
    )
    fields.update(extra)
    return Address.objects.create(user=user, **fields)


def test_checkout_single_line_decrements_stock_and_clears_cart(user, make_product):
    a = make_product(name="A", price="4.00", stock=5)
    CartItem.objects.create(user=user, product=a, quantity=2)

    order = checkout(user=user)

    a.refresh_from_db()
    assert a.stock == 3
    assert order.status == Order.Status.PENDING
    assert order.total_amount == Decimal("8.00")
    assert OrderItem.objects.filter(order=order).count() == 1
    assert CartItem.objects.filter(user=user).count() == 0

    log = StockLog.objects.get(product=a)
    assert (log.previous_stock, log.new_stock, log.change_amount) == (5, 3, 2)
    assert log.change_type == StockLog.ChangeType.DECREASE
    assert log.reason == CHECKOUT_REASON
    assert log.updated_by == user


def test_checkout_reports_every_short_line_and_changes_nothing(user, make_product):
    a = make_product(name="A", stock=2)
    b = make_product(name="B", stock=5)
    c = make_product(name="C", stock=0)
    CartItem.objects.create(user=user, product=a, quantity=3)
    CartItem.objects.create(user=user, product=b, quantity=2)
    CartItem.objects.create(user=user, product=c, quantity=1)

    with pytest.raises(StockInsufficientError) as excinfo:
        checkout(user=user)

    issues = {i.product_id: i for i in excinfo.value.issues}
    assert set(issues) == {a.pk, c.pk}
    assert issues[a.pk].requested_quantity == 3
    assert issues[a.pk].available_stock == 2

    b.refresh_from_db()
    assert b.stock == 5
    assert Order.objects.count() == 0
    assert StockLog.objects.count() == 0
    assert CartItem.objects.filter(user=user).count() == 3


def test_checkout_empty_cart(user):
    with pytest.raises(CartEmptyError):
        checkout(user=user)
    assert Order.objects.count() == 0


def test_checkout_rolls_back_when_a_later_step_fails(user, make_product, monkeypatch):
    a = make_product(name="A", stock=5)
    CartItem.objects.create(user=user, product=a, quantity=1)

    def boom(*args, **kwargs):
        raise RuntimeError("insert failed")

    monkeypatch.setattr(OrderItem.objects, "bulk_create", boom)
    with pytest.raises(RuntimeError):
        checkout(user=user)

    a.refresh_from_db()
    assert a.stock == 5
    assert Order.objects.count() == 0
    assert StockLog.objects.count() == 0
    assert CartItem.objects.filter(user=user).count() == 1


def test_conditional_decrement_catches_stock_drained_after_lock(user, make_product, monkeypatch):
    a = make_product(name="A", stock=5)
    CartItem.objects.create(user=user, product=a, quantity=3)
    real_lock = services._lock_products

    def lock_then_drain(product_ids):
        snapshot = real_lock(product_ids)
        Product.objects.filter(pk=a.pk).update(stock=1)
        return snapshot

    monkeypatch.setattr(services, "_lock_products", lock_then_drain)
    with pytest.raises(StockInsufficientError) as excinfo:
        checkout(user=user)

    [issue] = excinfo.value.issues
    assert issue.as_dict()["requestedQuantity"] == 3
    assert issue.as_dict()["availableStock"] == 1

    a.refresh_from_db()
    assert a.stock == 1
    assert Order.objects.count() == 0
    assert OrderItem.objects.count() == 0
    assert StockLog.objects.count() == 0
    assert CartItem.objects.get(user=user, product=a).quantity == 3


def test_price_at_time_survives_price_change(user, make_product):
    a = make_product(name="A", price="10.00", stock=5)
    CartItem.objects.create(user=user, product=a, quantity=1)
    order = checkout(user=user)

    Product.objects.filter(pk=a.pk).update(price=Decimal("99.00"))

    item = OrderItem.objects.get(order=order)
    assert item.price_at_time == Decimal("10.00")


def test_checkout_uses_own_shipping_address(user, make_product):
    address = _address(user)
    a = make_product(stock=5)
    CartItem.objects.create(user=user, product=a, quantity=1)

    order = checkout(user=user, shipping_address_id=address.pk)

    assert order.shipping_address_id == address.pk


def test_checkout_rejects_foreign_shipping_address(user, admin, make_product):
    foreign = _address(admin)
    a = make_product(stock=5)
    CartItem.objects.create(user=user, product=a, quantity=1)

    with pytest.raises(NotFoundError):
        checkout(user=user, shipping_address_id=foreign.pk)
    a.refresh_from_db()
    assert a.stock == 5


def test_checkout_endpoint(user, make_product, client_for):
    a = make_product(name="A", price="2.50", stock=4)
    CartItem.objects.create(user=user, product=a, quantity=2)

    resp = client_for(user).post("/api/checkout", {}, format="json")

    assert resp.status_code == 201
    body = resp.json()
    assert body["message"] == "Order placed successfully"
    assert body["totalAmount"] == "5.00"
    assert body["orderItems"][0]["product_name"] == "A"
    assert body["orderItems"][0]["price_at_time"] == "2.50"


def test_checkout_endpoint_stock_conflict_body(user, make_product, client_for):
    a = make_product(name="A", stock=1)
    CartItem.objects.create(user=user, product=a, quantity=2)

    resp = client_for(user).post("/api/checkout", {}, format="json")

    assert resp.status_code == 400
    body = resp.json()
    assert body["type"] == "stock_insufficient"
    assert body["stockIssues"] == [
        {
            "productId": a.pk,
            "productName": "A",
            "requestedQuantity": 2,
            "availableStock": 1,
            "message": "Sorry, only 1 left in stock for A",
        }
    ]


def test_checkout_requires_authentication(api_client):
    resp = api_client.post("/api/checkout", {}, format="json")
    assert resp.status_code == 401
    assert "message" in resp.json()


@pytest.mark.skipif(
    not connection.features.has_select_for_update, reason="backend has no row locking"
)
def test_concurrent_checkouts_never_oversell(make_product):
    product = make_product(name="Hot item", stock=3)
    buyers = [get_user_model().objects.create_user(f"b{i}@test.com", "pw") for i in range(5)]
    for buyer in buyers:
        CartItem.objects.create(user=buyer, product=product, quantity=1)

    outcomes = []
    barrier = threading.Barrier(len(buyers))

    def run(buyer):
        try:
            barrier.wait()
            checkout(user=buyer)
            outcomes.append("ok")
        except StockInsufficientError:
            outcomes.append("short")
        finally:
            connection.close()

    threads = [threading.Thread(target=run, args=(b,)) for b in buyers]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    product.refresh_from_db()
    assert outcomes.count("ok") == 3
    assert outcomes.count("short") == 2
    assert product.stock == 0
    assert StockLog.objects.filter(product=product).count() == 3
