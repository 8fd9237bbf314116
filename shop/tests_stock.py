import pytest

from agrishop.exceptions import NotFoundError

from .exceptions import InvalidStockError
from .models import Product, StockLog
from .services import StockUpdate, batch_update_stock, classify_change, stock_history, update_stock
from .signals import low_stock

pytestmark = pytest.mark.django_db(transaction=True)


def test_classify_change():
    assert classify_change(5, 8) == (3, StockLog.ChangeType.INCREASE)
    assert classify_change(8, 5) == (3, StockLog.ChangeType.DECREASE)
    # unchanged stock is still recorded, as an increase of zero
    assert classify_change(4, 4) == (0, StockLog.ChangeType.INCREASE)


def test_update_stock_writes_one_log(admin, make_product):
    p = make_product(stock=20)

    update_stock(product_id=p.pk, new_stock=12, reason="recount", actor=admin)

    p.refresh_from_db()
    assert p.stock == 12
    log = StockLog.objects.get(product=p)
    assert (log.previous_stock, log.new_stock, log.change_amount) == (20, 12, 8)
    assert log.change_type == StockLog.ChangeType.DECREASE
    assert log.reason == "recount"
    assert log.updated_by == admin


def test_update_stock_accepts_zero(admin, make_product):
    p = make_product(stock=3)
    update_stock(product_id=p.pk, new_stock=0, actor=admin)
    p.refresh_from_db()
    assert p.stock == 0


def test_update_stock_rejects_negative_and_unknown(admin, make_product):
    p = make_product(stock=3)
    with pytest.raises(InvalidStockError):
        update_stock(product_id=p.pk, new_stock=-1, actor=admin)
    with pytest.raises(NotFoundError):
        update_stock(product_id=p.pk + 100, new_stock=1, actor=admin)
    assert StockLog.objects.count() == 0


def test_low_stock_signal_fires_after_commit(admin, make_product):
    p = make_product(stock=50)
    received = []

    def handler(sender, **kwargs):
        received.append(kwargs)

    low_stock.connect(handler)
    try:
        update_stock(product_id=p.pk, new_stock=20, actor=admin)
        update_stock(product_id=p.pk, new_stock=4, actor=admin)
    finally:
        low_stock.disconnect(handler)

    assert len(received) == 1
    assert received[0]["product_id"] == p.pk
    assert received[0]["stock"] == 4


def test_batch_update_applies_all(admin, make_product):
    a = make_product(name="A", stock=1)
    b = make_product(name="B", stock=2)

    updated = batch_update_stock(
        updates=[StockUpdate(a.pk, 10, "delivery"), StockUpdate(b.pk, 0)], actor=admin
    )

    assert [p.pk for p in updated] == [a.pk, b.pk]
    assert Product.objects.get(pk=a.pk).stock == 10
    assert Product.objects.get(pk=b.pk).stock == 0
    assert StockLog.objects.count() == 2


def test_batch_with_one_negative_entry_changes_nothing(admin, make_product):
    products = [make_product(name=n, stock=5) for n in "ABCD"]
    updates = [StockUpdate(p.pk, 7) for p in products]
    updates[2] = StockUpdate(products[2].pk, -3)

    with pytest.raises(InvalidStockError) as excinfo:
        batch_update_stock(updates=updates, actor=admin)

    assert excinfo.value.extra["productId"] == products[2].pk
    assert all(p.stock == 5 for p in Product.objects.all())
    assert StockLog.objects.count() == 0


def test_batch_with_unknown_product_changes_nothing(admin, make_product):
    a = make_product(stock=5)

    with pytest.raises(NotFoundError):
        batch_update_stock(updates=[StockUpdate(a.pk, 9), StockUpdate(a.pk + 99, 1)], actor=admin)

    a.refresh_from_db()
    assert a.stock == 5
    assert StockLog.objects.count() == 0


def test_stock_history_newest_first(admin, make_product):
    p = make_product(stock=1)
    update_stock(product_id=p.pk, new_stock=5, actor=admin)
    update_stock(product_id=p.pk, new_stock=2, actor=admin)

    history = list(stock_history(p.pk))

    assert [h.new_stock for h in history] == [2, 5]
    with pytest.raises(NotFoundError):
        stock_history(p.pk + 1)


def test_stock_endpoints(admin, user, make_product, client_for):
    p = make_product(name="Mulch", stock=30)
    client = client_for(admin)

    resp = client.put(f"/api/admin/products/{p.pk}/stock", {"stock": 25, "reason": "damaged"}, format="json")
    assert resp.status_code == 200
    assert resp.json()["message"] == "Stock updated successfully"
    assert resp.json()["stock"] == 25

    resp = client.post(
        "/api/admin/products/stock/batch", {"updates": [{"id": p.pk, "stock": 40}]}, format="json"
    )
    assert resp.status_code == 200
    assert resp.json()[0]["stock"] == 40

    resp = client.get(f"/api/admin/products/{p.pk}/stock-history")
    assert resp.status_code == 200
    rows = resp.json()
    assert [r["new_stock"] for r in rows] == [40, 25]
    assert rows[0]["updated_by_name"] == "Admin"
    assert rows[0]["product_name"] == "Mulch"

    assert client.get(f"/api/products/{p.pk}/stock").json() == {"id": p.pk, "name": "Mulch", "stock": 40}


def test_stock_endpoint_validation(admin, make_product, client_for):
    p = make_product(stock=3)
    client = client_for(admin)

    resp = client.put(f"/api/admin/products/{p.pk}/stock", {"stock": -2}, format="json")
    assert resp.status_code == 400
    assert "Valid stock quantity is required" in resp.json()["message"]

    resp = client.post("/api/admin/products/stock/batch", {"updates": []}, format="json")
    assert resp.status_code == 400

    resp = client.post(
        "/api/admin/products/stock/batch", {"updates": [{"id": p.pk, "stock": -1}]}, format="json"
    )
    assert resp.status_code == 400
    assert resp.json()["productId"] == p.pk


def test_stock_endpoints_require_admin(user, make_product, client_for):
    p = make_product(stock=3)
    resp = client_for(user).put(f"/api/admin/products/{p.pk}/stock", {"stock": 1}, format="json")
    assert resp.status_code == 403
    assert resp.json()["message"] == "Access denied. Admin privileges required."
