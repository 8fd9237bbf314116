from decimal import Decimal

import pytest
from django.core.files.uploadedfile import SimpleUploadedFile

from .catalog import INITIAL_STOCK_REASON, PRODUCT_UPDATE_REASON
from .models import CartItem, Category, Order, OrderItem, Product, StockLog

pytestmark = pytest.mark.django_db(transaction=True)


def test_public_product_listing(category, make_product, api_client):
    make_product(name="Old", category=category)
    make_product(name="New")

    rows = api_client.get("/api/products").json()

    assert [r["name"] for r in rows] == ["New", "Old"]
    assert rows[1]["category_name"] == "Seeds"
    assert rows[0]["category_name"] is None
    assert api_client.get("/api/products/999").status_code == 404


def test_create_product_logs_initial_stock(admin, category, client_for):
    resp = client_for(admin).post(
        "/api/admin/products",
        {"name": "Rake", "price": "15.00", "stock": 12, "category_id": category.pk},
        format="json",
    )

    assert resp.status_code == 201
    product = Product.objects.get(pk=resp.json()["id"])
    assert product.stock == 12
    log = StockLog.objects.get(product=product)
    assert (log.previous_stock, log.new_stock, log.reason) == (0, 12, INITIAL_STOCK_REASON)
    assert log.updated_by == admin


def test_create_product_validation(admin, client_for):
    client = client_for(admin)
    assert client.post("/api/products", {"price": "1.00"}, format="json").status_code == 400
    assert client.post("/api/products", {"name": "X", "price": "-1"}, format="json").status_code == 400
    resp = client.post("/api/products", {"name": "X", "price": "1", "category_id": 999}, format="json")
    assert resp.status_code == 400


def test_product_writes_require_admin(user, client_for, api_client):
    payload = {"name": "X", "price": "1.00"}
    assert api_client.post("/api/products", payload, format="json").status_code == 401
    assert client_for(user).post("/api/products", payload, format="json").status_code == 403
    assert client_for(user).get("/api/admin/products").status_code == 403


def test_update_product_routes_stock_through_the_log(admin, make_product, client_for):
    p = make_product(name="Hose", price="20.00", stock=3)

    resp = client_for(admin).put(
        f"/api/admin/products/{p.pk}", {"name": "Hose 20m", "price": "22.00", "stock": 8}, format="json"
    )

    assert resp.status_code == 200
    p.refresh_from_db()
    assert (p.name, p.price, p.stock) == ("Hose 20m", Decimal("22.00"), 8)
    log = StockLog.objects.get(product=p)
    assert (log.previous_stock, log.new_stock, log.change_amount) == (3, 8, 5)
    assert log.reason == PRODUCT_UPDATE_REASON


def test_update_without_stock_change_writes_no_log(admin, make_product, client_for):
    p = make_product(stock=3)
    client_for(admin).put(f"/api/products/{p.pk}", {"name": "Renamed", "price": "1.00"}, format="json")
    assert StockLog.objects.count() == 0


def test_delete_product_cascades_and_protects_orders(admin, user, make_product, client_for):
    loose = make_product(name="Loose")
    CartItem.objects.create(user=user, product=loose, quantity=1)
    sold = make_product(name="Sold")
    order = Order.objects.create(user=user, total_amount=Decimal("10.00"))
    OrderItem.objects.create(order=order, product=sold, quantity=1, price_at_time=Decimal("10.00"))
    client = client_for(admin)

    assert client.delete(f"/api/admin/products/{loose.pk}").status_code == 200
    assert not CartItem.objects.exists()

    resp = client.delete(f"/api/admin/products/{sold.pk}")
    assert resp.status_code == 409
    assert Product.objects.filter(pk=sold.pk).exists()


def test_categories(admin, make_product, client_for, api_client):
    client = client_for(admin)
    resp = client.post("/api/categories", {"name": "Tools"}, format="json")
    assert resp.status_code == 201
    category_id = resp.json()["id"]
    p = make_product(category=Category.objects.get(pk=category_id))

    detail = api_client.get(f"/api/categories/{category_id}").json()
    assert [x["id"] for x in detail["products"]] == [p.pk]

    resp = client.put(f"/api/categories/{category_id}", {"description": "Garden tools"}, format="json")
    assert resp.json()["description"] == "Garden tools"

    assert client.delete(f"/api/categories/{category_id}").status_code == 200
    p.refresh_from_db()
    assert p.category is None
    assert api_client.get(f"/api/categories/{category_id}").status_code == 404
    assert [c["name"] for c in client.get("/api/admin/categories").json()] == []


def test_upload_image(admin, media_root, client_for):
    client = client_for(admin)
    image = SimpleUploadedFile("leaf.png", b"\x89PNG\r\n\x1a\nfake", content_type="image/png")

    resp = client.post("/api/upload-image", {"image": image}, format="multipart")

    assert resp.status_code == 200
    body = resp.json()
    assert body["url"].startswith("/uploads/image-")
    assert (media_root / body["filename"]).exists()


def test_upload_rejects_other_types(admin, media_root, client_for):
    client = client_for(admin)
    doc = SimpleUploadedFile("notes.txt", b"hello", content_type="text/plain")

    resp = client.post("/api/upload-image", {"image": doc}, format="multipart")

    assert resp.status_code == 400
    assert resp.json()["details"] == "Only JPEG, PNG and GIF files are allowed!"
    assert client.post("/api/upload-image", {}, format="multipart").json()["message"] == "No file uploaded"


def test_replacing_image_removes_old_file(admin, media_root, make_product, client_for):
    (media_root / "image-old.png").write_bytes(b"old")
    p = make_product(image_url="/uploads/image-old.png")

    client_for(admin).put(
        f"/api/admin/products/{p.pk}",
        {"name": p.name, "price": "10.00", "image_url": "/uploads/image-new.png"},
        format="json",
    )

    assert not (media_root / "image-old.png").exists()
