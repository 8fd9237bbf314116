import pytest

pytestmark = pytest.mark.django_db


@pytest.mark.parametrize("path, key", [("favorites", "favorite_id"), ("wishlist", "wishlist_id")])
def test_saved_products_flow(path, key, user, category, make_product, client_for):
    p = make_product(name="Hoe", category=category)
    client = client_for(user)

    resp = client.post(f"/api/{path}", {"productId": p.pk}, format="json")
    assert resp.status_code == 201

    resp = client.post(f"/api/{path}", {"productId": p.pk}, format="json")
    assert resp.status_code == 409
    assert resp.json()["message"] == f"Product already in {path}"

    rows = client.get(f"/api/{path}").json()
    assert len(rows) == 1
    assert rows[0]["id"] == p.pk
    assert rows[0]["category_name"] == "Seeds"
    assert key in rows[0]

    assert client.delete(f"/api/{path}/{p.pk}").status_code == 200
    resp = client.delete(f"/api/{path}/{p.pk}")
    assert resp.status_code == 404
    assert resp.json()["message"] == f"Product not found in {path}"


@pytest.mark.parametrize("path", ["favorites", "wishlist"])
def test_saving_unknown_product(path, user, client_for):
    resp = client_for(user).post(f"/api/{path}", {"productId": 999}, format="json")
    assert resp.status_code == 404
