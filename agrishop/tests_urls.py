import pytest
from django.test import Client

from users.tokens import issue_token

pytestmark = pytest.mark.django_db(transaction=True)


def test_public_route_resolves_through_the_full_stack(make_product):
    make_product(name="Spade")

    resp = Client().get("/api/products")

    assert resp.status_code == 200
    assert [row["name"] for row in resp.json()] == ["Spade"]


def test_bearer_route_and_error_body(user):
    client = Client()

    assert client.get("/api/user/profile").json() == {"message": "Authentication credentials were not provided."}

    resp = client.get("/api/user/profile", HTTP_AUTHORIZATION=f"Bearer {issue_token(user)}")
    assert resp.status_code == 200
    assert resp.json()["email"] == user.email
