from decimal import Decimal

import pytest
from django.contrib.auth import get_user_model
from rest_framework.test import APIClient

from shop.models import Category, Product
from users.tokens import issue_token


@pytest.fixture(autouse=True)
def _fast_hashing(settings):
    settings.PASSWORD_HASHERS = ["django.contrib.auth.hashers.MD5PasswordHasher"]


@pytest.fixture
def media_root(settings, tmp_path):
    settings.MEDIA_ROOT = str(tmp_path)
    return tmp_path


@pytest.fixture
def user(db):
    return get_user_model().objects.create_user("u@test.com", "pw123456", name="Test User", is_verified=True)


@pytest.fixture
def admin(db):
    return get_user_model().objects.create_superuser("admin@test.com", "pw123456", name="Admin")


@pytest.fixture
def api_client():
    return APIClient()


@pytest.fixture
def client_for(api_client):
    def _login(account):
        api_client.credentials(HTTP_AUTHORIZATION=f"Bearer {issue_token(account)}")
        return api_client

    return _login


@pytest.fixture
def category(db):
    return Category.objects.create(name="Seeds")


@pytest.fixture
def make_product(db):
    def _make(name="Tomato seeds", price="10.00", stock=5, **extra):
        return Product.objects.create(name=name, price=Decimal(price), stock=stock, **extra)

    return _make
