from decimal import Decimal

from django.db import IntegrityError, transaction
from django.db.models import F

from agrishop.exceptions import ConflictError, NotFoundError

from .exceptions import InsufficientStockError
from .models import CartItem, Favorite, Product, WishlistItem


def cart_lines(user):
    return (
        CartItem.objects.filter(user=user)
        .select_related("product", "product__category")
        .order_by("-created_at", "-id")
    )


def cart_total(lines) -> Decimal:
    # lines whose product is out of stock stay in the cart but are not billed
    return sum(
        (line.product.price * line.quantity for line in lines if line.product.stock > 0),
        Decimal("0.00"),
    )


@transaction.atomic
def add_to_cart(*, user, product_id: int, quantity: int = 1):
    """Insert or increment the (user, product) row. Returns ``(item, created)``."""
    # row lock holds off a concurrent product delete until the insert lands
    if Product.objects.select_for_update().filter(pk=product_id).first() is None:
        raise NotFoundError("Product not found")
    try:
        item, created = CartItem.objects.select_for_update().get_or_create(
            user=user, product_id=product_id, defaults={"quantity": quantity}
        )
    except IntegrityError as exc:
        raise NotFoundError("Product not found") from exc
    if not created:
        CartItem.objects.filter(pk=item.pk).update(quantity=F("quantity") + quantity)
        item.refresh_from_db(fields=["quantity"])
    return item, created


@transaction.atomic
def update_quantity(*, user, item_id: int, quantity: int) -> CartItem:
    item = CartItem.objects.select_for_update().select_related("product").filter(pk=item_id, user=user).first()
    if item is None:
        raise NotFoundError("Cart item not found")
    if quantity < 1 or quantity > item.product.stock:
        raise InsufficientStockError()
    item.quantity = quantity
    item.save(update_fields=["quantity"])
    return item


def remove_item(*, user, item_id: int):
    deleted, _ = CartItem.objects.filter(pk=item_id, user=user).delete()
    if not deleted:
        raise NotFoundError("Cart item not found")


def clear_cart(*, user) -> int:
    deleted, _ = CartItem.objects.filter(user=user).delete()
    return deleted


def _save_product(model, *, user, product_id, label):
    if not Product.objects.filter(pk=product_id).exists():
        raise NotFoundError("Product not found")
    entry, created = model.objects.get_or_create(user=user, product_id=product_id)
    if not created:
        raise ConflictError(f"Product already in {label}")
    return entry


def _unsave_product(model, *, user, product_id, label):
    deleted, _ = model.objects.filter(user=user, product_id=product_id).delete()
    if not deleted:
        raise NotFoundError(f"Product not found in {label}")


def saved_products(model, user):
    return model.objects.filter(user=user).select_related("product", "product__category").order_by("-created_at", "-id")


def add_favorite(*, user, product_id):
    return _save_product(Favorite, user=user, product_id=product_id, label="favorites")


def remove_favorite(*, user, product_id):
    _unsave_product(Favorite, user=user, product_id=product_id, label="favorites")


def add_to_wishlist(*, user, product_id):
    return _save_product(WishlistItem, user=user, product_id=product_id, label="wishlist")


def remove_from_wishlist(*, user, product_id):
    _unsave_product(WishlistItem, user=user, product_id=product_id, label="wishlist")
