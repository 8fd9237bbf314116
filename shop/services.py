"""Checkout and stock engine.

Every function that touches ``Product.stock`` runs inside one atomic block
that also writes the matching ``StockLog`` rows; a failure anywhere rolls the
whole block back.
"""
import logging
from dataclasses import dataclass
from decimal import Decimal
from functools import partial
from typing import Iterable, List, Optional

from django.conf import settings
from django.db import transaction
from django.db.models import F
from django.utils import timezone

from agrishop.exceptions import NotFoundError
from users.models import Address

from .exceptions import CartEmptyError, InvalidStockError, StockInsufficientError
from .models import CartItem, Order, OrderItem, Product, StockLog
from .signals import low_stock

logger = logging.getLogger(__name__)

CHECKOUT_REASON = "Order checkout"


@dataclass(frozen=True)
class StockIssue:
    product_id: int
    product_name: str
    requested_quantity: int
    available_stock: int

    def as_dict(self):
        return {
            "productId": self.product_id,
            "productName": self.product_name,
            "requestedQuantity": self.requested_quantity,
            "availableStock": self.available_stock,
            "message": f"Sorry, only {self.available_stock} left in stock for {self.product_name}",
        }


@dataclass(frozen=True)
class StockUpdate:
    product_id: int
    new_stock: int
    reason: Optional[str] = None


def classify_change(previous: int, new: int):
    """Return ``(change_amount, change_type)``; a zero delta counts as an increase."""
    delta = new - previous
    change_type = StockLog.ChangeType.INCREASE if delta >= 0 else StockLog.ChangeType.DECREASE
    return abs(delta), change_type


def log_stock_change(*, product: Product, previous: int, new: int, reason: Optional[str], actor) -> StockLog:
    change_amount, change_type = classify_change(previous, new)
    return StockLog.objects.create(
        product=product,
        previous_stock=previous,
        new_stock=new,
        change_amount=change_amount,
        change_type=change_type,
        reason=reason or None,
        updated_by=actor,
    )


def _emit_low_stock(product_id: int, product_name: str, stock: int):
    logger.warning("low stock: product %s (%s) has %s left", product_id, product_name, stock)
    low_stock.send(sender=Product, product_id=product_id, product_name=product_name, stock=stock)


def apply_stock(product: Product, new_stock: int, *, reason: Optional[str], actor) -> StockLog:
    """Set an absolute stock value on a locked product and audit it.

    Must be called inside ``transaction.atomic`` with ``product`` fetched via
    ``select_for_update``.
    """
    if new_stock < 0:
        raise InvalidStockError(extra={"productId": product.pk})
    previous = product.stock
    product.stock = new_stock
    product.save(update_fields=["stock", "updated_at"])
    entry = log_stock_change(product=product, previous=previous, new=new_stock, reason=reason, actor=actor)
    if new_stock < settings.LOW_STOCK_THRESHOLD:
        transaction.on_commit(partial(_emit_low_stock, product.pk, product.name, new_stock))
    return entry


def _lock_products(product_ids: Iterable[int]):
    # fixed lock order so concurrent transactions cannot deadlock each other
    ids = sorted(set(product_ids))
    return {p.pk: p for p in Product.objects.select_for_update().filter(pk__in=ids).order_by("pk")}


@transaction.atomic
def checkout(*, user, shipping_address_id: Optional[int] = None) -> Order:
    lines = list(CartItem.objects.filter(user=user).order_by("product_id"))
    if not lines:
        raise CartEmptyError()

    address = None
    if shipping_address_id is not None:
        address = Address.objects.filter(pk=shipping_address_id, user=user).first()
        if address is None:
            raise NotFoundError("Shipping address not found or does not belong to user.")

    products = _lock_products(line.product_id for line in lines)

    issues = [
        StockIssue(
            product_id=line.product_id,
            product_name=products[line.product_id].name,
            requested_quantity=line.quantity,
            available_stock=products[line.product_id].stock,
        )
        for line in lines
        if products[line.product_id].stock < line.quantity
    ]
    if issues:
        raise StockInsufficientError(issues)

    total = sum((products[line.product_id].price * line.quantity for line in lines), Decimal("0.00"))
    order = Order.objects.create(
        user=user, total_amount=total, shipping_address=address, status=Order.Status.PENDING
    )

    order_items = []
    for line in lines:
        product = products[line.product_id]
        previous = product.stock
        # conditional decrement; a zero row count means the check above was beaten
        updated = Product.objects.filter(pk=product.pk, stock__gte=line.quantity).update(
            stock=F("stock") - line.quantity, updated_at=timezone.now()
        )
        if updated != 1:
            product.refresh_from_db(fields=["stock"])
            raise StockInsufficientError(
                [StockIssue(product.pk, product.name, line.quantity, product.stock)]
            )
        order_items.append(
            OrderItem(order=order, product=product, quantity=line.quantity, price_at_time=product.price)
        )
        log_stock_change(
            product=product,
            previous=previous,
            new=previous - line.quantity,
            reason=CHECKOUT_REASON,
            actor=user,
        )

    OrderItem.objects.bulk_create(order_items)
    CartItem.objects.filter(user=user).delete()

    transaction.on_commit(
        lambda: logger.info("order %s placed by user %s, total %s", order.pk, user.pk, total)
    )
    return order


@transaction.atomic
def update_stock(*, product_id: int, new_stock: int, reason: Optional[str] = None, actor=None) -> Product:
    if new_stock is None or new_stock < 0:
        raise InvalidStockError()
    product = Product.objects.select_for_update().filter(pk=product_id).first()
    if product is None:
        raise NotFoundError("Product not found")
    apply_stock(product, new_stock, reason=reason, actor=actor)
    return product


@transaction.atomic
def batch_update_stock(*, updates: List[StockUpdate], actor=None) -> List[Product]:
    """Apply absolute stock values to several products, all or nothing.

    Every entry is validated against the locked rows before the first write,
    so an invalid entry anywhere in the batch leaves every product untouched.
    """
    products = _lock_products(u.product_id for u in updates)
    for u in updates:
        if u.new_stock < 0:
            raise InvalidStockError(
                f"Invalid stock value for product {u.product_id}", extra={"productId": u.product_id}
            )
        if u.product_id not in products:
            raise NotFoundError(f"Product not found: {u.product_id}", extra={"productId": u.product_id})

    results = []
    for u in updates:
        product = products[u.product_id]
        apply_stock(product, u.new_stock, reason=u.reason, actor=actor)
        results.append(product)
    return results


def stock_history(product_id: int):
    if not Product.objects.filter(pk=product_id).exists():
        raise NotFoundError("Product not found")
    return (
        StockLog.objects.filter(product_id=product_id)
        .select_related("product", "updated_by")
        .order_by("-created_at", "-id")
    )


def stock_level(product_id: int) -> Product:
    product = Product.objects.filter(pk=product_id).only("id", "name", "stock").first()
    if product is None:
        raise NotFoundError("Product not found")
    return product
