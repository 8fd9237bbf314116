import logging

from django.db import transaction

from agrishop.exceptions import NotFoundError

from .models import Order

logger = logging.getLogger(__name__)


def list_orders(status=None):
    qs = Order.objects.select_related("user", "shipping_address").order_by("-created_at", "-id")
    if status:
        qs = qs.filter(status=status)
    return qs


def get_order(order_id):
    order = Order.objects.select_related("user", "shipping_address").filter(pk=order_id).first()
    if order is None:
        raise NotFoundError("Order not found")
    return order


def order_lines(order):
    return order.items.select_related("product", "product__category").order_by("id")


@transaction.atomic
def set_order_status(*, order_id, status) -> Order:
    # any status may follow any other; only the value itself is checked
    order = Order.objects.select_for_update().filter(pk=order_id).first()
    if order is None:
        raise NotFoundError("Order not found")
    previous = order.status
    order.status = status
    order.save(update_fields=["status", "updated_at"])
    logger.info("order %s status %s -> %s", order.pk, previous, status)
    return order
