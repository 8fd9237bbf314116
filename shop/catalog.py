import logging

from django.db import transaction

from agrishop.exceptions import NotFoundError

from .models import Category, Product
from .services import apply_stock
from .uploads import discard_stored_image

logger = logging.getLogger(__name__)

INITIAL_STOCK_REASON = "Initial stock"
PRODUCT_UPDATE_REASON = "Product update"

PRODUCT_FIELDS = ("name", "description", "price", "category", "image_url")


def get_product(product_id):
    product = Product.objects.select_related("category").filter(pk=product_id).first()
    if product is None:
        raise NotFoundError("Product not found")
    return product


@transaction.atomic
def create_product(*, data, actor=None) -> Product:
    fields = {k: v for k, v in data.items() if k in PRODUCT_FIELDS}
    product = Product.objects.create(stock=0, **fields)
    stock = data.get("stock") or 0
    if stock:
        # initial stock goes through the audited path like any other change
        apply_stock(product, stock, reason=INITIAL_STOCK_REASON, actor=actor)
    logger.info("product %s created by %s", product.pk, getattr(actor, "pk", None))
    return product


@transaction.atomic
def update_product(*, product_id, data, actor=None) -> Product:
    product = Product.objects.select_for_update().filter(pk=product_id).first()
    if product is None:
        raise NotFoundError("Product not found")

    old_image = product.image_url
    for field in PRODUCT_FIELDS:
        if field in data:
            setattr(product, field, data[field])
    product.save()

    if "stock" in data and data["stock"] != product.stock:
        apply_stock(product, data["stock"], reason=PRODUCT_UPDATE_REASON, actor=actor)

    if old_image and product.image_url != old_image:
        transaction.on_commit(lambda: discard_stored_image(old_image))
    return product


@transaction.atomic
def delete_product(*, product_id):
    product = Product.objects.select_for_update().filter(pk=product_id).first()
    if product is None:
        raise NotFoundError("Product not found")
    image = product.image_url
    # stock logs, cart rows, favorites and wishlist rows cascade; order items protect
    product.delete()
    if image:
        transaction.on_commit(lambda: discard_stored_image(image))
    logger.info("product %s deleted", product_id)


def get_category(category_id):
    category = Category.objects.filter(pk=category_id).first()
    if category is None:
        raise NotFoundError("Category not found")
    return category


def update_category(*, category_id, data) -> Category:
    category = get_category(category_id)
    for field, value in data.items():
        setattr(category, field, value)
    category.save()
    return category


def delete_category(*, category_id):
    deleted, _ = Category.objects.filter(pk=category_id).delete()
    if not deleted:
        raise NotFoundError("Category not found")
