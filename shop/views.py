from rest_framework import status
from rest_framework.decorators import api_view, parser_classes, permission_classes
from rest_framework.parsers import MultiPartParser
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from users.permissions import IsAdminOrReadOnly, IsAdminRole

from . import cart, catalog, orders, services
from .models import Category, Favorite, Product, WishlistItem
from .serializers import (
    AddToCartSerializer,
    BatchStockSerializer,
    CartItemSerializer,
    CartLineSerializer,
    CartQuantitySerializer,
    CategoryDetailSerializer,
    CategorySerializer,
    CheckoutSerializer,
    FavoriteSerializer,
    OrderItemDetailSerializer,
    OrderLineSerializer,
    OrderSerializer,
    OrderStatusSerializer,
    ProductIdSerializer,
    ProductSerializer,
    ProductStockSerializer,
    StockLogSerializer,
    StockUpdateSerializer,
    WishlistSerializer,
)
from .uploads import save_uploaded_image


def _validated(serializer_class, request, **kwargs):
    ser = serializer_class(data=request.data, **kwargs)
    ser.is_valid(raise_exception=True)
    return ser.validated_data


def _saved_entry(entry):
    return {"id": entry.pk, "user_id": entry.user_id, "product_id": entry.product_id, "created_at": entry.created_at}


def _list_products():
    qs = Product.objects.select_related("category").order_by("-created_at", "-id")
    return Response(ProductSerializer(qs, many=True).data)


def _create_product(request):
    data = _validated(ProductSerializer, request)
    product = catalog.create_product(data=data, actor=request.user)
    return Response(ProductSerializer(product).data, status=status.HTTP_201_CREATED)


def _change_product(request, product_id):
    if request.method == "DELETE":
        catalog.delete_product(product_id=product_id)
        return Response({"message": "Product deleted successfully"})
    data = _validated(ProductSerializer, request)
    product = catalog.update_product(product_id=product_id, data=data, actor=request.user)
    return Response(ProductSerializer(product).data)


def _list_categories():
    return Response(CategorySerializer(Category.objects.order_by("name"), many=True).data)


def _create_category(request):
    ser = CategorySerializer(data=request.data)
    ser.is_valid(raise_exception=True)
    ser.save()
    return Response(ser.data, status=status.HTTP_201_CREATED)


# catalog


@api_view(["GET", "POST"])
@permission_classes([IsAdminOrReadOnly])
def products(request):
    if request.method == "GET":
        return _list_products()
    return _create_product(request)


@api_view(["GET", "PUT", "DELETE"])
@permission_classes([IsAdminOrReadOnly])
def product_detail(request, product_id):
    if request.method == "GET":
        return Response(ProductSerializer(catalog.get_product(product_id)).data)
    return _change_product(request, product_id)


@api_view(["GET"])
def product_stock(request, product_id):
    return Response(ProductStockSerializer(services.stock_level(product_id)).data)


@api_view(["GET", "POST"])
@permission_classes([IsAdminOrReadOnly])
def categories(request):
    if request.method == "GET":
        return _list_categories()
    return _create_category(request)


@api_view(["GET", "PUT", "DELETE"])
@permission_classes([IsAdminOrReadOnly])
def category_detail(request, category_id):
    if request.method == "GET":
        return Response(CategoryDetailSerializer(catalog.get_category(category_id)).data)
    if request.method == "DELETE":
        catalog.delete_category(category_id=category_id)
        return Response({"message": "Category deleted successfully"})
    data = _validated(CategorySerializer, request, partial=True)
    category = catalog.update_category(category_id=category_id, data=data)
    return Response(CategorySerializer(category).data)


@api_view(["POST"])
@permission_classes([IsAdminRole])
@parser_classes([MultiPartParser])
def upload_image(request):
    url, filename = save_uploaded_image(request.FILES.get("image"))
    return Response({"message": "File uploaded successfully", "url": url, "filename": filename})


# cart


@api_view(["GET", "POST", "DELETE"])
@permission_classes([IsAuthenticated])
def cart_view(request):
    if request.method == "GET":
        lines = list(cart.cart_lines(request.user))
        return Response({"items": CartLineSerializer(lines, many=True).data, "total": str(cart.cart_total(lines))})
    if request.method == "DELETE":
        cart.clear_cart(user=request.user)
        return Response({"message": "Cart cleared successfully"})
    data = _validated(AddToCartSerializer, request)
    item, created = cart.add_to_cart(user=request.user, product_id=data["productId"], quantity=data["quantity"])
    if created:
        body, code = {"message": "Item added to cart"}, status.HTTP_201_CREATED
    else:
        body, code = {"message": "Cart item quantity updated"}, status.HTTP_200_OK
    body["item"] = CartItemSerializer(item).data
    return Response(body, status=code)


@api_view(["PUT", "DELETE"])
@permission_classes([IsAuthenticated])
def cart_item(request, item_id):
    if request.method == "DELETE":
        cart.remove_item(user=request.user, item_id=item_id)
        return Response({"message": "Item removed from cart"})
    data = _validated(CartQuantitySerializer, request)
    item = cart.update_quantity(user=request.user, item_id=item_id, quantity=data["quantity"])
    return Response({"message": "Cart item updated", "item": CartItemSerializer(item).data})


@api_view(["POST"])
@permission_classes([IsAuthenticated])
def checkout(request):
    data = _validated(CheckoutSerializer, request)
    order = services.checkout(user=request.user, shipping_address_id=data.get("shippingAddressId"))
    lines = orders.order_lines(order)
    return Response(
        {
            "message": "Order placed successfully",
            "orderId": order.pk,
            "totalAmount": str(order.total_amount),
            "orderItems": OrderLineSerializer(lines, many=True).data,
        },
        status=status.HTTP_201_CREATED,
    )


# favorites / wishlist


@api_view(["GET", "POST"])
@permission_classes([IsAuthenticated])
def favorites(request):
    if request.method == "GET":
        return Response(FavoriteSerializer(cart.saved_products(Favorite, request.user), many=True).data)
    data = _validated(ProductIdSerializer, request)
    entry = cart.add_favorite(user=request.user, product_id=data["productId"])
    return Response(
        {"message": "Product added to favorites", "favorite": _saved_entry(entry)},
        status=status.HTTP_201_CREATED,
    )


@api_view(["DELETE"])
@permission_classes([IsAuthenticated])
def favorite_detail(request, product_id):
    cart.remove_favorite(user=request.user, product_id=product_id)
    return Response({"message": "Product removed from favorites"})


@api_view(["GET", "POST"])
@permission_classes([IsAuthenticated])
def wishlist(request):
    if request.method == "GET":
        return Response(WishlistSerializer(cart.saved_products(WishlistItem, request.user), many=True).data)
    data = _validated(ProductIdSerializer, request)
    entry = cart.add_to_wishlist(user=request.user, product_id=data["productId"])
    return Response(
        {"message": "Product added to wishlist", "wishlist": _saved_entry(entry)},
        status=status.HTTP_201_CREATED,
    )


@api_view(["DELETE"])
@permission_classes([IsAuthenticated])
def wishlist_detail(request, product_id):
    cart.remove_from_wishlist(user=request.user, product_id=product_id)
    return Response({"message": "Product removed from wishlist"})


# admin: catalog


@api_view(["GET", "POST"])
@permission_classes([IsAdminRole])
def admin_products(request):
    if request.method == "GET":
        return _list_products()
    return _create_product(request)


@api_view(["PUT", "DELETE"])
@permission_classes([IsAdminRole])
def admin_product_detail(request, product_id):
    return _change_product(request, product_id)


@api_view(["GET", "POST"])
@permission_classes([IsAdminRole])
def admin_categories(request):
    if request.method == "GET":
        return _list_categories()
    return _create_category(request)


# admin: stock


@api_view(["PUT"])
@permission_classes([IsAdminRole])
def admin_update_stock(request, product_id):
    data = _validated(StockUpdateSerializer, request)
    product = services.update_stock(
        product_id=product_id, new_stock=data["stock"], reason=data.get("reason"), actor=request.user
    )
    return Response({**ProductSerializer(product).data, "message": "Stock updated successfully"})


@api_view(["POST"])
@permission_classes([IsAdminRole])
def admin_batch_stock(request):
    data = _validated(BatchStockSerializer, request)
    updates = [
        services.StockUpdate(product_id=u["id"], new_stock=u["stock"], reason=u.get("reason"))
        for u in data["updates"]
    ]
    updated = services.batch_update_stock(updates=updates, actor=request.user)
    return Response(ProductSerializer(updated, many=True).data)


@api_view(["GET"])
@permission_classes([IsAdminRole])
def admin_stock_history(request, product_id):
    return Response(StockLogSerializer(services.stock_history(product_id), many=True).data)


# admin: orders


@api_view(["GET"])
@permission_classes([IsAdminRole])
def admin_orders(request):
    qs = orders.list_orders(status=request.query_params.get("status"))
    return Response(OrderSerializer(qs, many=True).data)


@api_view(["GET"])
@permission_classes([IsAdminRole])
def admin_order_detail(request, order_id):
    order = orders.get_order(order_id)
    return Response(
        {
            "order": OrderSerializer(order).data,
            "items": OrderItemDetailSerializer(orders.order_lines(order), many=True).data,
        }
    )


@api_view(["PUT"])
@permission_classes([IsAdminRole])
def admin_order_status(request, order_id):
    data = _validated(OrderStatusSerializer, request)
    order = orders.set_order_status(order_id=order_id, status=data["status"])
    return Response({"message": "Order status updated successfully", "order": OrderSerializer(order).data})
