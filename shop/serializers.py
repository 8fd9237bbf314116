from rest_framework import serializers

from users.serializers import AddressSerializer

from .models import CartItem, Category, Order, OrderItem, Product, StockLog


class CategorySerializer(serializers.ModelSerializer):
    class Meta:
        model = Category
        fields = ["id", "name", "description", "image_url", "created_at"]
        extra_kwargs = {"description": {"required": False}}


class ProductSerializer(serializers.ModelSerializer):
    category_id = serializers.PrimaryKeyRelatedField(
        source="category", queryset=Category.objects.all(), allow_null=True, required=False
    )
    category_name = serializers.CharField(source="category.name", read_only=True, default=None)

    class Meta:
        model = Product
        fields = [
            "id",
            "name",
            "description",
            "price",
            "category_id",
            "category_name",
            "stock",
            "image_url",
            "created_at",
            "updated_at",
        ]
        extra_kwargs = {"description": {"required": False}, "stock": {"required": False}}


class CategoryDetailSerializer(CategorySerializer):
    products = ProductSerializer(many=True, read_only=True)

    class Meta(CategorySerializer.Meta):
        fields = CategorySerializer.Meta.fields + ["products"]


class ProductStockSerializer(serializers.ModelSerializer):
    class Meta:
        model = Product
        fields = ["id", "name", "stock"]


# cart


class CartLineSerializer(serializers.ModelSerializer):
    cart_item_id = serializers.IntegerField(source="id")
    product_id = serializers.IntegerField()
    name = serializers.CharField(source="product.name")
    description = serializers.CharField(source="product.description")
    price = serializers.DecimalField(source="product.price", max_digits=12, decimal_places=2)
    image_url = serializers.CharField(source="product.image_url")
    stock = serializers.IntegerField(source="product.stock")
    category_name = serializers.CharField(source="product.category.name", default=None)

    class Meta:
        model = CartItem
        fields = [
            "cart_item_id",
            "quantity",
            "product_id",
            "name",
            "description",
            "price",
            "image_url",
            "stock",
            "category_name",
            "created_at",
        ]
        read_only_fields = fields


class CartItemSerializer(serializers.ModelSerializer):
    class Meta:
        model = CartItem
        fields = ["id", "user_id", "product_id", "quantity", "created_at"]
        read_only_fields = fields


class AddToCartSerializer(serializers.Serializer):
    productId = serializers.IntegerField()
    quantity = serializers.IntegerField(min_value=1, default=1)


class CartQuantitySerializer(serializers.Serializer):
    # range is checked against live stock in the service
    quantity = serializers.IntegerField()


class ProductIdSerializer(serializers.Serializer):
    productId = serializers.IntegerField()


class SavedProductSerializer(serializers.Serializer):
    """Favorite or wishlist row flattened with its product."""

    id = serializers.IntegerField(source="product.id")
    name = serializers.CharField(source="product.name")
    description = serializers.CharField(source="product.description")
    price = serializers.DecimalField(source="product.price", max_digits=12, decimal_places=2)
    stock = serializers.IntegerField(source="product.stock")
    image_url = serializers.CharField(source="product.image_url")
    category_name = serializers.CharField(source="product.category.name", default=None)
    created_at = serializers.DateTimeField()


class FavoriteSerializer(SavedProductSerializer):
    favorite_id = serializers.IntegerField(source="pk")


class WishlistSerializer(SavedProductSerializer):
    wishlist_id = serializers.IntegerField(source="pk")


# checkout / orders


class CheckoutSerializer(serializers.Serializer):
    shippingAddressId = serializers.IntegerField(required=False, allow_null=True)


class OrderLineSerializer(serializers.ModelSerializer):
    order_id = serializers.IntegerField()
    total_amount = serializers.DecimalField(source="order.total_amount", max_digits=12, decimal_places=2)
    status = serializers.CharField(source="order.status")
    created_at = serializers.DateTimeField(source="order.created_at")
    product_id = serializers.IntegerField()
    product_name = serializers.CharField(source="product.name")
    image_url = serializers.CharField(source="product.image_url")
    category_name = serializers.CharField(source="product.category.name", default=None)

    class Meta:
        model = OrderItem
        fields = [
            "order_id",
            "total_amount",
            "status",
            "created_at",
            "product_id",
            "quantity",
            "price_at_time",
            "product_name",
            "image_url",
            "category_name",
        ]
        read_only_fields = fields


class OrderItemDetailSerializer(serializers.ModelSerializer):
    product_id = serializers.IntegerField()
    product_name = serializers.CharField(source="product.name")
    image_url = serializers.CharField(source="product.image_url")

    class Meta:
        model = OrderItem
        fields = ["id", "order_id", "product_id", "quantity", "price_at_time", "product_name", "image_url"]
        read_only_fields = fields


class OrderSerializer(serializers.ModelSerializer):
    user_id = serializers.IntegerField()
    user_name = serializers.CharField(source="user.name")
    user_email = serializers.EmailField(source="user.email")
    shipping_address = AddressSerializer(read_only=True)

    class Meta:
        model = Order
        fields = [
            "id",
            "user_id",
            "user_name",
            "user_email",
            "total_amount",
            "status",
            "shipping_address",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class OrderStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(
        choices=Order.Status.choices, error_messages={"invalid_choice": "Invalid status"}
    )


# stock


class StockUpdateSerializer(serializers.Serializer):
    stock = serializers.IntegerField(min_value=0, error_messages={"min_value": "Valid stock quantity is required"})
    reason = serializers.CharField(required=False, allow_blank=True, allow_null=True, max_length=255)


class BatchStockEntrySerializer(serializers.Serializer):
    # negative values are rejected by the service so the error names the product
    id = serializers.IntegerField()
    stock = serializers.IntegerField()
    reason = serializers.CharField(required=False, allow_blank=True, allow_null=True, max_length=255)


class BatchStockSerializer(serializers.Serializer):
    updates = BatchStockEntrySerializer(many=True)

    def validate_updates(self, updates):
        if not updates:
            raise serializers.ValidationError("At least one item is required.")
        return updates


class StockLogSerializer(serializers.ModelSerializer):
    product_id = serializers.IntegerField()
    product_name = serializers.CharField(source="product.name")
    updated_by = serializers.IntegerField(source="updated_by_id")
    updated_by_name = serializers.CharField(source="updated_by.name", default=None)

    class Meta:
        model = StockLog
        fields = [
            "id",
            "product_id",
            "product_name",
            "previous_stock",
            "new_stock",
            "change_amount",
            "change_type",
            "reason",
            "updated_by",
            "updated_by_name",
            "created_at",
        ]
        read_only_fields = fields
