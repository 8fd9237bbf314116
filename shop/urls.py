from django.urls import path

from . import views

urlpatterns = [
    path("products", views.products),
    path("products/<int:product_id>", views.product_detail),
    path("products/<int:product_id>/stock", views.product_stock),
    path("categories", views.categories),
    path("categories/<int:category_id>", views.category_detail),
    path("upload-image", views.upload_image),
    path("cart", views.cart_view),
    path("cart/<int:item_id>", views.cart_item),
    path("checkout", views.checkout),
    path("favorites", views.favorites),
    path("favorites/<int:product_id>", views.favorite_detail),
    path("wishlist", views.wishlist),
    path("wishlist/<int:product_id>", views.wishlist_detail),
    # admin
    path("admin/products", views.admin_products),
    path("admin/products/stock/batch", views.admin_batch_stock),
    path("admin/products/<int:product_id>", views.admin_product_detail),
    path("admin/products/<int:product_id>/stock", views.admin_update_stock),
    path("admin/products/<int:product_id>/stock-history", views.admin_stock_history),
    path("admin/categories", views.admin_categories),
    path("admin/orders", views.admin_orders),
    path("admin/orders/<int:order_id>", views.admin_order_detail),
    path("admin/orders/<int:order_id>/status", views.admin_order_status),
]
