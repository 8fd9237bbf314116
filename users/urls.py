from django.urls import path

from . import views

urlpatterns = [
    path("register/send-otp", views.register_send_otp),
    path("register/verify-otp", views.register_verify_otp),
    path("login/password", views.login_password),
    path("login/send-otp", views.login_send_otp),
    path("login/verify-otp", views.login_verify_otp),
    path("forgot-password/send-otp", views.forgot_password_send_otp),
    path("forgot-password/verify-otp", views.forgot_password_verify_otp),
    path("forgot-password/reset", views.forgot_password_reset),
    path("auth/google", views.google_sign_in),
    path("user/set-password", views.set_password),
    path("user/profile", views.profile),
    path("addresses", views.addresses),
    path("addresses/<int:address_id>", views.address_detail),
    path("addresses/<int:address_id>/set-default", views.address_set_default),
    path("admin/users", views.admin_users),
    path("admin/users/<int:user_id>", views.admin_user_detail),
    path("admin/users/<int:user_id>/cart", views.admin_user_cart),
    path("admin/users/<int:user_id>/favorites", views.admin_user_favorites),
    path("admin/users/<int:user_id>/wishlist", views.admin_user_wishlist),
]
