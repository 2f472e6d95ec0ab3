from django.urls import path

from . import views

app_name = "orders"
urlpatterns = [
    path("order", views.order_view, name="order"),
    path("orders/approve", views.approve_view, name="approve"),
    path("orders/pending", views.pending_orders_view, name="pending"),
    path("orders/<str:order_id>/payment-status", views.payment_status_view, name="payment_status"),
    path("orders/<str:order_id>/status", views.order_status_view, name="status"),
    path("orders/<str:order_id>/update-payment-method", views.update_payment_method_view, name="update_payment_method"),
    path("promo/validate", views.promo_validate_view, name="promo_validate"),
    path("promo", views.promo_list_view, name="promo_list"),
]
