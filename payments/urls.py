from django.urls import path

from . import views

app_name = "payments"
urlpatterns = [
    path("payments", views.payments_view, name="payments"),
    path("payments/<str:transaction_id>/status", views.transaction_status_view, name="transaction_status"),
    path("payments/<str:transaction_id>/proof", views.transaction_proof_view, name="transaction_proof"),
    path("upload/proof", views.upload_proof_view, name="upload_proof"),
]
