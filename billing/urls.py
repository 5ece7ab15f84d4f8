# billing/urls.py
from django.urls import path

from . import api

app_name = "billing"

urlpatterns = [
    # Invoices
    path("deals/<int:pk>/invoice", api.deal_invoice_create, name="deal_invoice_create"),
    path("invoices/<int:pk>", api.invoice_detail, name="invoice_detail"),
    path("invoices/<int:pk>/sync-items", api.invoice_sync_items, name="invoice_sync_items"),
    path("invoices/<int:pk>/confirm", api.invoice_confirm, name="invoice_confirm"),
    path("invoices/<int:pk>/receipt", api.invoice_receipt_create, name="invoice_receipt_create"),

    # Receipts
    path("receipts/<int:pk>", api.receipt_detail, name="receipt_detail"),
    path("receipts/<int:pk>/confirm", api.receipt_confirm, name="receipt_confirm"),
]
