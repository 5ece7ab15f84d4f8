# deals/urls.py
from django.urls import path

from . import api

app_name = "deals"

urlpatterns = [
    path("deals/<int:pk>/quotation", api.deal_quotation, name="deal_quotation"),
]
