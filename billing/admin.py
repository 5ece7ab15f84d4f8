from django.contrib import admin

from .models import Invoice, InvoiceItem, Receipt


class InvoiceItemInline(admin.TabularInline):
    model = InvoiceItem
    extra = 0


@admin.register(Invoice)
class InvoiceAdmin(admin.ModelAdmin):
    list_display = ("invoice_number", "customer_name", "date", "status", "grand_total")
    list_filter = ("status",)
    search_fields = ("invoice_number", "customer_name")
    readonly_fields = ("invoice_number", "confirmed_at")
    inlines = [InvoiceItemInline]


@admin.register(Receipt)
class ReceiptAdmin(admin.ModelAdmin):
    list_display = ("receipt_number", "customer_name", "date", "status", "net_total")
    list_filter = ("status",)
    search_fields = ("receipt_number", "customer_name")
    readonly_fields = ("receipt_number", "confirmed_at")
