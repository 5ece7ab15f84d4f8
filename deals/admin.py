from django.contrib import admin

from .models import Deal, DealItem, Product


@admin.register(Product)
class ProductAdmin(admin.ModelAdmin):
    list_display = ("sku", "name", "price", "is_active")
    search_fields = ("sku", "name")
    list_filter = ("is_active",)


class DealItemInline(admin.TabularInline):
    model = DealItem
    extra = 0
    autocomplete_fields = ["product"]


@admin.register(Deal)
class DealAdmin(admin.ModelAdmin):
    list_display = ("title", "contact", "owner", "value", "quotation_number")
    search_fields = ("title", "quotation_number")
    filter_horizontal = ("team_members",)
    inlines = [DealItemInline]
