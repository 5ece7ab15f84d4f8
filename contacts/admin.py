from django.contrib import admin

from .models import Contact


@admin.register(Contact)
class ContactAdmin(admin.ModelAdmin):
    list_display = ("display_name", "kind", "phone", "email", "is_active")
    list_filter = ("kind", "is_active")
    search_fields = ("company_name", "first_name", "last_name", "email")
