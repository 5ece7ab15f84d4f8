from django.contrib import admin

from .models import AuditLog, CompanyProfile, NumberSequence


@admin.register(CompanyProfile)
class CompanyProfileAdmin(admin.ModelAdmin):
    list_display = ("name", "tax_id", "phone")


@admin.register(NumberSequence)
class NumberSequenceAdmin(admin.ModelAdmin):
    list_display = ("key", "period", "last_value")
    list_filter = ("key",)


@admin.register(AuditLog)
class AuditLogAdmin(admin.ModelAdmin):
    list_display = ("created_at", "action", "actor", "message")
    list_filter = ("action",)
    search_fields = ("message",)
