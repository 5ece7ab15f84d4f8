import django.db.models.deletion
import django.utils.timezone
from decimal import Decimal
from django.conf import settings
from django.db import migrations, models


def snapshot_fields():
    return [
        ("company_name", models.CharField(blank=True, max_length=255, verbose_name="Company name")),
        ("company_address", models.TextField(blank=True, verbose_name="Company address")),
        ("company_tax_id", models.CharField(blank=True, max_length=50, verbose_name="Company tax ID")),
        ("company_phone", models.CharField(blank=True, max_length=50, verbose_name="Company phone")),
        ("customer_name", models.CharField(blank=True, max_length=255, verbose_name="Customer name")),
        ("customer_address", models.TextField(blank=True, verbose_name="Customer address")),
        ("customer_tax_id", models.CharField(blank=True, max_length=50, verbose_name="Customer tax ID")),
        ("customer_phone", models.CharField(blank=True, max_length=50, verbose_name="Customer phone")),
        ("customer_email", models.CharField(blank=True, max_length=254, verbose_name="Customer email")),
        ("notes", models.TextField(blank=True, verbose_name="Notes")),
    ]


def money(verbose_name):
    return models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=14, verbose_name=verbose_name)


def stamps(model_name):
    return [
        ("created_at", models.DateTimeField(default=django.utils.timezone.now, editable=False, verbose_name="Created at")),
        ("updated_at", models.DateTimeField(auto_now=True, verbose_name="Updated at")),
        ("created_by", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name=f"billing_{model_name}_created", to=settings.AUTH_USER_MODEL, verbose_name="Created by")),
        ("updated_by", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name=f"billing_{model_name}_updated", to=settings.AUTH_USER_MODEL, verbose_name="Updated by")),
    ]


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("deals", "0001_initial"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Invoice",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                *stamps("invoice"),
                *snapshot_fields(),
                ("invoice_number", models.CharField(editable=False, max_length=20, unique=True, verbose_name="Invoice number")),
                ("date", models.DateField(default=django.utils.timezone.localdate, verbose_name="Invoice date")),
                ("due_date", models.DateField(blank=True, null=True, verbose_name="Due date")),
                ("status", models.CharField(choices=[("DRAFT", "Draft"), ("SENT", "Sent"), ("PAID", "Paid")], db_index=True, default="DRAFT", max_length=10, verbose_name="Status")),
                ("confirmed_at", models.DateTimeField(blank=True, null=True, verbose_name="Confirmed at")),
                ("deal", models.OneToOneField(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="invoice", to="deals.deal", verbose_name="Deal")),
                ("subtotal", money("Subtotal")),
                ("item_discount", money("Item discounts")),
                ("global_discount", money("Special discount")),
                ("total_discount", money("Total discount")),
                ("after_discount", money("Amount after discount")),
                ("vat_rate", models.DecimalField(decimal_places=2, default=Decimal("7.00"), max_digits=5, verbose_name="VAT rate (%)")),
                ("vat_amount", money("VAT amount")),
                ("grand_total", money("Grand total")),
                ("wht_rate", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=5, verbose_name="Withholding tax rate (%)")),
                ("wht_amount", money("Withholding tax amount")),
                ("net_total", money("Net total")),
            ],
            options={
                "verbose_name": "Invoice",
                "verbose_name_plural": "Invoices",
                "ordering": ("-date", "-id"),
            },
        ),
        migrations.CreateModel(
            name="InvoiceItem",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("position", models.PositiveIntegerField(default=0, verbose_name="Position")),
                ("sku", models.CharField(blank=True, max_length=50, verbose_name="SKU")),
                ("name", models.CharField(max_length=255, verbose_name="Item name")),
                ("description", models.TextField(blank=True, verbose_name="Product description")),
                ("quantity", models.PositiveIntegerField(default=1, verbose_name="Quantity")),
                ("unit_price", money("Unit price")),
                ("discount", money("Line discount")),
                ("amount", money("Amount")),
                ("invoice", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="items", to="billing.invoice", verbose_name="Invoice")),
            ],
            options={
                "verbose_name": "Invoice item",
                "verbose_name_plural": "Invoice items",
                "ordering": ("position", "id"),
            },
        ),
        migrations.CreateModel(
            name="Receipt",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                *stamps("receipt"),
                *snapshot_fields(),
                ("receipt_number", models.CharField(editable=False, max_length=20, unique=True, verbose_name="Receipt number")),
                ("date", models.DateField(default=django.utils.timezone.localdate, verbose_name="Receipt date")),
                ("status", models.CharField(choices=[("DRAFT", "Draft"), ("ISSUED", "Issued")], db_index=True, default="DRAFT", max_length=10, verbose_name="Status")),
                ("confirmed_at", models.DateTimeField(blank=True, null=True, verbose_name="Confirmed at")),
                ("invoice", models.OneToOneField(on_delete=django.db.models.deletion.PROTECT, related_name="receipt", to="billing.invoice", verbose_name="Invoice")),
                ("payment_method", models.CharField(blank=True, max_length=100, verbose_name="Payment method")),
                ("payment_date", models.DateField(blank=True, null=True, verbose_name="Payment date")),
                ("grand_total", money("Grand total")),
                ("wht_amount", money("Withholding tax amount")),
                ("net_total", money("Net total")),
            ],
            options={
                "verbose_name": "Receipt",
                "verbose_name_plural": "Receipts",
                "ordering": ("-date", "-id"),
            },
        ),
    ]
