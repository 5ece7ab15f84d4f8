import django.db.models.deletion
import django.utils.timezone
from decimal import Decimal
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("contacts", "0001_initial"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Product",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("created_at", models.DateTimeField(default=django.utils.timezone.now, editable=False, verbose_name="Created at")),
                ("updated_at", models.DateTimeField(auto_now=True, verbose_name="Updated at")),
                ("sku", models.CharField(max_length=50, unique=True, verbose_name="SKU")),
                ("name", models.CharField(max_length=255, verbose_name="Product name")),
                ("description", models.TextField(blank=True, verbose_name="Description")),
                ("price", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=14, verbose_name="Default price")),
                ("is_active", models.BooleanField(default=True, verbose_name="Active")),
            ],
            options={
                "verbose_name": "Product",
                "verbose_name_plural": "Products",
                "ordering": ("sku",),
            },
        ),
        migrations.CreateModel(
            name="Deal",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("created_at", models.DateTimeField(default=django.utils.timezone.now, editable=False, verbose_name="Created at")),
                ("updated_at", models.DateTimeField(auto_now=True, verbose_name="Updated at")),
                ("title", models.CharField(max_length=255, verbose_name="Title")),
                ("value", models.DecimalField(decimal_places=2, default=Decimal("0.00"), help_text="Used as the subtotal when the deal has no line items.", max_digits=14, verbose_name="Deal value")),
                ("notes", models.TextField(blank=True, verbose_name="Notes")),
                ("credit_term", models.PositiveIntegerField(blank=True, null=True, verbose_name="Credit term (days)")),
                ("quotation_number", models.CharField(blank=True, max_length=20, null=True, unique=True, verbose_name="Quotation number")),
                ("quotation_date", models.DateField(blank=True, null=True, verbose_name="Quotation date")),
                ("valid_until", models.DateField(blank=True, null=True, verbose_name="Valid until")),
                ("quotation_customer_name", models.CharField(blank=True, max_length=255, verbose_name="Customer name")),
                ("quotation_customer_address", models.TextField(blank=True, verbose_name="Customer address")),
                ("quotation_customer_tax_id", models.CharField(blank=True, max_length=50, verbose_name="Customer tax ID")),
                ("quotation_customer_phone", models.CharField(blank=True, max_length=50, verbose_name="Customer phone")),
                ("quotation_customer_email", models.EmailField(blank=True, max_length=254, verbose_name="Customer email")),
                ("quotation_discount", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=14, verbose_name="Special discount")),
                ("quotation_vat_rate", models.DecimalField(decimal_places=2, default=Decimal("7.00"), max_digits=5, verbose_name="VAT rate (%)")),
                ("quotation_wht_rate", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=5, verbose_name="Withholding tax rate (%)")),
                ("quotation_terms", models.TextField(blank=True, verbose_name="Terms")),
                ("contact", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="deals", to="contacts.contact", verbose_name="Contact")),
                ("owner", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="owned_deals", to=settings.AUTH_USER_MODEL, verbose_name="Owner")),
                ("team_members", models.ManyToManyField(blank=True, related_name="team_deals", to=settings.AUTH_USER_MODEL, verbose_name="Sales team")),
            ],
            options={
                "verbose_name": "Deal",
                "verbose_name_plural": "Deals",
                "ordering": ("-created_at", "-id"),
            },
        ),
        migrations.CreateModel(
            name="DealItem",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(blank=True, max_length=255, verbose_name="Item name")),
                ("description", models.TextField(blank=True, verbose_name="Description")),
                ("quantity", models.PositiveIntegerField(default=1, verbose_name="Quantity")),
                ("price", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=14, verbose_name="Unit price")),
                ("discount", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=14, verbose_name="Line discount")),
                ("position", models.PositiveIntegerField(default=0, verbose_name="Position")),
                ("deal", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="items", to="deals.deal", verbose_name="Deal")),
                ("product", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="deal_items", to="deals.product", verbose_name="Product")),
            ],
            options={
                "verbose_name": "Deal item",
                "verbose_name_plural": "Deal items",
                "ordering": ("position", "id"),
            },
        ),
    ]
