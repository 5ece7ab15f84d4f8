from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="Contact",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("kind", models.CharField(choices=[("person", "Person"), ("company", "Company")], default="person", max_length=20, verbose_name="Contact type")),
                ("first_name", models.CharField(blank=True, max_length=150, verbose_name="First name")),
                ("last_name", models.CharField(blank=True, max_length=150, verbose_name="Last name")),
                ("company_name", models.CharField(blank=True, help_text="Billed name when the contact represents a company.", max_length=255, verbose_name="Company name")),
                ("address", models.TextField(blank=True, verbose_name="Address")),
                ("tax_number", models.CharField(blank=True, max_length=50, verbose_name="Tax ID")),
                ("phone", models.CharField(blank=True, max_length=50, verbose_name="Phone")),
                ("email", models.EmailField(blank=True, max_length=254, verbose_name="Email")),
                ("is_active", models.BooleanField(default=True, verbose_name="Active")),
                ("created_at", models.DateTimeField(auto_now_add=True, verbose_name="Created at")),
            ],
            options={
                "verbose_name": "Contact",
                "verbose_name_plural": "Contacts",
                "ordering": ("company_name", "last_name", "first_name", "id"),
            },
        ),
    ]
