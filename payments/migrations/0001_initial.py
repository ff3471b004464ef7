from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="MercadoPagoConfig",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("is_active", models.BooleanField(default=True)),
                ("access_token", models.CharField(max_length=255)),
                ("api_base_url", models.URLField(blank=True, default="")),
                ("timeout_seconds", models.PositiveSmallIntegerField(default=5)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "verbose_name": "Mercado Pago config",
                "verbose_name_plural": "Mercado Pago config",
                "ordering": ["-id"],
            },
        ),
    ]
