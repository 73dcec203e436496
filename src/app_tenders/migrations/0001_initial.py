from decimal import Decimal

import django.core.validators
import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="Tender",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("title", models.CharField(db_index=True, max_length=255, verbose_name="Название тендера")),
                ("client_name", models.CharField(blank=True, default="", max_length=255, verbose_name="Заказчик")),
                ("tender_number", models.CharField(blank=True, default="", max_length=64, verbose_name="Номер тендера")),
                (
                    "usd_rate",
                    models.DecimalField(
                        blank=True,
                        decimal_places=4,
                        help_text="Рублей за 1 USD. Пусто — курс не задан.",
                        max_digits=12,
                        null=True,
                        validators=[django.core.validators.MinValueValidator(Decimal("0.0001"))],
                        verbose_name="Курс USD",
                    ),
                ),
                (
                    "eur_rate",
                    models.DecimalField(
                        blank=True,
                        decimal_places=4,
                        max_digits=12,
                        null=True,
                        validators=[django.core.validators.MinValueValidator(Decimal("0.0001"))],
                        verbose_name="Курс EUR",
                    ),
                ),
                (
                    "cny_rate",
                    models.DecimalField(
                        blank=True,
                        decimal_places=4,
                        max_digits=12,
                        null=True,
                        validators=[django.core.validators.MinValueValidator(Decimal("0.0001"))],
                        verbose_name="Курс CNY",
                    ),
                ),
                ("created_at", models.DateTimeField(auto_now_add=True, verbose_name="Создан")),
            ],
            options={
                "verbose_name": "Тендер",
                "verbose_name_plural": "Тендеры",
                "ordering": ["-created_at", "id"],
            },
        ),
        migrations.CreateModel(
            name="ClientPosition",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("position_number", models.PositiveIntegerField(db_index=True, default=1, verbose_name="Номер позиции")),
                ("item_no", models.CharField(blank=True, default="", max_length=64, verbose_name="Номер по ведомости заказчика")),
                ("work_name", models.CharField(max_length=500, verbose_name="Наименование работ заказчика")),
                ("unit", models.CharField(blank=True, default="", max_length=32, verbose_name="Ед. изм.")),
                ("volume", models.DecimalField(blank=True, decimal_places=4, max_digits=16, null=True, verbose_name="Объём заказчика")),
                (
                    "manual_volume",
                    models.DecimalField(
                        blank=True,
                        decimal_places=4,
                        help_text="Объём, принятый генподрядчиком (если отличается от объёма заказчика).",
                        max_digits=16,
                        null=True,
                        verbose_name="Объём ГП",
                    ),
                ),
                ("total_works_cost", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=18, verbose_name="Итого работы")),
                ("total_materials_cost", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=18, verbose_name="Итого материалы")),
                ("total_position_cost", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=18, verbose_name="Итого по позиции")),
                ("totals_refreshed_at", models.DateTimeField(blank=True, null=True, verbose_name="Итоги пересчитаны")),
                (
                    "tender",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="positions",
                        to="app_tenders.tender",
                        verbose_name="Тендер",
                    ),
                ),
            ],
            options={
                "verbose_name": "Позиция заказчика",
                "verbose_name_plural": "Позиции заказчика",
                "ordering": ["position_number", "id"],
                "indexes": [models.Index(fields=["tender", "position_number"], name="tender_position_number_idx")],
            },
        ),
    ]
