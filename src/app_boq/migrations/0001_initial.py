from decimal import Decimal

import django.core.validators
import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("app_cost_categories", "0001_initial"),
        ("app_tenders", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="BOQItem",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                (
                    "item_type",
                    models.CharField(
                        choices=[
                            ("work", "Работа"),
                            ("material", "Материал"),
                            ("sub_work", "Субработа"),
                            ("sub_material", "Субматериал"),
                        ],
                        db_index=True,
                        max_length=16,
                        verbose_name="Тип строки",
                    ),
                ),
                (
                    "item_number",
                    models.CharField(
                        blank=True,
                        default="",
                        help_text="Формат «<номер позиции>.<подномер>», например 3.2.",
                        max_length=32,
                        verbose_name="Номер строки",
                    ),
                ),
                ("sub_number", models.PositiveIntegerField(default=0, verbose_name="Подномер")),
                ("sort_order", models.PositiveIntegerField(db_index=True, default=0, verbose_name="Порядок")),
                ("description", models.CharField(max_length=500, verbose_name="Наименование")),
                ("unit", models.CharField(blank=True, default="", max_length=32, verbose_name="Ед. изм.")),
                (
                    "material_ref",
                    models.CharField(
                        blank=True,
                        db_index=True,
                        default="",
                        help_text="Строки с одинаковым кодом считаются одним и тем же материалом.",
                        max_length=64,
                        verbose_name="Код материала в справочнике",
                    ),
                ),
                (
                    "quantity",
                    models.DecimalField(
                        decimal_places=4,
                        default=Decimal("0"),
                        max_digits=18,
                        validators=[django.core.validators.MinValueValidator(Decimal("0"))],
                        verbose_name="Количество",
                    ),
                ),
                (
                    "unit_rate",
                    models.DecimalField(
                        decimal_places=2,
                        default=Decimal("0"),
                        max_digits=16,
                        validators=[django.core.validators.MinValueValidator(Decimal("0"))],
                        verbose_name="Цена за единицу",
                    ),
                ),
                (
                    "currency_type",
                    models.CharField(
                        choices=[("RUB", "Рубль"), ("USD", "Доллар"), ("EUR", "Евро"), ("CNY", "Юань")],
                        default="RUB",
                        max_length=3,
                        verbose_name="Валюта",
                    ),
                ),
                (
                    "currency_rate",
                    models.DecimalField(
                        blank=True,
                        decimal_places=4,
                        help_text="Обязателен для любой валюты, кроме рубля.",
                        max_digits=12,
                        null=True,
                        verbose_name="Курс валюты",
                    ),
                ),
                (
                    "consumption_coefficient",
                    models.DecimalField(
                        blank=True,
                        decimal_places=8,
                        help_text="Единиц материала на единицу работы (не меньше 1).",
                        max_digits=18,
                        null=True,
                        verbose_name="Коэффициент расхода",
                    ),
                ),
                (
                    "conversion_coefficient",
                    models.DecimalField(
                        blank=True,
                        decimal_places=8,
                        help_text="Перевод единицы измерения материала в единицы работы.",
                        max_digits=18,
                        null=True,
                        verbose_name="Коэффициент перевода",
                    ),
                ),
                (
                    "delivery_price_type",
                    models.CharField(
                        choices=[
                            ("included", "Доставка включена"),
                            ("not_included", "Доставка не включена (+3%)"),
                            ("fixed_amount", "Фиксированная сумма доставки"),
                        ],
                        default="included",
                        max_length=16,
                        verbose_name="Доставка",
                    ),
                ),
                (
                    "delivery_amount",
                    models.DecimalField(
                        blank=True,
                        decimal_places=2,
                        max_digits=16,
                        null=True,
                        verbose_name="Сумма доставки за единицу",
                    ),
                ),
                ("note", models.TextField(blank=True, default="", verbose_name="Примечание")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "client_position",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="boq_items",
                        to="app_tenders.clientposition",
                        verbose_name="Позиция заказчика",
                    ),
                ),
                (
                    "detail_cost_category",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="boq_items",
                        to="app_cost_categories.detailcostcategory",
                        verbose_name="Категория затрат",
                    ),
                ),
            ],
            options={
                "verbose_name": "Строка BOQ",
                "verbose_name_plural": "Строки BOQ",
                "ordering": ["sort_order", "sub_number", "id"],
                "indexes": [
                    models.Index(fields=["client_position", "item_type"], name="boq_item_position_type_idx")
                ],
            },
        ),
        migrations.CreateModel(
            name="WorkMaterialLink",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                (
                    "material_quantity_per_work",
                    models.DecimalField(
                        blank=True,
                        decimal_places=8,
                        default=Decimal("1"),
                        max_digits=18,
                        null=True,
                        verbose_name="Расход на единицу работы",
                    ),
                ),
                (
                    "usage_coefficient",
                    models.DecimalField(
                        blank=True,
                        decimal_places=8,
                        default=Decimal("1"),
                        max_digits=18,
                        null=True,
                        verbose_name="Коэффициент перевода",
                    ),
                ),
                ("order", models.PositiveIntegerField(db_index=True, default=0, verbose_name="Порядок")),
                ("notes", models.TextField(blank=True, default="", verbose_name="Заметки")),
                (
                    "version",
                    models.PositiveIntegerField(
                        default=1,
                        help_text="Растёт при каждом сохранении связи",
                        verbose_name="Версия",
                    ),
                ),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "client_position",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="work_material_links",
                        to="app_tenders.clientposition",
                        verbose_name="Позиция заказчика",
                    ),
                ),
                (
                    "material_item",
                    models.OneToOneField(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="work_link",
                        to="app_boq.boqitem",
                        verbose_name="Материал",
                    ),
                ),
                (
                    "work_item",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="material_links",
                        to="app_boq.boqitem",
                        verbose_name="Работа",
                    ),
                ),
            ],
            options={
                "verbose_name": "Связь работа → материал",
                "verbose_name_plural": "Связи работа → материал",
                "ordering": ["order", "id"],
                "indexes": [
                    models.Index(fields=["client_position", "work_item"], name="boq_link_position_work_idx")
                ],
            },
        ),
    ]
