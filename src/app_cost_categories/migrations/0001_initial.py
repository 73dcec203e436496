import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="CostCategory",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(max_length=255, unique=True, verbose_name="Категория затрат")),
                ("sort_order", models.PositiveIntegerField(default=0, verbose_name="Порядок")),
            ],
            options={
                "verbose_name": "Категория затрат",
                "verbose_name_plural": "Категории затрат",
                "ordering": ["sort_order", "name"],
            },
        ),
        migrations.CreateModel(
            name="Location",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(max_length=255, unique=True, verbose_name="Локализация")),
                ("sort_order", models.PositiveIntegerField(default=0, verbose_name="Порядок")),
            ],
            options={
                "verbose_name": "Локализация",
                "verbose_name_plural": "Локализации",
                "ordering": ["sort_order", "name"],
            },
        ),
        migrations.CreateModel(
            name="DetailCostCategory",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(max_length=255, verbose_name="Детальная статья")),
                (
                    "cost_category",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="details",
                        to="app_cost_categories.costcategory",
                        verbose_name="Категория затрат",
                    ),
                ),
                (
                    "location",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="details",
                        to="app_cost_categories.location",
                        verbose_name="Локализация",
                    ),
                ),
            ],
            options={
                "verbose_name": "Детальная статья затрат",
                "verbose_name_plural": "Детальные статьи затрат",
                "ordering": ["cost_category__sort_order", "name", "id"],
            },
        ),
    ]
