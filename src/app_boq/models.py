"""Модели BOQ (app_boq).

Что хранится в модуле:
- BOQItem — строка ведомости объёмов работ: работа, материал, субработа или
  субматериал. Цена, валюта, условия доставки и коэффициенты материала.
- WorkMaterialLink — связь «работа → материал» внутри одной позиции заказчика.
  Материал может быть привязан не более чем к одной работе (OneToOne), связь
  хранит снапшот коэффициентов расхода и перевода.

Производные значения (объём материала, стоимость строки, итоги позиции)
в БД не хранятся, кроме кешированных итогов ClientPosition.
"""

from decimal import Decimal

from django.core.exceptions import ValidationError
from django.core.validators import MinValueValidator
from django.db import models
from django.utils.translation import gettext_lazy as _


class BOQItem(models.Model):
    class ItemType(models.TextChoices):
        WORK = "work", _("Работа")
        MATERIAL = "material", _("Материал")
        SUB_WORK = "sub_work", _("Субработа")
        SUB_MATERIAL = "sub_material", _("Субматериал")

    class Currency(models.TextChoices):
        RUB = "RUB", _("Рубль")
        USD = "USD", _("Доллар")
        EUR = "EUR", _("Евро")
        CNY = "CNY", _("Юань")

    class DeliveryPriceType(models.TextChoices):
        INCLUDED = "included", _("Доставка включена")
        NOT_INCLUDED = "not_included", _("Доставка не включена (+3%)")
        FIXED_AMOUNT = "fixed_amount", _("Фиксированная сумма доставки")

    WORK_TYPES = (ItemType.WORK, ItemType.SUB_WORK)
    MATERIAL_TYPES = (ItemType.MATERIAL, ItemType.SUB_MATERIAL)

    client_position = models.ForeignKey(
        "app_tenders.ClientPosition",
        verbose_name=_("Позиция заказчика"),
        on_delete=models.CASCADE,
        related_name="boq_items",
    )
    item_type = models.CharField(
        _("Тип строки"),
        max_length=16,
        choices=ItemType.choices,
        db_index=True,
    )
    item_number = models.CharField(
        _("Номер строки"),
        max_length=32,
        blank=True,
        default="",
        help_text=_("Формат «<номер позиции>.<подномер>», например 3.2."),
    )
    sub_number = models.PositiveIntegerField(_("Подномер"), default=0)
    sort_order = models.PositiveIntegerField(_("Порядок"), default=0, db_index=True)

    description = models.CharField(_("Наименование"), max_length=500)
    unit = models.CharField(_("Ед. изм."), max_length=32, blank=True, default="")
    material_ref = models.CharField(
        _("Код материала в справочнике"),
        max_length=64,
        blank=True,
        default="",
        db_index=True,
        help_text=_("Строки с одинаковым кодом считаются одним и тем же материалом."),
    )

    quantity = models.DecimalField(
        _("Количество"),
        max_digits=18,
        decimal_places=4,
        default=Decimal("0"),
        validators=[MinValueValidator(Decimal("0"))],
    )
    unit_rate = models.DecimalField(
        _("Цена за единицу"),
        max_digits=16,
        decimal_places=2,
        default=Decimal("0"),
        validators=[MinValueValidator(Decimal("0"))],
    )
    currency_type = models.CharField(
        _("Валюта"),
        max_length=3,
        choices=Currency.choices,
        default=Currency.RUB,
    )
    currency_rate = models.DecimalField(
        _("Курс валюты"),
        max_digits=12,
        decimal_places=4,
        null=True,
        blank=True,
        help_text=_("Обязателен для любой валюты, кроме рубля."),
    )

    consumption_coefficient = models.DecimalField(
        _("Коэффициент расхода"),
        max_digits=18,
        decimal_places=8,
        null=True,
        blank=True,
        help_text=_("Единиц материала на единицу работы (не меньше 1)."),
    )
    conversion_coefficient = models.DecimalField(
        _("Коэффициент перевода"),
        max_digits=18,
        decimal_places=8,
        null=True,
        blank=True,
        help_text=_("Перевод единицы измерения материала в единицы работы."),
    )
    delivery_price_type = models.CharField(
        _("Доставка"),
        max_length=16,
        choices=DeliveryPriceType.choices,
        default=DeliveryPriceType.INCLUDED,
    )
    delivery_amount = models.DecimalField(
        _("Сумма доставки за единицу"),
        max_digits=16,
        decimal_places=2,
        null=True,
        blank=True,
    )

    detail_cost_category = models.ForeignKey(
        "app_cost_categories.DetailCostCategory",
        verbose_name=_("Категория затрат"),
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="boq_items",
    )
    note = models.TextField(_("Примечание"), blank=True, default="")

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = _("Строка BOQ")
        verbose_name_plural = _("Строки BOQ")
        ordering = ["sort_order", "sub_number", "id"]
        indexes = [
            models.Index(fields=["client_position", "item_type"], name="boq_item_position_type_idx")
        ]

    def __str__(self) -> str:
        return f"{self.item_number or '—'} {self.description}"

    @property
    def is_work(self) -> bool:
        return self.item_type in self.WORK_TYPES

    @property
    def is_material(self) -> bool:
        return self.item_type in self.MATERIAL_TYPES

    def clean(self):
        super().clean()

        from app_boq.calculators import validate_item_pricing
        from app_boq.exceptions import BOQEngineError

        try:
            validate_item_pricing(self)
        except BOQEngineError as e:
            raise ValidationError(e.message)


class WorkMaterialLink(models.Model):
    """
    Связь работы и материала внутри позиции.

    material_quantity_per_work / usage_coefficient — снапшот коэффициентов
    расхода и перевода; используются, если у самой строки материала
    коэффициенты не заданы.
    """

    client_position = models.ForeignKey(
        "app_tenders.ClientPosition",
        verbose_name=_("Позиция заказчика"),
        on_delete=models.CASCADE,
        related_name="work_material_links",
    )
    work_item = models.ForeignKey(
        BOQItem,
        verbose_name=_("Работа"),
        on_delete=models.CASCADE,
        related_name="material_links",
    )
    material_item = models.OneToOneField(
        BOQItem,
        verbose_name=_("Материал"),
        on_delete=models.CASCADE,
        related_name="work_link",
    )
    material_quantity_per_work = models.DecimalField(
        _("Расход на единицу работы"),
        max_digits=18,
        decimal_places=8,
        null=True,
        blank=True,
        default=Decimal("1"),
    )
    usage_coefficient = models.DecimalField(
        _("Коэффициент перевода"),
        max_digits=18,
        decimal_places=8,
        null=True,
        blank=True,
        default=Decimal("1"),
    )
    order = models.PositiveIntegerField(_("Порядок"), default=0, db_index=True)
    notes = models.TextField(_("Заметки"), blank=True, default="")
    version = models.PositiveIntegerField(
        _("Версия"),
        default=1,
        help_text=_("Растёт при каждом сохранении связи"),
    )

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = _("Связь работа → материал")
        verbose_name_plural = _("Связи работа → материал")
        ordering = ["order", "id"]
        indexes = [
            models.Index(fields=["client_position", "work_item"], name="boq_link_position_work_idx")
        ]

    def __str__(self) -> str:
        return f"{self.work_item.description} → {self.material_item.description}"

    def save(self, *args, **kwargs):
        """Каждое сохранение существующей связи увеличивает версию."""
        if self.pk:
            self.version = (self.version or 0) + 1
            update_fields = kwargs.get("update_fields")
            if update_fields is not None:
                kwargs["update_fields"] = [*update_fields, "version"]
        super().save(*args, **kwargs)
