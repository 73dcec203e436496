"""Модели тендеров и позиций заказчика (app_tenders).

Что хранится в модуле:
- Tender — тендер с курсами валют, по которым пересчитываются цены BOQ.
- ClientPosition — строка заказчика в тендере. Хранит кешированные итоги
  (работы / материалы / всего), которые движок обновляет после каждого
  успешного изменения позиций BOQ и связей.
"""

from decimal import Decimal

from django.core.validators import MinValueValidator
from django.db import models
from django.utils.translation import gettext_lazy as _


class Tender(models.Model):
    title = models.CharField(
        _("Название тендера"),
        max_length=255,
        db_index=True,
    )
    client_name = models.CharField(
        _("Заказчик"),
        max_length=255,
        blank=True,
        default="",
    )
    tender_number = models.CharField(
        _("Номер тендера"),
        max_length=64,
        blank=True,
        default="",
    )
    usd_rate = models.DecimalField(
        _("Курс USD"),
        max_digits=12,
        decimal_places=4,
        null=True,
        blank=True,
        validators=[MinValueValidator(Decimal("0.0001"))],
        help_text=_("Рублей за 1 USD. Пусто — курс не задан."),
    )
    eur_rate = models.DecimalField(
        _("Курс EUR"),
        max_digits=12,
        decimal_places=4,
        null=True,
        blank=True,
        validators=[MinValueValidator(Decimal("0.0001"))],
    )
    cny_rate = models.DecimalField(
        _("Курс CNY"),
        max_digits=12,
        decimal_places=4,
        null=True,
        blank=True,
        validators=[MinValueValidator(Decimal("0.0001"))],
    )
    created_at = models.DateTimeField(_("Создан"), auto_now_add=True)

    class Meta:
        verbose_name = _("Тендер")
        verbose_name_plural = _("Тендеры")
        ordering = ["-created_at", "id"]

    def __str__(self) -> str:
        return self.title

    def rate_for(self, currency: str) -> Decimal | None:
        """Курс тендера для валюты; None — если курс не задан или валюта неизвестна."""
        return {
            "USD": self.usd_rate,
            "EUR": self.eur_rate,
            "CNY": self.cny_rate,
        }.get((currency or "").upper())


class ClientPosition(models.Model):
    tender = models.ForeignKey(
        Tender,
        verbose_name=_("Тендер"),
        on_delete=models.CASCADE,
        related_name="positions",
    )
    position_number = models.PositiveIntegerField(
        _("Номер позиции"),
        default=1,
        db_index=True,
    )
    item_no = models.CharField(
        _("Номер по ведомости заказчика"),
        max_length=64,
        blank=True,
        default="",
    )
    work_name = models.CharField(
        _("Наименование работ заказчика"),
        max_length=500,
    )
    unit = models.CharField(
        _("Ед. изм."),
        max_length=32,
        blank=True,
        default="",
    )
    volume = models.DecimalField(
        _("Объём заказчика"),
        max_digits=16,
        decimal_places=4,
        null=True,
        blank=True,
    )
    manual_volume = models.DecimalField(
        _("Объём ГП"),
        max_digits=16,
        decimal_places=4,
        null=True,
        blank=True,
        help_text=_("Объём, принятый генподрядчиком (если отличается от объёма заказчика)."),
    )

    # Кешированные итоги (проекция, пересчитывается движком)
    total_works_cost = models.DecimalField(
        _("Итого работы"),
        max_digits=18,
        decimal_places=2,
        default=Decimal("0.00"),
    )
    total_materials_cost = models.DecimalField(
        _("Итого материалы"),
        max_digits=18,
        decimal_places=2,
        default=Decimal("0.00"),
    )
    total_position_cost = models.DecimalField(
        _("Итого по позиции"),
        max_digits=18,
        decimal_places=2,
        default=Decimal("0.00"),
    )
    totals_refreshed_at = models.DateTimeField(
        _("Итоги пересчитаны"),
        null=True,
        blank=True,
    )

    class Meta:
        verbose_name = _("Позиция заказчика")
        verbose_name_plural = _("Позиции заказчика")
        ordering = ["position_number", "id"]
        indexes = [
            models.Index(fields=["tender", "position_number"], name="tender_position_number_idx")
        ]

    def __str__(self) -> str:
        return f"{self.position_number}. {self.work_name}"
