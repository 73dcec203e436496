"""
Справочник категорий затрат.

CostCategory — верхний уровень («Бетонные работы»), Location — локализация
(«Корпус 1»), DetailCostCategory — детальная статья затрат, на которую
ссылается строка BOQ.
"""

from django.db import models
from django.utils.translation import gettext_lazy as _


class CostCategory(models.Model):
    name = models.CharField(_("Категория затрат"), max_length=255, unique=True)
    sort_order = models.PositiveIntegerField(_("Порядок"), default=0)

    class Meta:
        verbose_name = _("Категория затрат")
        verbose_name_plural = _("Категории затрат")
        ordering = ["sort_order", "name"]

    def __str__(self) -> str:
        return self.name


class Location(models.Model):
    name = models.CharField(_("Локализация"), max_length=255, unique=True)
    sort_order = models.PositiveIntegerField(_("Порядок"), default=0)

    class Meta:
        verbose_name = _("Локализация")
        verbose_name_plural = _("Локализации")
        ordering = ["sort_order", "name"]

    def __str__(self) -> str:
        return self.name


class DetailCostCategory(models.Model):
    cost_category = models.ForeignKey(
        CostCategory,
        verbose_name=_("Категория затрат"),
        on_delete=models.CASCADE,
        related_name="details",
        null=True,
        blank=True,
    )
    location = models.ForeignKey(
        Location,
        verbose_name=_("Локализация"),
        on_delete=models.SET_NULL,
        related_name="details",
        null=True,
        blank=True,
    )
    name = models.CharField(_("Детальная статья"), max_length=255)

    class Meta:
        verbose_name = _("Детальная статья затрат")
        verbose_name_plural = _("Детальные статьи затрат")
        ordering = ["cost_category__sort_order", "name", "id"]

    def __str__(self) -> str:
        return self.name

    @property
    def display_name(self) -> str:
        parts = [
            self.cost_category.name if self.cost_category_id else "",
            self.name,
            self.location.name if self.location_id else "",
        ]
        return " / ".join(p for p in parts if p)
