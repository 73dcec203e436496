"""Админ-панель строк BOQ и связей «работа → материал»."""

import nested_admin
from django.contrib import admin
from django.utils.translation import gettext_lazy as _

from app_boq import calculators
from app_boq.exceptions import BOQEngineError
from app_boq.models import BOQItem, WorkMaterialLink


def _money(value) -> str:
    return "—" if value is None else f"{value:,.2f}"


class BOQItemNestedInline(nested_admin.NestedTabularInline):
    model = BOQItem
    extra = 0
    ordering = ("sort_order", "sub_number", "id")
    classes = ["collapse"]
    fields = (
        "item_number",
        "item_type",
        "description",
        "unit",
        "quantity",
        "unit_rate",
        "currency_type",
        "currency_rate",
        "consumption_coefficient",
        "conversion_coefficient",
        "delivery_price_type",
        "delivery_amount",
        "line_total_display",
    )
    readonly_fields = ("line_total_display",)

    @admin.display(description=_("Стоимость"))
    def line_total_display(self, obj):
        if not obj.pk:
            return "—"
        try:
            return _money(calculators.line_total(obj))
        except BOQEngineError as e:
            return e.message


class WorkMaterialLinkNestedInline(nested_admin.NestedTabularInline):
    model = WorkMaterialLink
    fk_name = "client_position"
    extra = 0
    ordering = ("order", "id")
    fields = (
        "work_item",
        "material_item",
        "material_quantity_per_work",
        "usage_coefficient",
        "order",
        "notes",
    )
    raw_id_fields = ("work_item", "material_item")


@admin.register(BOQItem)
class BOQItemAdmin(admin.ModelAdmin):
    list_display = (
        "item_number",
        "item_type",
        "description",
        "client_position",
        "quantity",
        "unit_rate",
        "currency_type",
        "line_total_display",
        "is_linked_display",
    )
    list_filter = ("item_type", "currency_type", "delivery_price_type")
    search_fields = ("description", "material_ref", "item_number")
    list_select_related = ("client_position", "work_link")
    raw_id_fields = ("client_position", "detail_cost_category")

    @admin.display(description=_("Стоимость"))
    def line_total_display(self, obj):
        try:
            return _money(calculators.line_total(obj))
        except BOQEngineError as e:
            return e.message

    @admin.display(description=_("Привязан"), boolean=True)
    def is_linked_display(self, obj):
        if not obj.is_material:
            return None
        return hasattr(obj, "work_link")


@admin.register(WorkMaterialLink)
class WorkMaterialLinkAdmin(admin.ModelAdmin):
    list_display = (
        "id",
        "client_position",
        "work_item",
        "material_item",
        "material_quantity_per_work",
        "usage_coefficient",
        "material_volume_display",
        "order",
    )
    list_select_related = ("client_position", "work_item", "material_item")
    search_fields = ("work_item__description", "material_item__description")
    raw_id_fields = ("client_position", "work_item", "material_item")
    readonly_fields = ("version",)

    @admin.display(description=_("Объём материала"))
    def material_volume_display(self, obj):
        coeffs = calculators.coefficients_for(obj.material_item, obj)
        return f"{coeffs.volume(obj.work_item.quantity):.4f}"
