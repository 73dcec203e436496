"""Админ-панель тендеров и позиций заказчика."""

import nested_admin
from django.contrib import admin, messages
from django.utils.translation import gettext_lazy as _

from app_boq.admin import BOQItemNestedInline, WorkMaterialLinkNestedInline
from app_boq.exceptions import BOQEngineError
from app_boq.services.totals import PositionTotalsService
from app_tenders.models import ClientPosition, Tender
from app_tenders.services import CurrencyRatesService

TOTALS_FIELDS = (
    "total_works_cost",
    "total_materials_cost",
    "total_position_cost",
    "totals_refreshed_at",
)


class ClientPositionNestedInline(nested_admin.NestedStackedInline):
    model = ClientPosition
    extra = 0
    ordering = ("position_number", "id")
    inlines = [BOQItemNestedInline, WorkMaterialLinkNestedInline]
    classes = ["collapse"]
    show_change_link = True
    fields = (
        ("position_number", "item_no"),
        "work_name",
        ("unit", "volume", "manual_volume"),
        TOTALS_FIELDS,
    )
    readonly_fields = TOTALS_FIELDS


@admin.register(Tender)
class TenderAdmin(nested_admin.NestedModelAdmin):
    list_display = ("title", "client_name", "tender_number", "usd_rate", "eur_rate", "cny_rate")
    search_fields = ("title", "client_name", "tender_number")
    inlines = [ClientPositionNestedInline]
    actions = ["apply_currency_rates_action"]
    save_on_top = True

    @admin.action(description=_("Применить курсы валют к строкам BOQ"))
    def apply_currency_rates_action(self, request, queryset):
        service = CurrencyRatesService()
        for tender in queryset:
            try:
                counts = service.apply_currency_rates(tender.pk)
            except BOQEngineError as e:
                self.message_user(request, f"{tender}: {e.message}", messages.ERROR)
                continue
            self.message_user(request, f"{tender}: обновлено строк {counts}")


@admin.register(ClientPosition)
class ClientPositionAdmin(nested_admin.NestedModelAdmin):
    list_display = (
        "position_number",
        "work_name",
        "tender",
        "total_works_cost",
        "total_materials_cost",
        "total_position_cost",
    )
    list_filter = ("tender",)
    search_fields = ("work_name", "item_no")
    list_select_related = ("tender",)
    readonly_fields = TOTALS_FIELDS
    inlines = [BOQItemNestedInline, WorkMaterialLinkNestedInline]
    actions = ["refresh_totals_action"]

    @admin.action(description=_("Пересчитать итоги"))
    def refresh_totals_action(self, request, queryset):
        refreshed = PositionTotalsService().refresh(queryset.values_list("pk", flat=True))
        self.message_user(request, f"Итоги пересчитаны: {len(refreshed)} поз.")
