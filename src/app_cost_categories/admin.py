from django.contrib import admin

from app_cost_categories.models import CostCategory, DetailCostCategory, Location


@admin.register(CostCategory)
class CostCategoryAdmin(admin.ModelAdmin):
    list_display = ("name", "sort_order")
    search_fields = ("name",)


@admin.register(Location)
class LocationAdmin(admin.ModelAdmin):
    list_display = ("name", "sort_order")
    search_fields = ("name",)


@admin.register(DetailCostCategory)
class DetailCostCategoryAdmin(admin.ModelAdmin):
    list_display = ("name", "cost_category", "location")
    list_filter = ("cost_category", "location")
    search_fields = ("name", "cost_category__name", "location__name")
