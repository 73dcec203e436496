"""
Агрегатор итогов позиции.

Следует принципам:
- Immutability: не мутирует входные данные
- Привязанный материал учитывается ровно один раз — через связь с работой,
  отдельной строкой он в сумму не попадает
"""

from decimal import Decimal
from typing import Any, Dict, NamedTuple

from app_boq import calculators
from app_boq.link_registry import LinkRegistry


class PositionTotals(NamedTuple):
    """Итоги позиции."""

    works_total: Decimal
    materials_total: Decimal
    position_total: Decimal
    linked_materials_total: Decimal = Decimal("0")
    unlinked_materials_total: Decimal = Decimal("0")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "works_total": self.works_total,
            "materials_total": self.materials_total,
            "position_total": self.position_total,
            "linked_materials_total": self.linked_materials_total,
            "unlinked_materials_total": self.unlinked_materials_total,
        }


class PositionAggregator:
    """
    Итоги позиции по реестру связей.

    Алгоритм:
    1. Множество привязанных материалов берётся из реестра
    2. Каждая работа добавляет свою стоимость в works_total
    3. Каждая работа добавляет стоимость своих связей в materials_total
    4. Каждый непривязанный материал добавляет свою стоимость
    5. Привязанные материалы на шаге 4 пропускаются
    """

    @staticmethod
    def aggregate(registry: LinkRegistry) -> PositionTotals:
        works_total = Decimal("0")
        linked_total = Decimal("0")
        unlinked_total = Decimal("0")

        for item in registry.items.values():
            if item.item_type in calculators.WORK_TYPES:
                works_total += calculators.line_total(item)
                for view in registry.links_for(item.id):
                    linked_total += view.line_total
            elif item.item_type in calculators.MATERIAL_TYPES:
                if registry.is_linked(item.id):
                    continue
                unlinked_total += calculators.line_total(item)

        materials_total = linked_total + unlinked_total
        return PositionTotals(
            works_total=works_total,
            materials_total=materials_total,
            position_total=works_total + materials_total,
            linked_materials_total=linked_total,
            unlinked_materials_total=unlinked_total,
        )
