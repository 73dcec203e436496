"""
Реестр связей «работа → материал» одной позиции.

Строится заново из того, что прочитано из БД, и ничего не мутирует:
- by_work: work_id → [LinkView, ...] в порядке (order, id)
- linked_material_ids: множество id материалов, привязанных к работам

Объём и стоимость материала в LinkView считаются от количества той
работы, к которой материал привязан.
"""

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional, Set

from app_boq import calculators
from app_boq.exceptions import PositionNotFound
from core.utils.numbers import to_decimal

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LinkView:
    """Связь с вычисленными объёмом и стоимостью материала."""

    link_id: int
    work_id: int
    material_id: int
    material_name: str
    unit: str
    order: int
    consumption_coefficient: Decimal
    conversion_coefficient: Decimal
    work_quantity: Decimal
    material_volume: Decimal
    line_total: Decimal
    notes: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "link_id": self.link_id,
            "work_id": self.work_id,
            "material_id": self.material_id,
            "material_name": self.material_name,
            "unit": self.unit,
            "order": self.order,
            "consumption_coefficient": self.consumption_coefficient,
            "conversion_coefficient": self.conversion_coefficient,
            "work_quantity": self.work_quantity,
            "material_volume": self.material_volume,
            "line_total": self.line_total,
            "notes": self.notes,
        }


class LinkRegistry:
    """
    Проекция связей позиции.

    Example:
        >>> registry = LinkRegistry.build(position.id, {position.id: items}, links)
        >>> registry.links_for(work.id)[0].material_volume
        Decimal('30.0')
    """

    def __init__(
        self,
        position_id: int,
        items: Dict[int, Any],
        by_work: Dict[int, List[LinkView]],
        linked_material_ids: Set[int],
    ):
        self.position_id = position_id
        self.items = items
        self.by_work = by_work
        self.linked_material_ids = frozenset(linked_material_ids)

    @classmethod
    def build(
        cls,
        position_id: int,
        items_by_position: Dict[int, Iterable[Any]],
        links: Iterable[Any],
    ) -> "LinkRegistry":
        """
        Args:
            position_id: ID позиции
            items_by_position: position_id → строки BOQ
            links: связи позиции (WorkMaterialLink или совместимые объекты)

        Raises:
            PositionNotFound: позиции нет среди переданных ключей
        """
        if position_id not in items_by_position:
            raise PositionNotFound(position_id)

        items = {item.id: item for item in items_by_position[position_id]}
        by_work: Dict[int, List[LinkView]] = {}
        linked: Set[int] = set()

        ordered = sorted(links, key=lambda l: (l.order or 0, l.id))
        for link in ordered:
            link_position = getattr(link, "client_position_id", position_id)
            if link_position != position_id:
                continue

            work = items.get(link.work_item_id)
            material = items.get(link.material_item_id)
            if work is None or material is None:
                logger.warning(
                    f"Связь {link.id} позиции {position_id} ссылается на "
                    f"отсутствующие строки (работа={link.work_item_id}, "
                    f"материал={link.material_item_id}), пропущена"
                )
                continue

            by_work.setdefault(work.id, []).append(
                cls._make_view(link, work, material)
            )
            linked.add(material.id)

        return cls(position_id, items, by_work, linked)

    @staticmethod
    def _make_view(link: Any, work: Any, material: Any) -> LinkView:
        coeffs = calculators.coefficients_for(material, link)
        work_qty = to_decimal(work.quantity) or calculators.ZERO
        volume = coeffs.volume(work_qty)

        return LinkView(
            link_id=link.id,
            work_id=work.id,
            material_id=material.id,
            material_name=material.description,
            unit=material.unit or "",
            order=link.order or 0,
            consumption_coefficient=coeffs.consumption,
            conversion_coefficient=coeffs.conversion,
            work_quantity=work_qty,
            material_volume=volume,
            line_total=calculators.line_total(material, quantity=volume),
            notes=getattr(link, "notes", "") or "",
        )

    def links_for(self, work_id: int) -> List[LinkView]:
        return list(self.by_work.get(work_id, []))

    def link_for_material(self, material_id: int) -> Optional[LinkView]:
        for views in self.by_work.values():
            for view in views:
                if view.material_id == material_id:
                    return view
        return None

    def is_linked(self, material_id: int) -> bool:
        return material_id in self.linked_material_ids

    def as_dict(self) -> Dict[int, List[Dict[str, Any]]]:
        return {
            work_id: [v.to_dict() for v in views]
            for work_id, views in self.by_work.items()
        }
