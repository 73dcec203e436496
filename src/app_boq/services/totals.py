"""
Пересчёт кешированных итогов позиций.

Итоги — проекция: после каждого подтверждённого изменения позиция
перечитывается из БД, строится реестр связей, агрегатор считает итоги,
результат записывается в поля ClientPosition.
"""

import logging
from typing import Dict, Iterable

from django.db import transaction
from django.utils import timezone

from app_boq.aggregators import PositionAggregator, PositionTotals
from app_boq.link_registry import LinkRegistry
from app_boq.repositories import LinkStore, store_operation
from app_tenders.models import ClientPosition
from core.utils.numbers import round_decimal_value

logger = logging.getLogger(__name__)


class PositionTotalsService:
    """Расчёт и сохранение итогов позиций."""

    def __init__(self, store: LinkStore = None):
        self.store = store or LinkStore()

    def build_registry(self, position_id: int) -> LinkRegistry:
        items = self.store.load_items_by_position([position_id])
        links = self.store.load_links(position_id)
        return LinkRegistry.build(position_id, items, links)

    def compute(self, position_id: int) -> PositionTotals:
        """Итоги позиции по текущему состоянию БД (без записи)."""
        return PositionAggregator.aggregate(self.build_registry(position_id))

    def refresh(self, position_ids: Iterable[int]) -> Dict[int, PositionTotals]:
        """
        Пересчитывает и сохраняет итоги позиций.

        Returns:
            position_id → PositionTotals

        Raises:
            PositionNotFound: позиция удалена
        """
        result: Dict[int, PositionTotals] = {}
        for position_id in sorted(set(position_ids)):
            totals = self.compute(position_id)
            self._save(position_id, totals)
            result[position_id] = totals
        return result

    def _save(self, position_id: int, totals: PositionTotals) -> None:
        works = round_decimal_value(totals.works_total)
        materials = round_decimal_value(totals.materials_total)
        with store_operation("refresh_totals"), transaction.atomic():
            ClientPosition.objects.filter(pk=position_id).update(
                total_works_cost=works,
                total_materials_cost=materials,
                # всего = работы + материалы после округления
                total_position_cost=works + materials,
                totals_refreshed_at=timezone.now(),
            )
        logger.debug(
            f"Итоги позиции {position_id}: работы={totals.works_total}, "
            f"материалы={totals.materials_total}, всего={totals.position_total}"
        )
