"""
Фасад движка связей для API и админки.

Ответственность:
- Чтение: итоги позиции, связи позиции с объёмами и стоимостью
- Изменение связей с последующим пересчётом итогов затронутых позиций
- Перенос материала и разрешение конфликта
"""

from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional

from app_boq.aggregators import PositionAggregator, PositionTotals
from app_boq.exceptions import (
    InvalidTransfer,
    LinkNotFound,
    PositionNotFound,
    StaleConflict,
)
from app_boq.link_registry import LinkView
from app_boq.repositories import LinkStore
from app_boq.results import (
    Applied,
    ConflictDetails,
    ConflictStrategy,
    TransferMode,
    TransferRequest,
    TransferResult,
    TransferState,
)
from app_boq.services.conflicts import ConflictResolver
from app_boq.services.totals import PositionTotalsService
from app_boq.services.transfer import TransferCoordinator
from app_cost_categories.services import batch_cost_category_displays


class LinkageService:
    def __init__(
        self,
        store: LinkStore = None,
        totals_service: PositionTotalsService = None,
    ):
        self.store = store or LinkStore()
        self.totals_service = totals_service or PositionTotalsService(self.store)
        self.coordinator = TransferCoordinator(self.store, self.totals_service)
        self.resolver = ConflictResolver(self.store, self.totals_service)

    # --- ЧТЕНИЕ ----------------------------------------------------------------

    def get_position_totals(self, position_id: int) -> PositionTotals:
        registry = self.totals_service.build_registry(position_id)
        return PositionAggregator.aggregate(registry)

    def get_enriched_links(self, position_id: int) -> Dict[int, List[LinkView]]:
        return self.totals_service.build_registry(position_id).by_work

    def cost_category_labels(self, position_id: int) -> Dict[int, str]:
        """item_id → подпись категории затрат для строк позиции, у которых она задана."""
        items = self.store.load_items_by_position([position_id])
        if position_id not in items:
            raise PositionNotFound(position_id)
        labels = batch_cost_category_displays(items[position_id])
        return {
            item.id: labels[item.detail_cost_category_id]
            for item in items[position_id]
            if item.detail_cost_category_id in labels
        }

    # --- СВЯЗИ -----------------------------------------------------------------

    def create_link(
        self,
        position_id: int,
        work_id: int,
        material_id: int,
        material_quantity_per_work: Optional[Decimal] = None,
        usage_coefficient: Optional[Decimal] = None,
        notes: str = "",
    ) -> TransferResult:
        result = self.store.create_link(
            position_id,
            work_id,
            material_id,
            material_quantity_per_work=material_quantity_per_work,
            usage_coefficient=usage_coefficient,
            notes=notes,
        )
        if isinstance(result, Applied):
            self.totals_service.refresh(result.affected_positions)
        return result

    def update_link(self, link_id: int, fields: Dict[str, Any]):
        link = self.store.update_link(link_id, fields)
        self.totals_service.refresh([link.client_position_id])
        return link

    def delete_link(self, link_id: int) -> Applied:
        result = self.store.delete_link(link_id)
        self.totals_service.refresh(result.affected_positions)
        return result

    # --- ПЕРЕНОС ---------------------------------------------------------------

    def transfer(
        self,
        material_id: int,
        source_work_id: Optional[int],
        target_work_id: int,
        mode: TransferMode = TransferMode.MOVE,
    ) -> TransferRequest:
        request = TransferRequest(
            material_id=material_id,
            source_work_id=source_work_id,
            target_work_id=target_work_id,
            mode=TransferMode(mode),
        )
        return self.coordinator.submit(request)

    def resolve_conflict(
        self,
        src_link_id: int,
        tgt_link_id: Optional[int],
        target_work_id: int,
        strategy: ConflictStrategy,
        mode: TransferMode = TransferMode.MOVE,
        src_version: Optional[int] = None,
        tgt_version: Optional[int] = None,
    ) -> TransferRequest:
        """
        Разрешение конфликта, о котором клиент узнал из ответа на перенос.

        Запрос восстанавливается в состоянии CONFLICT_REPORTED по связи
        источника; если её уже нет — конфликт неактуален. Версии связей
        берутся из ответа с конфликтом и обязательны: после первого
        разрешения они меняются, и повтор получает StaleConflict.

        Raises:
            InvalidTransfer: не переданы версии связей
            StaleConflict: связи удалены или изменены
        """
        if src_version is None or (tgt_link_id is not None and tgt_version is None):
            raise InvalidTransfer(
                "не указаны версии связей конфликта",
                {"src_link_id": src_link_id, "tgt_link_id": tgt_link_id},
            )

        try:
            src_link = self.store.get_link_or_raise(src_link_id)
        except LinkNotFound:
            raise StaleConflict(src_link_id, tgt_link_id, "связь источника удалена")

        mode = TransferMode(mode)
        request = TransferRequest(
            material_id=src_link.material_item_id,
            source_work_id=src_link.work_item_id,
            target_work_id=target_work_id,
            mode=mode,
            state=TransferState.CONFLICT_REPORTED,
            conflict=ConflictDetails(
                src_link_id=src_link_id,
                tgt_link_id=tgt_link_id,
                material_id=src_link.material_item_id,
                material_name=src_link.material_item.description,
                source_work_name=src_link.work_item.description,
                target_work_name="",
                target_work_id=target_work_id,
                mode=mode,
                src_version=src_version,
                tgt_version=tgt_version,
            ),
        )
        return self.resolver.resolve(request, strategy)

    def refresh_totals(self, position_ids: Iterable[int]) -> Dict[int, PositionTotals]:
        return self.totals_service.refresh(position_ids)
