"""
Разрешение конфликта переноса.

Допустимо только из состояния CONFLICT_REPORTED. Стратегии:
- sum: объёмы складываются в целевой связи
- replace: целевая связь заменяется связью источника
"""

import logging

from app_boq.exceptions import StaleConflict
from app_boq.repositories import LinkStore
from app_boq.results import ConflictStrategy, TransferRequest, TransferState
from app_boq.services.totals import PositionTotalsService

logger = logging.getLogger(__name__)


class ConflictResolver:
    def __init__(
        self,
        store: LinkStore = None,
        totals_service: PositionTotalsService = None,
    ):
        self.store = store or LinkStore()
        self.totals_service = totals_service or PositionTotalsService(self.store)

    def resolve(
        self, request: TransferRequest, strategy: ConflictStrategy
    ) -> TransferRequest:
        """
        Raises:
            StaleConflict: запрос не в состоянии CONFLICT_REPORTED
                или связи конфликта уже изменены
            InvalidCoefficient: сумму нельзя выразить коэффициентом расхода
        """
        conflict = request.conflict
        if request.state != TransferState.CONFLICT_REPORTED or conflict is None:
            raise StaleConflict(
                conflict.src_link_id if conflict else None,
                conflict.tgt_link_id if conflict else None,
                f"состояние запроса: {request.state.value}",
            )

        strategy = ConflictStrategy(strategy)
        result = self.store.resolve_conflict(
            conflict.src_link_id,
            conflict.tgt_link_id,
            conflict.target_work_id,
            strategy,
            mode=conflict.mode,
            src_version=conflict.src_version,
            tgt_version=conflict.tgt_version,
        )

        request.state = TransferState.RESOLVED
        request.result = result
        self.totals_service.refresh(result.affected_positions)
        logger.info(
            f"Конфликт по материалу {conflict.material_id} разрешён: {strategy.value}"
        )
        return request
