"""
Координатор переноса материала между работами.

Состояния запроса:
    IDLE → REQUESTED → APPLIED
                     → CONFLICT_REPORTED → RESOLVED (см. conflicts.py)
                     → FAILED

Перенос в ту же работу не отправляется в хранилище (NoOpTransfer).
Непривязанный материал привязывается через create_link, привязанный —
одним вызовом move_or_copy_material.
"""

import logging

from app_boq.exceptions import NoOpTransfer, StoreUnavailable
from app_boq.repositories import LinkStore
from app_boq.results import (
    Applied,
    Conflict,
    ConflictDetails,
    Failed,
    TransferMode,
    TransferRequest,
    TransferState,
)
from app_boq.services.totals import PositionTotalsService

logger = logging.getLogger(__name__)


class TransferCoordinator:
    def __init__(
        self,
        store: LinkStore = None,
        totals_service: PositionTotalsService = None,
    ):
        self.store = store or LinkStore()
        self.totals_service = totals_service or PositionTotalsService(self.store)

    def submit(self, request: TransferRequest) -> TransferRequest:
        """
        Выполняет запрос переноса и возвращает его с новым состоянием.

        Raises:
            NoOpTransfer: источник совпадает с целью
            StoreUnavailable: ошибка хранилища (состояние запроса — FAILED)
        """
        if request.source_work_id == request.target_work_id:
            raise NoOpTransfer(request.material_id, request.target_work_id)

        request.mode = TransferMode(request.mode)
        request.state = TransferState.REQUESTED
        logger.info(
            f"Перенос материала {request.material_id}: "
            f"{request.source_work_id} → {request.target_work_id} ({request.mode.value})"
        )

        try:
            if request.source_work_id is None:
                target = self.store.items.get_by_id_or_raise(
                    request.target_work_id, "work"
                )
                result = self.store.create_link(
                    position_id=target.client_position_id,
                    work_id=request.target_work_id,
                    material_id=request.material_id,
                )
            else:
                result = self.store.move_or_copy_material(
                    request.material_id,
                    request.source_work_id,
                    request.target_work_id,
                    request.mode,
                )
        except StoreUnavailable as e:
            request.state = TransferState.FAILED
            request.result = Failed(e.message, e.details)
            raise

        return self.apply_result(request, result)

    def apply_result(self, request: TransferRequest, result) -> TransferRequest:
        request.result = result

        if isinstance(result, Applied):
            request.state = TransferState.APPLIED
            self.totals_service.refresh(result.affected_positions)
        elif isinstance(result, Conflict):
            request.state = TransferState.CONFLICT_REPORTED
            request.conflict = ConflictDetails.from_conflict(
                result, request.target_work_id, request.mode
            )
        elif isinstance(result, Failed):
            request.state = TransferState.FAILED
            logger.warning(
                f"Перенос материала {request.material_id} не выполнен: {result.reason}"
            )
        else:
            raise TypeError(f"Неизвестный результат переноса: {result!r}")

        return request
